from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

try:
    from .documentation import documents
except ImportError:  # pragma: no cover - fallback for direct execution
    from tests.documentation import documents

np = pytest.importorskip("numpy")
pytest.importorskip("PIL.Image")
from PIL import Image  # noqa: E402

import diff_images as dimg  # noqa: E402


def _gradient(rows: int = 3, columns: int = 4) -> np.ndarray:
    values = np.linspace(0, 255, rows * columns * 3).round().astype(np.uint8)
    return values.reshape((rows, columns, 3))


def test_default_registry_lists_builtin_strategies():
    names = dimg.DEFAULT_REGISTRY.names()

    assert names == ["ContrastMod", "Grayscale", "Invert"]
    assert dimg.DEFAULT_STRATEGY_NAME in dimg.DEFAULT_REGISTRY
    assert "Sharpen" not in dimg.DEFAULT_REGISTRY


@documents("Unregistered names fail loudly instead of falling back to a default")
def test_registry_rejects_unknown_strategy():
    with pytest.raises(dimg.UnknownStrategy) as excinfo:
        dimg.DEFAULT_REGISTRY.get("Sharpen")

    assert excinfo.value.name == "Sharpen"
    assert "ContrastMod" in str(excinfo.value)


def test_registry_register_and_create_are_isolated():
    registry = dimg.StrategyRegistry()

    @registry.register("Identity")
    class Identity:
        def apply(self, pixels, rows, columns, output_path, backup_path):
            return pixels.copy()

    assert registry.names() == ["Identity"]
    assert registry.get("Identity") is Identity
    assert isinstance(registry.create("Identity"), Identity)
    assert "Identity" not in dimg.DEFAULT_REGISTRY


@pytest.mark.parametrize(
    ("name", "options"),
    [
        ("ContrastMod", {"factor": 9.0}),
        ("ContrastMod", {"factor": -0.5}),
        ("ContrastMod", {"factor": "steep"}),
        ("ContrastMod", {"backup": "sometimes"}),
        ("ContrastMod", {"gamma": 1.0}),
        ("Invert", {"factor": 1.0}),
    ],
)
def test_registry_create_rejects_invalid_options(name, options):
    with pytest.raises(dimg.InvalidStrategyOptions):
        dimg.DEFAULT_REGISTRY.create(name, options)


@documents("ContrastMod returns an array with the same dimensions as its input")
def test_contrast_mod_preserves_dimensions(tmp_path: Path):
    pixels = _gradient()
    strategy = dimg.DEFAULT_REGISTRY.create("ContrastMod")

    result = strategy.apply(pixels, 3, 4, tmp_path / "out.bmp", tmp_path / "backup.bmp")

    assert result.shape == pixels.shape
    assert result.dtype == np.uint8


def test_contrast_mod_stretches_around_mean():
    pixels = np.array([[[0, 0, 0], [200, 200, 200]]], dtype=np.uint8)
    strategy = dimg.ContrastMod(factor=1.5, backup=False)

    result = strategy.apply(pixels, 1, 2, None, None)

    # mean is 100: 0 -> -50 (clipped to 0), 200 -> 250
    assert result.tolist() == [[[0, 0, 0], [250, 250, 250]]]


def test_contrast_mod_factor_one_is_identity():
    pixels = _gradient()

    result = dimg.ContrastMod(factor=1.0, backup=False).apply(pixels, 3, 4, None, None)

    assert np.array_equal(result, pixels)


def test_contrast_mod_factor_zero_flattens_to_mean():
    pixels = np.array([[[0, 0, 0], [100, 100, 100]]], dtype=np.uint8)

    result = dimg.ContrastMod(factor=0.0, backup=False).apply(pixels, 1, 2, None, None)

    assert np.all(result == 50)


@documents("The backup copy is an unmodified snapshot and the caller's array is untouched")
def test_contrast_mod_writes_backup_without_mutating_input(tmp_path: Path):
    pixels = _gradient()
    snapshot = pixels.copy()
    backup_path = tmp_path / "out" / "backupCopy.bmp"

    result = dimg.ContrastMod().apply(pixels, 3, 4, tmp_path / "result.bmp", backup_path)

    assert np.array_equal(pixels, snapshot)
    assert not np.shares_memory(result, pixels)
    assert backup_path.exists()
    with Image.open(backup_path) as backup:
        assert backup.format == "BMP"
        assert np.array_equal(np.array(backup.convert("RGB")), snapshot)


def test_contrast_mod_skips_backup_when_disabled(tmp_path: Path):
    backup_path = tmp_path / "backup.bmp"

    dimg.ContrastMod(backup=False).apply(_gradient(), 3, 4, None, backup_path)

    assert not backup_path.exists()


def test_strategies_reject_mismatched_dimensions():
    pixels = _gradient(rows=2, columns=2)

    for name in dimg.DEFAULT_REGISTRY.names():
        strategy = dimg.DEFAULT_REGISTRY.create(name, {"backup": False} if name == "ContrastMod" else None)
        with pytest.raises(dimg.InvalidDimensions):
            strategy.apply(pixels, 3, 2, None, None)


def test_invert_flips_channel_values():
    pixels = np.array([[[0, 128, 255]]], dtype=np.uint8)

    result = dimg.Invert().apply(pixels, 1, 1, None, None)

    assert result.tolist() == [[[255, 127, 0]]]


def test_grayscale_uses_rec709_luma():
    pixels = np.array([[[255, 0, 0], [255, 255, 255], [0, 0, 0]]], dtype=np.uint8)

    result = dimg.Grayscale().apply(pixels, 1, 3, None, None)

    assert result.tolist() == [[[54, 54, 54], [255, 255, 255], [0, 0, 0]]]


def test_strategies_accept_read_only_input():
    pixels = _gradient()
    pixels.flags.writeable = False

    for name in ("Invert", "Grayscale"):
        result = dimg.DEFAULT_REGISTRY.create(name).apply(pixels, 3, 4, None, None)
        assert result.shape == pixels.shape
    result = dimg.ContrastMod(backup=False).apply(pixels, 3, 4, None, None)
    assert result.shape == pixels.shape


def test_registry_create_wraps_factory_crash():
    registry = dimg.StrategyRegistry()

    @registry.register("Unbuildable")
    def build_unbuildable():
        raise RuntimeError("model weights missing")

    with pytest.raises(dimg.ProcessingFailed) as excinfo:
        registry.create("Unbuildable")

    assert "Unbuildable" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
