"""Single-image processing: load, convert, apply one strategy, save."""
from __future__ import annotations

import contextlib
import dataclasses
import logging
import time
from typing import Dict, Iterator, Optional

import numpy as np

from .config import RunConfig
from .conversion import packed32_to_planar3d
from .errors import (
    ImageLoadError,
    ImageSaveError,
    InvalidDimensions,
    InvalidStrategyOptions,
    ProcessingFailed,
    UnknownStrategy,
)
from .io_utils import load_image, save_pixels
from .strategies import DEFAULT_REGISTRY, ImageTransform, StrategyRegistry

LOGGER = logging.getLogger("diff_images")


class PhaseTimer:
    """Measure and log the wall time of named phases."""

    def __init__(self) -> None:
        self.timings: Dict[str, float] = {}

    @contextlib.contextmanager
    def phase(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - t0
            self.timings[name] = elapsed
            LOGGER.info("%s: %.6f seconds", name, elapsed)


@dataclasses.dataclass(frozen=True)
class PipelineResult:
    """Outcome of :func:`process_image`.

    Attributes:
        ok: ``True`` only when the strategy ran and the output was written.
        pixels: Processed ``(rows, columns, 3)`` array on success, else ``None``.
        error_kind: Failure category on failure (``FileNotFound``,
            ``DecodeError``, ``InvalidDimensions``, ``UnknownStrategy``,
            ``InvalidStrategyOptions``, ``ProcessingFailed`` or ``SaveFailed``).
        message: Human-readable failure description.
        timings: Seconds spent in each completed phase.
    """

    ok: bool
    pixels: Optional[np.ndarray] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    timings: Dict[str, float] = dataclasses.field(default_factory=dict)

    @classmethod
    def success(cls, pixels: np.ndarray, timings: Dict[str, float]) -> "PipelineResult":
        return cls(ok=True, pixels=pixels, timings=dict(timings))

    @classmethod
    def failure(cls, kind: str, message: str, timings: Dict[str, float]) -> "PipelineResult":
        return cls(ok=False, error_kind=kind, message=message, timings=dict(timings))


def run_strategy(
    strategy: ImageTransform,
    pixels: np.ndarray,
    config: RunConfig,
) -> np.ndarray:
    """Apply ``strategy`` to ``pixels`` and validate what comes back.

    The strategy receives a read-only view, so an attempt to modify the
    caller's array in place fails. The returned array never shares memory
    with ``pixels``.

    Raises:
        ProcessingFailed: If the strategy raises or returns an array with the
            wrong shape, a non-numeric dtype, non-finite or non-integral
            values, or values outside ``[0, 255]``.
    """
    rows, columns = pixels.shape[:2]
    frozen = pixels.view()
    frozen.flags.writeable = False
    try:
        result = strategy.apply(frozen, rows, columns, config.output_path, config.backup_path)
    except Exception as exc:
        raise ProcessingFailed(f"Strategy {config.strategy_name!r} failed: {exc}") from exc

    if not isinstance(result, np.ndarray):
        raise ProcessingFailed(
            f"Strategy {config.strategy_name!r} returned {type(result).__name__}, expected an array"
        )
    if result.shape != pixels.shape:
        raise ProcessingFailed(
            f"Strategy {config.strategy_name!r} returned shape {result.shape}, expected {pixels.shape}"
        )
    is_float = np.issubdtype(result.dtype, np.floating)
    if not (is_float or np.issubdtype(result.dtype, np.integer)):
        raise ProcessingFailed(
            f"Strategy {config.strategy_name!r} returned dtype {result.dtype}, expected integer or float"
        )
    if is_float:
        if not np.isfinite(result).all():
            raise ProcessingFailed(f"Strategy {config.strategy_name!r} produced NaN or infinite values")
        if not np.array_equal(result, np.rint(result)):
            raise ProcessingFailed(f"Strategy {config.strategy_name!r} produced non-integral channel values")
    if result.size and (result.min() < 0 or result.max() > 255):
        raise ProcessingFailed(f"Strategy {config.strategy_name!r} produced values outside [0, 255]")
    if result.dtype != np.uint8 or np.shares_memory(result, pixels):
        result = np.array(result, dtype=np.uint8, copy=True)
    return result


def process_image(
    config: RunConfig,
    registry: Optional[StrategyRegistry] = None,
) -> PipelineResult:
    """Run one image through the strategy named in ``config``.

    Every expected failure is logged and returned as a failure result rather
    than raised, so callers cannot go on to use missing pixel data.
    """
    registry = registry or DEFAULT_REGISTRY
    timer = PhaseTimer()

    try:
        strategy = registry.create(config.strategy_name, config.strategy_options)

        with timer.phase("Original image reading"):
            packed = load_image(config.input_path)
        LOGGER.info("Loaded %s: %s columns x %s rows", config.input_path, packed.columns, packed.rows)

        with timer.phase("Pixel conversion"):
            pixels = packed32_to_planar3d(packed.pixels, packed.columns, packed.rows)

        if config.output_path.resolve() == config.backup_path.resolve():
            LOGGER.warning(
                "Output path %s is also the backup path; the backup copy will be overwritten",
                config.output_path,
            )

        with timer.phase(f"Image processing ({config.strategy_name})"):
            processed = run_strategy(strategy, pixels, config)

        with timer.phase("Output writing"):
            save_pixels(config.output_path, processed)
    except ImageLoadError as exc:
        LOGGER.error("%s", exc)
        return PipelineResult.failure(exc.kind, str(exc), timer.timings)
    except ProcessingFailed as exc:
        LOGGER.exception("%s", exc)
        return PipelineResult.failure(exc.kind, str(exc), timer.timings)
    except (UnknownStrategy, InvalidStrategyOptions, InvalidDimensions, ImageSaveError) as exc:
        LOGGER.error("%s", exc)
        return PipelineResult.failure(exc.kind, str(exc), timer.timings)

    LOGGER.info("Wrote processed image to %s", config.output_path)
    return PipelineResult.success(processed, timer.timings)


__all__ = [
    "PhaseTimer",
    "PipelineResult",
    "process_image",
    "run_strategy",
]
