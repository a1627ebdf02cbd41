"""Named image-processing strategies and the registry that dispatches them.

A strategy receives a read-only ``(rows, columns, 3)`` ``uint8`` array and
returns a new array of the same shape. It may write side files such as the
backup copy, but it never modifies the array it was given.
"""
from __future__ import annotations

import dataclasses
import logging
import numbers
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import numpy as np

from .errors import InvalidDimensions, InvalidStrategyOptions, ProcessingFailed, UnknownStrategy
from .io_utils import save_pixels

LOGGER = logging.getLogger("diff_images")

DEFAULT_STRATEGY_NAME = "ContrastMod"


class ImageTransform(Protocol):
    """Capability implemented by every processing strategy."""

    def apply(
        self,
        pixels: np.ndarray,
        rows: int,
        columns: int,
        output_path: Optional[Path],
        backup_path: Optional[Path],
    ) -> np.ndarray:
        ...


StrategyFactory = Callable[..., ImageTransform]


class StrategyRegistry:
    """Registry mapping strategy names to factories that build them.

    Each registry owns its own table, so tests and embedding applications can
    build isolated registries without touching :data:`DEFAULT_REGISTRY`.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, StrategyFactory] = {}

    def register(self, name: str) -> Callable[[StrategyFactory], StrategyFactory]:
        """Decorator to register a strategy factory under ``name``."""
        def decorator(factory: StrategyFactory) -> StrategyFactory:
            self._factories[name] = factory
            LOGGER.debug("Registered strategy: %s", name)
            return factory
        return decorator

    def get(self, name: str) -> StrategyFactory:
        """Get the factory registered under ``name``."""
        if name not in self._factories:
            raise UnknownStrategy(name, tuple(self.names()))
        return self._factories[name]

    def create(self, name: str, options: Optional[Mapping[str, Any]] = None) -> ImageTransform:
        """Build the strategy registered under ``name`` with keyword ``options``.

        Raises:
            UnknownStrategy: If ``name`` is not registered.
            InvalidStrategyOptions: If the factory rejects ``options``.
            ProcessingFailed: If the factory fails for any other reason.
        """
        factory = self.get(name)
        try:
            return factory(**dict(options or {}))
        except (TypeError, ValueError) as exc:
            raise InvalidStrategyOptions(f"Invalid options for strategy {name!r}: {exc}") from exc
        except Exception as exc:
            raise ProcessingFailed(f"Strategy {name!r} could not be built: {exc}") from exc

    def names(self) -> List[str]:
        """Get all registered strategy names, sorted."""
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories


DEFAULT_REGISTRY = StrategyRegistry()


def _check_shape(pixels: np.ndarray, rows: int, columns: int) -> None:
    if pixels.shape != (rows, columns, 3):
        raise InvalidDimensions(
            f"Strategy expected a ({rows}, {columns}, 3) array, got shape {pixels.shape}"
        )


def _to_uint8(arr: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(arr), 0, 255).astype(np.uint8)


@DEFAULT_REGISTRY.register("ContrastMod")
@dataclasses.dataclass
class ContrastMod:
    """Stretch every channel around the mean intensity of the whole image.

    Before processing, the unmodified input is written to ``backup_path``.

    Attributes:
        factor: Contrast multiplier. 1.0 leaves the image unchanged, values
            below 1.0 flatten it and values above 1.0 increase contrast.
        backup: Whether to write the backup copy.
    """

    factor: float = 1.5
    backup: bool = True

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        if isinstance(self.factor, bool) or not isinstance(self.factor, numbers.Real):
            raise ValueError(f"factor must be a number, got {self.factor!r}")
        if not 0.0 <= self.factor <= 5.0:
            raise ValueError(f"factor must be between 0.0 and 5.0, got {self.factor}")
        if not isinstance(self.backup, bool):
            raise ValueError(f"backup must be true or false, got {self.backup!r}")

    def apply(
        self,
        pixels: np.ndarray,
        rows: int,
        columns: int,
        output_path: Optional[Path],
        backup_path: Optional[Path],
    ) -> np.ndarray:
        _check_shape(pixels, rows, columns)
        if self.backup and backup_path is not None:
            LOGGER.info("Writing backup copy to %s", backup_path)
            save_pixels(backup_path, pixels)

        working = pixels.astype(np.float32)
        mean = float(working.mean())
        LOGGER.debug("Contrast factor=%s around mean=%.3f (output %s)", self.factor, mean, output_path)
        return _to_uint8((working - mean) * self.factor + mean)


@DEFAULT_REGISTRY.register("Invert")
class Invert:
    """Replace every channel value ``v`` with ``255 - v``."""

    def apply(self, pixels, rows, columns, output_path, backup_path):
        _check_shape(pixels, rows, columns)
        return np.uint8(255) - pixels


@DEFAULT_REGISTRY.register("Grayscale")
class Grayscale:
    """Copy Rec. 709 luma into all three channels."""

    def apply(self, pixels, rows, columns, output_path, backup_path):
        _check_shape(pixels, rows, columns)
        working = pixels.astype(np.float32)
        luma = working[:, :, 0] * 0.2126 + working[:, :, 1] * 0.7152 + working[:, :, 2] * 0.0722
        return np.repeat(_to_uint8(luma)[:, :, None], 3, axis=2)


__all__ = [
    "ContrastMod",
    "DEFAULT_REGISTRY",
    "DEFAULT_STRATEGY_NAME",
    "Grayscale",
    "ImageTransform",
    "Invert",
    "StrategyFactory",
    "StrategyRegistry",
]
