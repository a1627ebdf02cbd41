"""Exception hierarchy shared by the converter, strategies, and pipeline."""
from __future__ import annotations


class DiffImagesError(RuntimeError):
    """Base class for every failure raised by :mod:`diff_images`."""

    kind = "DiffImagesError"


class ImageLoadError(DiffImagesError):
    """Raised when the source image cannot be opened or decoded.

    Attributes:
        kind: ``"FileNotFound"`` when the path is missing, ``"DecodeError"`` when
            the file exists but Pillow cannot read it.
        path: The path that failed to load.
    """

    def __init__(self, message: str, *, kind: str, path: object = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path


class InvalidDimensions(DiffImagesError, ValueError):
    """Raised when a pixel buffer does not match the declared rows and columns."""

    kind = "InvalidDimensions"


class UnknownStrategy(DiffImagesError, LookupError):
    """Raised when a processing strategy name is not registered."""

    kind = "UnknownStrategy"

    def __init__(self, name: str, available: tuple[str, ...] = ()) -> None:
        message = f"Unknown processing strategy: {name!r}"
        if available:
            message += f" (choose from {', '.join(available)})"
        super().__init__(message)
        self.name = name
        self.available = available


class InvalidStrategyOptions(DiffImagesError, ValueError):
    """Raised when a strategy rejects the options it was created with."""

    kind = "InvalidStrategyOptions"


class ProcessingFailed(DiffImagesError):
    """Raised when a strategy crashes or returns an unusable array."""

    kind = "ProcessingFailed"


class ImageSaveError(DiffImagesError):
    """Raised when the processed image cannot be written."""

    kind = "SaveFailed"


class InvalidArguments(DiffImagesError):
    """Raised when more positional arguments are supplied than the CLI accepts."""

    kind = "InvalidArguments"


__all__ = [
    "DiffImagesError",
    "ImageLoadError",
    "ImageSaveError",
    "InvalidArguments",
    "InvalidDimensions",
    "InvalidStrategyOptions",
    "ProcessingFailed",
    "UnknownStrategy",
]
