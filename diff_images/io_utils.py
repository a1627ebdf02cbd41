"""Image loading and atomic saving through Pillow.

Key Components
--------------

ProcessingContext
    Context manager for atomic file writes using staged temporary files.

load_image
    Decode an image from disk into a :class:`~diff_images.conversion.PackedImage`.

save_pixels
    Write a ``(rows, columns, 3)`` array to disk in the format implied by the
    destination extension.
"""
from __future__ import annotations

import contextlib
import dataclasses
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .conversion import PackedImage, image_to_packed32, packed32_to_image, planar3d_to_packed32
from .errors import ImageLoadError, ImageSaveError

LOGGER = logging.getLogger("diff_images")

DEFAULT_SAVE_FORMAT = "BMP"

PathLike = Union[str, os.PathLike]


@dataclasses.dataclass
class ProcessingContext:
    """Stage a write beside ``destination`` and move it into place on success.

    Entering yields a hidden sibling path (``.<name><suffix>-<hex>``) for the
    caller to write to. A clean exit renames it over ``destination`` with
    :func:`os.replace`; an exception deletes it and leaves any existing file
    at ``destination`` as it was.

    Attributes:
        destination: Final output file path.
        suffix: Marker inserted into the staged file name.
    """

    destination: Path
    suffix: str = ".tmp"
    _staged_path: Optional[Path] = dataclasses.field(default=None, init=False, repr=False)

    def __enter__(self) -> Path:
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        staged_name = f".{self.destination.name}{self.suffix}-{uuid.uuid4().hex}"
        self._staged_path = self.destination.parent / staged_name
        return self._staged_path

    def __exit__(self, exc_type, exc, tb) -> bool:
        staged, self._staged_path = self._staged_path, None
        if staged is None:
            return False

        if exc_type is not None:
            LOGGER.debug("Discarding staged write %s after %s", staged, exc_type.__name__)
            with contextlib.suppress(FileNotFoundError):
                staged.unlink()
            return False

        try:
            os.replace(staged, self.destination)
        except OSError:
            with contextlib.suppress(OSError):
                staged.unlink()
            raise
        return False


def load_image(path: PathLike) -> PackedImage:
    """Decode ``path`` and return its pixels as a packed ARGB buffer.

    The file handle is closed before this function returns, on success and on
    failure alike.

    Raises:
        ImageLoadError: With ``kind="FileNotFound"`` when the file is missing and
            ``kind="DecodeError"`` when Pillow cannot decode it.
    """
    source = Path(path)
    try:
        with Image.open(source) as image:
            image.load()
            packed = image_to_packed32(image)
    except FileNotFoundError as exc:
        raise ImageLoadError(
            f"Could not find any image at {source}", kind="FileNotFound", path=source
        ) from exc
    except IsADirectoryError as exc:
        raise ImageLoadError(
            f"Expected an image file but found a directory: {source}", kind="FileNotFound", path=source
        ) from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageLoadError(
            f"Could not decode image {source}: {exc}", kind="DecodeError", path=source
        ) from exc
    LOGGER.debug("Loaded %s (%sx%s)", source, packed.columns, packed.rows)
    return packed


def resolve_save_format(destination: Path) -> str:
    """Return the Pillow format name implied by ``destination``'s extension.

    Paths without an extension are written as BMP.

    Raises:
        ImageSaveError: If the extension is not known to Pillow.
    """
    suffix = destination.suffix.lower()
    if not suffix:
        return DEFAULT_SAVE_FORMAT
    fmt = Image.registered_extensions().get(suffix)
    if fmt is None:
        raise ImageSaveError(f"Unsupported output format '{suffix}' for {destination}")
    return fmt


def save_pixels(destination: PathLike, pixels: np.ndarray) -> Path:
    """Write a ``(rows, columns, 3)`` array to ``destination`` atomically.

    The array is packed into an opaque ARGB buffer and unpacked into a Pillow
    image, mirroring the load path. An existing file at ``destination`` is left
    untouched if the write fails.

    Returns:
        The destination path.

    Raises:
        ImageSaveError: If the format is unsupported or the write fails.
    """
    target = Path(destination)
    fmt = resolve_save_format(target)
    packed = planar3d_to_packed32(pixels)
    rows, columns = np.shape(pixels)[:2]
    image = packed32_to_image(packed, columns, rows)
    try:
        with ProcessingContext(target) as staged_path:
            image.save(staged_path, format=fmt)
    except (OSError, ValueError, KeyError) as exc:
        raise ImageSaveError(f"Could not write {target}: {exc}") from exc
    LOGGER.debug("Wrote %s as %s", target, fmt)
    return target


__all__ = [
    "DEFAULT_SAVE_FORMAT",
    "ProcessingContext",
    "load_image",
    "resolve_save_format",
    "save_pixels",
]
