"""Conversion between packed 32-bit ARGB buffers and ``[row][column][channel]`` arrays.

A packed pixel stores one channel per byte: alpha in bits 24-31, red in 16-23,
green in 8-15 and blue in 0-7. Buffers are row-major, so the pixel at
``(row, column)`` lives at index ``row * columns + column``.

The planar form is a ``(rows, columns, 3)`` ``uint8`` array with channel 0 red,
1 green and 2 blue. Alpha does not survive the trip into planar form; packing
a planar array back writes a fixed alpha value instead.

Functions
---------

packed32_to_planar3d
    Unpack a flat ARGB buffer into a 3D RGB array.

planar3d_to_packed32
    Pack a 3D RGB array into a flat ARGB buffer with constant alpha.

image_to_packed32
    Draw a Pillow image into an ARGB buffer.

packed32_to_image
    Build an opaque RGB Pillow image from an ARGB buffer.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Sequence, Union

import numpy as np
from PIL import Image

from .errors import InvalidDimensions

LOGGER = logging.getLogger("diff_images")

OPAQUE_ALPHA = 0xFF

INT32_MIN = -(2**31)
UINT32_MAX = 0xFFFFFFFF

PackedInput = Union[Sequence[int], np.ndarray]


@dataclasses.dataclass(frozen=True)
class PackedImage:
    """Flat ARGB buffer together with the dimensions needed to interpret it.

    Attributes:
        pixels: One-dimensional ``uint32`` array of length ``rows * columns``.
        columns: Image width in pixels.
        rows: Image height in pixels.
    """

    pixels: np.ndarray
    columns: int
    rows: int


def _as_uint32(packed: PackedInput) -> np.ndarray:
    arr = np.asarray(packed)
    if arr.dtype == np.uint32:
        return arr
    if arr.size and not np.issubdtype(arr.dtype, np.integer):
        raise InvalidDimensions(f"Packed pixels must be integers, got dtype {arr.dtype}")
    if arr.size and (int(arr.min()) < INT32_MIN or int(arr.max()) > UINT32_MAX):
        raise ValueError(
            f"Packed pixels must fit in 32 bits, got values in [{int(arr.min())}, {int(arr.max())}]"
        )
    # Signed int32 buffers carry alpha in the sign bit; wrap them to 32 bits.
    return (arr.astype(np.int64) & UINT32_MAX).astype(np.uint32)


def _check_dimensions(columns: int, rows: int) -> None:
    if columns <= 0 or rows <= 0:
        raise InvalidDimensions(f"Image dimensions must be positive, got {columns}x{rows}")


def packed32_to_planar3d(packed: PackedInput, columns: int, rows: int) -> np.ndarray:
    """Unpack a row-major ARGB buffer into a ``(rows, columns, 3)`` RGB array.

    Args:
        packed: Flat sequence of 32-bit packed pixels.
        columns: Image width in pixels.
        rows: Image height in pixels.

    Returns:
        Newly allocated ``uint8`` array; alpha bits are discarded.

    Raises:
        InvalidDimensions: If the dimensions are not positive or the buffer
            length differs from ``rows * columns``.
        ValueError: If a packed value does not fit in 32 bits.
    """
    _check_dimensions(columns, rows)
    arr = _as_uint32(packed)
    if arr.ndim != 1:
        raise InvalidDimensions(f"Packed pixels must be one-dimensional, got shape {arr.shape}")
    expected = rows * columns
    if arr.size != expected:
        raise InvalidDimensions(
            f"Packed buffer holds {arr.size} pixels but {columns}x{rows} requires {expected}"
        )

    grid = arr.reshape(rows, columns)
    planar = np.empty((rows, columns, 3), dtype=np.uint8)
    planar[:, :, 0] = (grid >> 16) & 0xFF
    planar[:, :, 1] = (grid >> 8) & 0xFF
    planar[:, :, 2] = grid & 0xFF
    return planar


def planar3d_to_packed32(pixels: np.ndarray, alpha: int = OPAQUE_ALPHA) -> np.ndarray:
    """Pack a ``(rows, columns, 3)`` RGB array into a flat ARGB buffer.

    The original alpha is not recoverable from a planar array, so every pixel
    receives ``alpha``.

    Args:
        pixels: RGB array with channel values in ``[0, 255]``.
        alpha: Alpha value written into bits 24-31 of every pixel.

    Returns:
        One-dimensional ``uint32`` array in row-major order.

    Raises:
        InvalidDimensions: If ``pixels`` is not a non-empty ``(rows, columns, 3)`` array.
        ValueError: If a channel value or ``alpha`` falls outside ``[0, 255]``.
    """
    arr = np.asarray(pixels)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise InvalidDimensions(f"Expected a (rows, columns, 3) array, got shape {arr.shape}")
    rows, columns = arr.shape[:2]
    _check_dimensions(columns, rows)
    if not 0 <= alpha <= 0xFF:
        raise ValueError(f"alpha must be between 0 and 255, got {alpha}")
    if arr.min() < 0 or arr.max() > 0xFF:
        raise ValueError("Channel values must be between 0 and 255")

    channels = arr.astype(np.uint32)
    packed = (
        (np.uint32(alpha) << np.uint32(24))
        | (channels[:, :, 0] << np.uint32(16))
        | (channels[:, :, 1] << np.uint32(8))
        | channels[:, :, 2]
    )
    return np.ascontiguousarray(packed.reshape(-1), dtype=np.uint32)


def image_to_packed32(image: Image.Image) -> PackedImage:
    """Draw ``image`` into an ARGB buffer, whatever its source mode.

    Args:
        image: Decoded Pillow image.

    Returns:
        PackedImage with the buffer and the image dimensions.
    """
    columns, rows = image.size
    _check_dimensions(columns, rows)
    if image.mode != "RGBA":
        LOGGER.debug("Converting %s image to RGBA before packing", image.mode)
        image = image.convert("RGBA")
    rgba = np.asarray(image, dtype=np.uint8).astype(np.uint32)
    packed = (
        (rgba[:, :, 3] << np.uint32(24))
        | (rgba[:, :, 0] << np.uint32(16))
        | (rgba[:, :, 1] << np.uint32(8))
        | rgba[:, :, 2]
    )
    return PackedImage(
        pixels=np.ascontiguousarray(packed.reshape(-1), dtype=np.uint32),
        columns=columns,
        rows=rows,
    )


def packed32_to_image(packed: PackedInput, columns: int, rows: int) -> Image.Image:
    """Build an opaque RGB Pillow image from an ARGB buffer."""

    planar = packed32_to_planar3d(packed, columns, rows)
    return Image.fromarray(planar)


__all__ = [
    "OPAQUE_ALPHA",
    "PackedImage",
    "image_to_packed32",
    "packed32_to_image",
    "packed32_to_planar3d",
    "planar3d_to_packed32",
]
