"""Packed-pixel image conversion with pluggable, named processing strategies.

An image is read through Pillow and drawn into a flat buffer of packed 32-bit
ARGB integers. The buffer is converted into a ``[row][column][channel]`` array,
one registered strategy transforms that array, and the result is written back
out through the same codec.

Module Organization
-------------------

conversion
    Packed ARGB buffer <-> ``(rows, columns, 3)`` array conversion.

io_utils
    Pillow-backed loading and atomic saving.

strategies
    The ``ImageTransform`` capability, the strategy registry, and the built-in
    ``ContrastMod``, ``Invert`` and ``Grayscale`` strategies.

config
    ``RunConfig`` defaults, positional-argument resolution and config files.

pipeline
    Single-image orchestration with per-phase timing and explicit results.

cli
    Command-line entry point.

Example Usage
-------------

    from pathlib import Path
    from diff_images import RunConfig, process_image

    result = process_image(RunConfig(input_path=Path("tiger.bmp")))
    if not result.ok:
        raise SystemExit(result.message)
"""
from __future__ import annotations

import logging

from .cli import main, parse_args, run
from .config import (
    DEFAULT_BACKUP_PATH,
    DEFAULT_INPUT_PATH,
    DEFAULT_OUTPUT_PATH,
    RunConfig,
    resolve_run_config,
)
from .conversion import (
    OPAQUE_ALPHA,
    PackedImage,
    image_to_packed32,
    packed32_to_image,
    packed32_to_planar3d,
    planar3d_to_packed32,
)
from .errors import (
    DiffImagesError,
    ImageLoadError,
    ImageSaveError,
    InvalidArguments,
    InvalidDimensions,
    InvalidStrategyOptions,
    ProcessingFailed,
    UnknownStrategy,
)
from .io_utils import ProcessingContext, load_image, save_pixels
from .pipeline import PipelineResult, process_image, run_strategy
from .strategies import (
    DEFAULT_REGISTRY,
    DEFAULT_STRATEGY_NAME,
    ContrastMod,
    Grayscale,
    ImageTransform,
    Invert,
    StrategyRegistry,
)

LOGGER = logging.getLogger("diff_images")

__all__ = [
    "ContrastMod",
    "DEFAULT_BACKUP_PATH",
    "DEFAULT_INPUT_PATH",
    "DEFAULT_OUTPUT_PATH",
    "DEFAULT_REGISTRY",
    "DEFAULT_STRATEGY_NAME",
    "DiffImagesError",
    "Grayscale",
    "ImageLoadError",
    "ImageSaveError",
    "ImageTransform",
    "InvalidArguments",
    "InvalidDimensions",
    "InvalidStrategyOptions",
    "Invert",
    "OPAQUE_ALPHA",
    "PackedImage",
    "PipelineResult",
    "ProcessingContext",
    "ProcessingFailed",
    "StrategyRegistry",
    "UnknownStrategy",
    "image_to_packed32",
    "load_image",
    "main",
    "packed32_to_image",
    "packed32_to_planar3d",
    "parse_args",
    "planar3d_to_packed32",
    "process_image",
    "resolve_run_config",
    "run",
    "run_strategy",
    "save_pixels",
]
