"""Run configuration: defaults, positional-argument resolution, and config files."""
from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import yaml

from .errors import InvalidArguments
from .strategies import DEFAULT_STRATEGY_NAME

LOGGER = logging.getLogger("diff_images")

DEFAULT_INPUT_PATH = Path("tiger.bmp")
DEFAULT_OUTPUT_PATH = Path("out/backupCopy.bmp")
DEFAULT_BACKUP_PATH = Path("out/backupCopy.bmp")

MAX_POSITIONALS = 3

CONFIG_KEYS = frozenset({"strategy", "input", "output", "backup", "log_level", "options"})


@dataclasses.dataclass(frozen=True)
class RunConfig:
    """Everything a single processing run needs, passed explicitly.

    Attributes:
        strategy_name: Name of the registered strategy to apply.
        input_path: Image to read.
        output_path: Where the processed image is written.
        backup_path: Where the strategy may write a copy of the original.
        strategy_options: Keyword options used to build the strategy.
    """

    strategy_name: str = DEFAULT_STRATEGY_NAME
    input_path: Path = DEFAULT_INPUT_PATH
    output_path: Path = DEFAULT_OUTPUT_PATH
    backup_path: Path = DEFAULT_BACKUP_PATH
    strategy_options: Mapping[str, Any] = dataclasses.field(default_factory=dict)


def resolve_run_config(
    positionals: Sequence[str],
    *,
    base: Optional[RunConfig] = None,
    backup_path: Optional[Path] = None,
    strategy_options: Optional[Mapping[str, Any]] = None,
) -> RunConfig:
    """Map 0-3 positional arguments onto ``(strategy, input, output)``.

    Positions left out keep the value from ``base`` (the built-in defaults when
    ``base`` is omitted).

    Raises:
        InvalidArguments: If more than three positionals are supplied.
    """
    if len(positionals) > MAX_POSITIONALS:
        raise InvalidArguments(
            f"Expected at most {MAX_POSITIONALS} positional arguments, got {len(positionals)}"
        )
    config = base or RunConfig()
    changes: dict[str, Any] = {}
    if len(positionals) >= 1:
        changes["strategy_name"] = positionals[0]
    if len(positionals) >= 2:
        changes["input_path"] = Path(positionals[1])
    if len(positionals) >= 3:
        changes["output_path"] = Path(positionals[2])
    if backup_path is not None:
        changes["backup_path"] = Path(backup_path)
    if strategy_options:
        merged = dict(config.strategy_options)
        merged.update(strategy_options)
        changes["strategy_options"] = merged
    return dataclasses.replace(config, **changes)


def load_config_data(path: Path) -> Mapping[str, Any]:
    """Load configuration from JSON or YAML file.

    Args:
        path: Path to configuration file (.json, .yaml, or .yml).

    Returns:
        Dictionary mapping configuration keys to values.

    Raises:
        FileNotFoundError: If configuration file doesn't exist.
        ValueError: If file content is not a valid mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(path.read_text())
        else:
            data = json.loads(path.read_text())
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ValueError(f"Failed to parse configuration file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration file {path} must contain a mapping of option names to values")
    return data


def normalise_config_keys(raw: Mapping[str, Any], *, source: Path) -> dict[str, Any]:
    """Convert configuration keys to underscore format and reject unknown ones.

    Raises:
        ValueError: If a key is not a string or is not a recognised option.
    """
    normalised: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            raise ValueError("Configuration keys must be strings")
        name = key.replace("-", "_")
        if name not in CONFIG_KEYS:
            raise ValueError(f"Unknown configuration option '{key}' in {source}")
        normalised[name] = value
    options = normalised.get("options")
    if options is not None and not isinstance(options, Mapping):
        raise ValueError(f"'options' in {source} must be a mapping of strategy option names to values")
    return normalised


def config_from_file(path: Path) -> tuple[RunConfig, Optional[str]]:
    """Build a base :class:`RunConfig` from a configuration file.

    Returns:
        The configuration and the ``log_level`` the file requests, if any.
    """
    data = normalise_config_keys(load_config_data(path), source=path)
    changes: dict[str, Any] = {}
    if "strategy" in data:
        changes["strategy_name"] = str(data["strategy"])
    for key, field in (("input", "input_path"), ("output", "output_path"), ("backup", "backup_path")):
        if key in data:
            changes[field] = Path(data[key])
    if data.get("options"):
        changes["strategy_options"] = dict(data["options"])
    LOGGER.debug("Configuration from %s: %s", path, changes)
    log_level = data.get("log_level")
    return RunConfig(**changes), None if log_level is None else str(log_level).upper()


def parse_option(text: str) -> tuple[str, Any]:
    """Parse a ``KEY=VALUE`` strategy option.

    Values are interpreted as booleans, integers, or floats where possible and
    are otherwise kept as strings.

    Raises:
        ValueError: If ``text`` has no ``=`` or an empty key.
    """
    key, sep, raw = text.partition("=")
    key = key.strip().replace("-", "_")
    if not sep or not key:
        raise ValueError(f"Expected KEY=VALUE, got {text!r}")
    value = raw.strip()
    lowered = value.lower()
    if lowered in {"true", "yes", "on"}:
        return key, True
    if lowered in {"false", "no", "off"}:
        return key, False
    for convert in (int, float):
        try:
            return key, convert(value)
        except ValueError:
            continue
    return key, value


__all__ = [
    "DEFAULT_BACKUP_PATH",
    "DEFAULT_INPUT_PATH",
    "DEFAULT_OUTPUT_PATH",
    "MAX_POSITIONALS",
    "RunConfig",
    "config_from_file",
    "load_config_data",
    "normalise_config_keys",
    "parse_option",
    "resolve_run_config",
]
