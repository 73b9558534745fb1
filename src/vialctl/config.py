"""Configuration management for vialctl."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .color import DEFAULT_WHITE_POINT, WhitePoint, white_point_from_sequence
from .errors import ConfigParseError, InvalidWhitePoint

logger = logging.getLogger("vialctl")

KNOWN_KEYS = ("white_point",)


def get_app_data_dir() -> Path:
    """
    Get application config directory.

    Returns:
        Path to %APPDATA%/vialctl, $XDG_CONFIG_HOME/vialctl or ~/.config/vialctl
    """
    base = os.getenv("APPDATA") or os.getenv("XDG_CONFIG_HOME")
    if not base:
        base = os.path.expanduser("~/.config")
    return Path(base) / "vialctl"


def get_config_path() -> Path:
    """
    Get path to config.json file.

    Returns:
        Path to config.json
    """
    return get_app_data_dir() / "config.json"


def load_config(path: Optional[Path] = None) -> dict[str, Any]:
    """
    Load configuration from file.

    A missing default config is not an error: the tool works without one.
    A missing file passed explicitly is.

    Args:
        path: Config file to read (default: get_config_path())

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigParseError: If the file cannot be read or is not valid
    """
    config_path = path if path is not None else get_config_path()

    if not config_path.exists():
        if path is not None:
            raise ConfigParseError(f"config file {config_path} does not exist")
        logger.debug(f"No config file at {config_path}")
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    # JSONDecodeError and UnicodeDecodeError are both ValueError
    except (ValueError, OSError) as e:
        raise ConfigParseError(f"invalid config {config_path}: {e}") from e

    logger.debug(f"Loaded config from {config_path}")
    return validate_config(raw, config_path)


def validate_config(raw: Any, source: Optional[Path] = None) -> dict[str, Any]:
    """
    Validate and normalize configuration values.

    Args:
        raw: Decoded JSON document
        source: File the document came from, used in error messages

    Returns:
        Configuration dictionary holding only recognized keys; white_point
        is converted to a WhitePoint

    Raises:
        ConfigParseError: If the document is not an object or a value is invalid
    """
    where = source if source is not None else "config"

    if not isinstance(raw, dict):
        raise ConfigParseError(f"{where}: expected a JSON object at top level")

    for key in raw:
        if key not in KNOWN_KEYS:
            logger.debug(f"{where}: ignoring unknown key {key!r}")

    validated: dict[str, Any] = {}

    if raw.get("white_point") is not None:
        value = raw["white_point"]
        if not isinstance(value, list):
            raise ConfigParseError(
                f"{where}: white_point must be an array like [200, 255, 230]"
            )
        try:
            validated["white_point"] = white_point_from_sequence(value)
        except InvalidWhitePoint as e:
            raise ConfigParseError(f"{where}: white_point: {e}") from e

    return validated


def resolve_setting(layers: list[tuple[str, Any]]) -> tuple[Any, str]:
    """
    Return the first set value from an ordered list of (source, value) layers.

    Raises:
        ValueError: If no layer has a value
    """
    for source, value in layers:
        if value is not None:
            return value, source
    raise ValueError("no layer provides a value")


def resolve_white_point(
    cli_value: Optional[WhitePoint],
    config: dict[str, Any],
    config_path: Optional[Path] = None,
) -> tuple[WhitePoint, str]:
    """
    Resolve the white point: --white-point, then config file, then default.

    Returns:
        (white point, name of the layer it came from)
    """
    config_source = str(config_path if config_path is not None else get_config_path())
    return resolve_setting([
        ("--white-point", cli_value),
        (config_source, config.get("white_point")),
        ("default", DEFAULT_WHITE_POINT),
    ])
