"""Parsing and correction of the color sent to the keyboard."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import InvalidBrightness, InvalidColorFormat, InvalidWhitePoint

logger = logging.getLogger("vialctl")

DEFAULT_BRIGHTNESS = 100

HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")
DECIMAL_RE = re.compile(r"^[0-9]+$")


@dataclass(frozen=True)
class Color:
    """8-bit RGB triple."""

    red: int
    green: int
    blue: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.red, self.green, self.blue)


@dataclass(frozen=True)
class WhitePoint:
    """
    Per-channel output ceiling used to compensate LED tint.

    A channel of 255 leaves that channel untouched, lower values dim it
    proportionally (e.g. a green-biased LED stack gets a lower green value).
    """

    red: int
    green: int
    blue: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.red, self.green, self.blue)


DEFAULT_WHITE_POINT = WhitePoint(255, 255, 255)


def _scale(value: int, numerator: int, denominator: int) -> int:
    """value * numerator / denominator, rounded half up in integer math."""
    return (2 * value * numerator + denominator) // (2 * denominator)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def parse_hex_color(color_str: str) -> Color:
    """
    Parse a hex color string.

    Args:
        color_str: "RRGGBB" or "#RRGGBB", case-insensitive

    Returns:
        Parsed color

    Raises:
        InvalidColorFormat: If the string is not 6 hex digits
    """
    match = HEX_COLOR_RE.match(color_str.strip())
    if not match:
        raise InvalidColorFormat(
            f"color must be 6 hex characters (0-9, a-f), e.g. ff00ff, got {color_str!r}"
        )

    hex_code = match.group(1)
    return Color(
        int(hex_code[0:2], 16),
        int(hex_code[2:4], 16),
        int(hex_code[4:6], 16),
    )


def format_hex_color(color: Color) -> str:
    """Format color as lowercase "rrggbb"."""
    return f"{color.red:02x}{color.green:02x}{color.blue:02x}"


def white_point_from_sequence(values: Iterable) -> WhitePoint:
    """
    Build a white point from three integer channel values.

    Raises:
        InvalidWhitePoint: On wrong count, non-integers or values outside 1..255
    """
    channels = list(values)
    if len(channels) != 3:
        raise InvalidWhitePoint(
            "expected 3 comma-separated values, e.g. 200,255,230"
        )

    for name, value in zip(("red", "green", "blue"), channels):
        # bool is an int subclass, JSON true/false must not pass as 1/0
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidWhitePoint(f"{name}: expected an integer, got {value!r}")
        if not (1 <= value <= 255):
            raise InvalidWhitePoint(
                f"{name}: white point channels must be 1-255, got {value}"
            )

    return WhitePoint(*channels)


def parse_white_point(value: str) -> WhitePoint:
    """
    Parse "R,G,B" (spaces allowed) into a white point.

    Raises:
        InvalidWhitePoint: If the value cannot be parsed or is out of range
    """
    parts = value.split(",")
    if len(parts) != 3:
        raise InvalidWhitePoint(
            "expected 3 comma-separated values, e.g. 200,255,230"
        )

    channels = []
    for name, part in zip(("red", "green", "blue"), parts):
        part = part.strip()
        if not DECIMAL_RE.match(part):
            raise InvalidWhitePoint(f"{name}: invalid value {part!r}")
        channels.append(int(part))

    return white_point_from_sequence(channels)


def apply_brightness(color: Color, brightness: int) -> Color:
    """
    Scale every channel by brightness/100.

    Raises:
        InvalidBrightness: If brightness is not an integer in 0..100
    """
    if isinstance(brightness, bool) or not isinstance(brightness, int):
        raise InvalidBrightness(f"brightness must be an integer, got {brightness!r}")
    if not (0 <= brightness <= 100):
        raise InvalidBrightness(f"brightness must be in range 0..100, got {brightness}")

    return Color(*(
        max(0, min(255, _scale(channel, brightness, 100)))
        for channel in color.as_tuple()
    ))


def apply_white_point(color: Color, white_point: WhitePoint) -> Color:
    """Scale every channel by the matching white point channel / 255."""
    return Color(*(
        _scale(channel, ceiling, 255)
        for channel, ceiling in zip(color.as_tuple(), white_point.as_tuple())
    ))


def resolve_color(
    color_str: str,
    brightness: Optional[int] = None,
    white_point: Optional[WhitePoint] = None,
) -> Color:
    """
    Compute the color to transmit.

    Brightness is applied before the white point: the white point is a
    hardware calibration ceiling, independent of the requested brightness.

    Args:
        color_str: Hex color, with or without "#"
        brightness: Percentage 0..100 (default 100)
        white_point: Calibration ceiling (default full-scale white)

    Returns:
        Corrected color

    Raises:
        InvalidColorFormat: If color_str is not a 6-digit hex color
        InvalidBrightness: If brightness is out of range
    """
    color = parse_hex_color(color_str)

    if brightness is None:
        brightness = DEFAULT_BRIGHTNESS
    scaled = apply_brightness(color, brightness)
    if brightness == 0:
        logger.warning("brightness 0 will turn the LEDs off")

    if white_point is None:
        white_point = DEFAULT_WHITE_POINT
    corrected = apply_white_point(scaled, white_point)
    if white_point != DEFAULT_WHITE_POINT:
        logger.info(
            "Color correction: white_point=%s, RGB%s -> RGB%s",
            white_point.as_tuple(), scaled.as_tuple(), corrected.as_tuple(),
        )

    return corrected


def rgb_to_hsv(color: Color) -> tuple[int, int, int]:
    """
    Convert RGB to QMK-scaled HSV.

    Args:
        color: Color to convert

    Returns:
        (hue, saturation, value), each in 0..255
    """
    r_norm = color.red / 255.0
    g_norm = color.green / 255.0
    b_norm = color.blue / 255.0

    max_val = max(r_norm, g_norm, b_norm)
    min_val = min(r_norm, g_norm, b_norm)
    delta = max_val - min_val

    # Gray has no hue
    if delta == 0:
        hue_degrees = 0.0
    elif max_val == r_norm:
        hue_degrees = 60 * (((g_norm - b_norm) / delta) % 6)
    elif max_val == g_norm:
        hue_degrees = 60 * (((b_norm - r_norm) / delta) + 2)
    else:
        hue_degrees = 60 * (((r_norm - g_norm) / delta) + 4)

    saturation = 0.0 if max_val == 0 else delta / max_val

    # 360 degrees wraps back to red
    hue = _round_half_up(hue_degrees * 255 / 360) % 256
    return hue, _round_half_up(saturation * 255), _round_half_up(max_val * 255)
