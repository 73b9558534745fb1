"""Vial / VIA / VialRGB raw HID message encoding and response parsing."""

import struct

from .color import Color, rgb_to_hsv

# Raw HID messages are 32 bytes in both directions
MSG_LEN = 32

# hidapi needs the report ID in front of every write
HID_REPORT_ID = 0x00

# VIA protocol constants
VIA_GET_PROTOCOL_VERSION = 0x01
VIA_LIGHTING_SET_VALUE = 0x07
VIA_LIGHTING_GET_VALUE = 0x08
VIA_LIGHTING_SAVE = 0x09

# Vial protocol constants
VIAL_PREFIX = 0xFE
VIAL_GET_KEYBOARD_ID = 0x00
VIAL_MIN_RGB_PROTOCOL = 4
VIAL_FLAG_VIALRGB = 0x01

# VialRGB value IDs (sub-commands of lighting get/set)
VIALRGB_GET_INFO = 0x40
VIALRGB_SET_MODE = 0x41
VIALRGB_GET_SUPPORTED = 0x42

VIALRGB_PROTOCOL_VERSION = 1

VIALRGB_EFFECT_OFF = 0
VIALRGB_EFFECT_SOLID_COLOR = 2

# Terminator in the supported-effects list
VIALRGB_EFFECTS_END = 0xFFFF

DEFAULT_EFFECT_SPEED = 128

# Expected answer to VIA_GET_PROTOCOL_VERSION from a raw HID VIA keyboard
VIA_PROTOCOL_RESPONSE = bytes([0x01, 0x00, 0x09])


def build_message(*payload: int) -> bytes:
    """
    Build a zero-padded 32-byte message.

    Raises:
        ValueError: If payload is longer than MSG_LEN or a byte is out of range
    """
    if len(payload) > MSG_LEN:
        raise ValueError(f"message must be <= {MSG_LEN} bytes, got {len(payload)}")
    return bytes(payload).ljust(MSG_LEN, b"\x00")


def to_hid_report(message: bytes) -> bytes:
    """Prepend the report ID expected by hidapi."""
    return bytes([HID_REPORT_ID]) + message


def encode_protocol_version_query() -> bytes:
    return build_message(VIA_GET_PROTOCOL_VERSION)


def encode_keyboard_id_query() -> bytes:
    return build_message(VIAL_PREFIX, VIAL_GET_KEYBOARD_ID)


def encode_rgb_info_query() -> bytes:
    return build_message(VIA_LIGHTING_GET_VALUE, VIALRGB_GET_INFO)


def encode_supported_effects_query(greater_than: int) -> bytes:
    """Ask for supported effect IDs strictly greater than greater_than."""
    return build_message(
        VIA_LIGHTING_GET_VALUE,
        VIALRGB_GET_SUPPORTED,
        *struct.pack("<H", greater_than),
    )


def encode_set_mode(mode: int, speed: int, hue: int, saturation: int, value: int) -> bytes:
    """
    Encode VialRGB set mode.

    Layout: [0x07, 0x41, mode_lo, mode_hi, speed, h, s, v], zero padded.
    """
    return build_message(
        VIA_LIGHTING_SET_VALUE,
        VIALRGB_SET_MODE,
        *struct.pack("<H", mode),
        speed,
        hue,
        saturation,
        value,
    )


def encode_solid_color(color: Color, speed: int = DEFAULT_EFFECT_SPEED) -> bytes:
    """
    Encode the "solid color" report for color.

    VialRGB takes HSV, so the RGB triple is converted on the way out.
    """
    hue, saturation, value = rgb_to_hsv(color)
    return encode_set_mode(VIALRGB_EFFECT_SOLID_COLOR, speed, hue, saturation, value)


def encode_save() -> bytes:
    return build_message(VIA_LIGHTING_SAVE)


def is_via_protocol_response(data: bytes) -> bool:
    return bytes(data[0:3]) == VIA_PROTOCOL_RESPONSE


def parse_keyboard_id(data: bytes) -> tuple[int, int]:
    """
    Parse the Vial keyboard ID response.

    Returns:
        (vial protocol version, feature flags)

    Raises:
        ValueError: If the response is too short
    """
    if len(data) < 13:
        raise ValueError(f"keyboard id response too short ({len(data)} bytes)")
    (vial_protocol,) = struct.unpack_from("<I", bytes(data), 0)
    return vial_protocol, data[12]


def supports_vialrgb(data: bytes) -> bool:
    """True if the keyboard ID response advertises VialRGB."""
    vial_protocol, flags = parse_keyboard_id(data)
    return vial_protocol >= VIAL_MIN_RGB_PROTOCOL and bool(flags & VIAL_FLAG_VIALRGB)


def parse_rgb_info(data: bytes) -> tuple[int, int]:
    """
    Parse the VialRGB info response.

    Returns:
        (VialRGB protocol version, maximum brightness)
    """
    if len(data) < 5:
        raise ValueError(f"VialRGB info response too short ({len(data)} bytes)")
    (version,) = struct.unpack_from("<H", bytes(data), 2)
    return version, data[4]


def parse_supported_effects(data: bytes) -> tuple[list[int], bool]:
    """
    Parse one page of the supported effects list.

    Returns:
        (effect IDs on this page, True if the list terminator was seen)
    """
    effects = []
    for offset in range(2, MSG_LEN - 1, 2):
        if offset + 2 > len(data):
            break
        (value,) = struct.unpack_from("<H", bytes(data), offset)
        if value == VIALRGB_EFFECTS_END:
            return effects, True
        effects.append(value)
    return effects, False
