"""Discovery of VialRGB keyboards and the solid color write sequence."""

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Callable, Optional

from . import transport
from .color import Color
from .errors import DeviceNotFound, DeviceNotSupported, PartialWriteFailure, TransportError
from .transport import DeviceInfo
from .vialrgb import (
    MSG_LEN,
    VIALRGB_EFFECT_OFF,
    VIALRGB_EFFECT_SOLID_COLOR,
    VIALRGB_PROTOCOL_VERSION,
    encode_keyboard_id_query,
    encode_protocol_version_query,
    encode_rgb_info_query,
    encode_save,
    encode_solid_color,
    encode_supported_effects_query,
    is_via_protocol_response,
    parse_rgb_info,
    parse_supported_effects,
    supports_vialrgb,
    to_hid_report,
)

logger = logging.getLogger("vialctl")

# Vial firmware puts this in the USB serial number
VIAL_SERIAL_NUMBER_MAGIC = "vial:f64c2b3c"

# Raw HID interface used by VIA and Vial
RAW_HID_USAGE_PAGE = 0xFF60
RAW_HID_USAGE = 0x61

QUERY_TIMEOUT_MS = 1000
MAX_EFFECT_QUERY_ROUNDS = 100

PRIMARY = "primary"
SECONDARY = "secondary"

EnumerateFn = Callable[[], list]
TransportFactory = Callable[[DeviceInfo], "transport.HidTransport"]


@dataclass(frozen=True)
class DeviceTarget:
    """Primary half plus, for split keyboards, the secondary half."""

    primary: DeviceInfo
    secondary: Optional[DeviceInfo] = None

    @property
    def is_split(self) -> bool:
        return self.secondary is not None

    def halves(self) -> list[tuple[str, DeviceInfo]]:
        halves = [(PRIMARY, self.primary)]
        if self.secondary is not None:
            halves.append((SECONDARY, self.secondary))
        return halves


def is_vial_candidate(info: DeviceInfo) -> bool:
    """Vial serial magic on the raw HID interface."""
    return (
        VIAL_SERIAL_NUMBER_MAGIC in info.serial_number
        and info.usage_page == RAW_HID_USAGE_PAGE
        and info.usage == RAW_HID_USAGE
    )


def query(hid_transport, message: bytes) -> bytes:
    """
    Send one message and read its response.

    Raises:
        TransportError: On I/O failure or if the device does not answer
    """
    hid_transport.write_report(to_hid_report(message))
    data = hid_transport.read_report(MSG_LEN, QUERY_TIMEOUT_MS)
    if not data:
        raise TransportError(
            f"no response from {hid_transport.info.describe()} "
            f"within {QUERY_TIMEOUT_MS} ms"
        )
    return data


def probe_vialrgb(hid_transport) -> None:
    """
    Check that an open interface is a Vial keyboard with VialRGB.

    Raises:
        DeviceNotSupported: If any capability check fails
        TransportError: On I/O failure
    """
    name = hid_transport.info.describe()

    if not is_via_protocol_response(query(hid_transport, encode_protocol_version_query())):
        raise DeviceNotSupported(f"{name} does not speak the VIA raw HID protocol")

    try:
        has_vialrgb = supports_vialrgb(query(hid_transport, encode_keyboard_id_query()))
    except ValueError as e:
        raise DeviceNotSupported(f"{name}: invalid Vial keyboard id response: {e}") from e
    if not has_vialrgb:
        raise DeviceNotSupported(f"{name} firmware does not advertise VialRGB")

    try:
        version, max_brightness = parse_rgb_info(query(hid_transport, encode_rgb_info_query()))
    except ValueError as e:
        raise DeviceNotSupported(f"{name}: invalid VialRGB info response: {e}") from e
    if version != VIALRGB_PROTOCOL_VERSION:
        raise DeviceNotSupported(f"{name}: unsupported Vial RGB protocol ({version})")

    logger.debug(f"{name}: VialRGB v{version}, max brightness {max_brightness}")


def get_supported_effects(hid_transport) -> set[int]:
    """
    Read the full list of supported VialRGB effects.

    Raises:
        DeviceNotSupported: If the list never terminates
        TransportError: On I/O failure
    """
    effects = {VIALRGB_EFFECT_OFF}
    max_effect = 0

    for _ in range(MAX_EFFECT_QUERY_ROUNDS):
        data = query(hid_transport, encode_supported_effects_query(max_effect))
        page, done = parse_supported_effects(data)
        effects.update(page)
        if done:
            return effects
        if not page or max(page) <= max_effect:
            break
        max_effect = max(page)

    raise DeviceNotSupported(
        f"{hid_transport.info.describe()} reported an unterminated effect list"
    )


def find_target(
    enumerate_fn: Optional[EnumerateFn] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> DeviceTarget:
    """
    Find the VialRGB keyboard to write to.

    The first supported interface is the primary half. A second supported
    interface with the same VID/PID is taken as the secondary half of a
    split keyboard.

    Raises:
        DeviceNotFound: If no Vial raw HID interface is connected
        DeviceNotSupported: If none of them has VialRGB
        TransportError: If no candidate could be probed, or one failed on I/O
    """
    enumerate_fn = enumerate_fn or transport.enumerate_devices
    transport_factory = transport_factory or transport.HidTransport

    candidates = [info for info in enumerate_fn() if is_vial_candidate(info)]
    if not candidates:
        raise DeviceNotFound("no Vial RGB device found")

    supported: list[DeviceInfo] = []
    failures: list[Exception] = []
    for info in candidates:
        try:
            with transport_factory(info) as hid_transport:
                probe_vialrgb(hid_transport)
        except (DeviceNotSupported, TransportError) as e:
            logger.debug(f"Skipping {info.describe()}: {e}")
            failures.append(e)
            continue
        supported.append(info)

    if not supported:
        if len(failures) == 1:
            raise failures[0]
        # An I/O failure (e.g. permission denied) is the one the user can fix
        transport_failures = [e for e in failures if isinstance(e, TransportError)]
        error_type = TransportError if transport_failures else DeviceNotSupported
        cause = (transport_failures or failures)[0]
        raise error_type("; ".join(str(e) for e in failures)) from cause

    primary = supported[0]
    halves = [
        info for info in supported[1:]
        if (info.vendor_id, info.product_id) == (primary.vendor_id, primary.product_id)
        and info.path != primary.path
    ]
    if len(halves) > 1:
        logger.warning(
            f"Found {len(halves) + 1} interfaces for {primary.describe()}, "
            f"using the first two"
        )

    target = DeviceTarget(primary, halves[0] if halves else None)
    logger.info(
        f"Target: {primary.describe()}" + (" (split keyboard)" if target.is_split else "")
    )
    return target


def apply_color(
    target: DeviceTarget,
    color: Color,
    save: bool = True,
    transport_factory: Optional[TransportFactory] = None,
) -> bytes:
    """
    Write the solid color report to every half of target.

    All halves are opened and checked for the solid color effect before the
    first write. Each report is written once per half, without retry and
    without reading a response.

    Args:
        target: Keyboard halves to write to
        color: Corrected color
        save: Also persist the setting to EEPROM
        transport_factory: Builds a transport for a DeviceInfo

    Returns:
        The report written to each half, report ID included

    Raises:
        DeviceNotSupported: If a half lacks the solid color effect
        TransportError: If opening a half or writing to the primary fails
        PartialWriteFailure: If the secondary write fails after the primary succeeded
    """
    transport_factory = transport_factory or transport.HidTransport
    reports = [to_hid_report(encode_solid_color(color))]
    if save:
        reports.append(to_hid_report(encode_save()))

    with ExitStack() as stack:
        opened = []
        for half, info in target.halves():
            opened.append((half, stack.enter_context(transport_factory(info))))

        for half, hid_transport in opened:
            if VIALRGB_EFFECT_SOLID_COLOR not in get_supported_effects(hid_transport):
                raise DeviceNotSupported(
                    f"{half} half ({hid_transport.info.describe()}) "
                    f"doesn't support solid color effect"
                )

        for half, hid_transport in opened:
            try:
                for report in reports:
                    hid_transport.write_report(report)
            except TransportError as e:
                if half == PRIMARY:
                    raise
                raise PartialWriteFailure(half, e) from e
            logger.debug(f"Wrote {len(reports)} report(s) to {half} half")

    return reports[0]
