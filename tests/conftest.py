"""Shared fixtures: a fake HID bus speaking the Vial protocol."""

import logging
import struct

import pytest

from vialctl import transport
from vialctl.errors import TransportError
from vialctl.transport import DeviceInfo

VIAL_SERIAL = "vial:f64c2b3c"

DEFAULT_EFFECTS = (1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19, 20)


def _pad(data: bytes) -> bytes:
    return data.ljust(32, b"\x00")


class FakeKeyboard:
    """Firmware side of one raw HID interface."""

    def __init__(
        self,
        info: DeviceInfo,
        via: bool = True,
        vial_protocol: int = 6,
        vialrgb: bool = True,
        rgb_version: int = 1,
        effects=DEFAULT_EFFECTS,
        answers: bool = True,
        fail_open: bool = False,
        fail_writes: bool = False,
    ):
        self.info = info
        self.via = via
        self.vial_protocol = vial_protocol
        self.vialrgb = vialrgb
        self.rgb_version = rgb_version
        self.effects = sorted(effects)
        self.answers = answers
        self.fail_open = fail_open
        self.fail_writes = fail_writes
        self.writes: list[bytes] = []
        self.opened = 0
        self.closed = 0

    def respond(self, message: bytes) -> bytes:
        if message[0] == 0x01:
            return _pad(bytes([0x01, 0x00, 0x09]) if self.via else b"\xff")
        if message[0] == 0xFE and message[1] == 0x00:
            flags = 0x01 if self.vialrgb else 0x00
            return _pad(struct.pack("<I", self.vial_protocol) + b"\x5a" * 8 + bytes([flags]))
        if message[0] == 0x08 and message[1] == 0x40:
            return _pad(bytes([0x08, 0x40]) + struct.pack("<H", self.rgb_version) + bytes([200]))
        if message[0] == 0x08 and message[1] == 0x42:
            (greater_than,) = struct.unpack_from("<H", message, 2)
            page = [e for e in self.effects if e > greater_than][:15]
            body = b"".join(struct.pack("<H", e) for e in page)
            if len(page) < 15:
                body += b"\xff\xff"
            return _pad(bytes([0x08, 0x42]) + body)
        return _pad(message)

    def messages(self, command: int) -> list[bytes]:
        """Written reports whose command byte (after the report ID) matches."""
        return [report for report in self.writes if report[1] == command]


class FakeTransport:
    """Drop-in for HidTransport backed by a FakeKeyboard."""

    def __init__(self, keyboard: FakeKeyboard):
        self.keyboard = keyboard
        self.info = keyboard.info
        self._open = False
        self._pending: list[bytes] = []

    def open(self) -> None:
        if self.keyboard.fail_open:
            raise TransportError(f"failed to open {self.info.describe()}: permission denied")
        self._open = True
        self.keyboard.opened += 1

    def close(self) -> None:
        if self._open:
            self._open = False
            self.keyboard.closed += 1

    def write_report(self, report: bytes) -> None:
        assert self._open, "write on closed transport"
        message = bytes(report[1:])
        if self.keyboard.fail_writes and message[0] in (0x07, 0x09):
            raise TransportError(f"failed to write to {self.info.describe()}: device unplugged")
        self.keyboard.writes.append(bytes(report))
        self._pending.append(self.keyboard.respond(message))

    def read_report(self, size: int, timeout_ms: int = 1000) -> bytes:
        assert self._open, "read on closed transport"
        if not self.keyboard.answers or not self._pending:
            return b""
        return self._pending.pop(0)[:size]

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class FakeBus:
    """Set of HID interfaces returned by enumeration."""

    def __init__(self):
        self.keyboards: dict[bytes, FakeKeyboard] = {}
        self.other_devices: list[DeviceInfo] = []

    def add_keyboard(
        self,
        path: bytes = b"/dev/hidraw0",
        vendor_id: int = 0x4653,
        product_id: int = 0x0001,
        serial_number: str = VIAL_SERIAL,
        usage_page: int = 0xFF60,
        usage: int = 0x61,
        product: str = "Test Board",
        **firmware,
    ) -> FakeKeyboard:
        info = DeviceInfo(
            path=path,
            vendor_id=vendor_id,
            product_id=product_id,
            serial_number=serial_number,
            usage_page=usage_page,
            usage=usage,
            manufacturer="Vial",
            product=product,
            interface_number=1,
        )
        keyboard = FakeKeyboard(info, **firmware)
        self.keyboards[path] = keyboard
        return keyboard

    def add_device(self, **fields) -> DeviceInfo:
        info = DeviceInfo(**fields)
        self.other_devices.append(info)
        return info

    def enumerate(self) -> list[DeviceInfo]:
        return self.other_devices + [kb.info for kb in self.keyboards.values()]

    def transport(self, info: DeviceInfo) -> FakeTransport:
        return FakeTransport(self.keyboards[info.path])


@pytest.fixture
def fake_bus(monkeypatch):
    """Replace real HID enumeration and transport with a FakeBus."""
    bus = FakeBus()
    monkeypatch.setattr(transport, "enumerate_devices", bus.enumerate)
    monkeypatch.setattr(transport, "HidTransport", bus.transport)
    return bus


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Never read the real user config."""
    config_dir = tmp_path / "config" / "vialctl"
    monkeypatch.setattr("vialctl.config.get_app_data_dir", lambda: config_dir)
    return config_dir


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("vialctl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
