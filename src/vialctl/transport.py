"""USB HID access through the hid library."""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import TransportError

logger = logging.getLogger("vialctl")


def _import_hid():
    # hid loads the native hidapi library at import time
    try:
        import hid
    except ImportError as e:
        raise TransportError(
            f"hidapi is not available ({e}). Install with: pip install hid"
        ) from e
    return hid


@dataclass(frozen=True)
class DeviceInfo:
    """One enumerated HID interface."""

    path: bytes
    vendor_id: int
    product_id: int
    serial_number: str = ""
    usage_page: int = 0
    usage: int = 0
    manufacturer: str = ""
    product: str = ""
    interface_number: int = -1

    @classmethod
    def from_hid(cls, info: dict) -> "DeviceInfo":
        """Build from a hid.enumerate() entry."""
        return cls(
            path=info["path"],
            vendor_id=info.get("vendor_id", 0),
            product_id=info.get("product_id", 0),
            serial_number=info.get("serial_number") or "",
            usage_page=info.get("usage_page", 0),
            usage=info.get("usage", 0),
            manufacturer=info.get("manufacturer_string") or "",
            product=info.get("product_string") or "",
            interface_number=info.get("interface_number", -1),
        )

    @property
    def name(self) -> str:
        return f"{self.manufacturer or '?'} {self.product or '?'}"

    def describe(self) -> str:
        return f"{self.name} (VID=0x{self.vendor_id:04X} PID=0x{self.product_id:04X})"


def enumerate_devices() -> list[DeviceInfo]:
    """
    List all HID interfaces on the system.

    Raises:
        TransportError: If hidapi is unavailable or enumeration fails
    """
    hid = _import_hid()
    try:
        return [DeviceInfo.from_hid(info) for info in hid.enumerate()]
    except Exception as e:
        raise TransportError(f"failed to enumerate HID devices: {e}") from e


class HidTransport:
    """Single HID interface: open, write_report, read_report, close."""

    def __init__(self, info: DeviceInfo):
        self.info = info
        self._device = None

    def open(self) -> None:
        """
        Open the HID interface.

        Raises:
            TransportError: If the device cannot be opened (busy, permissions)
        """
        if self._device is not None:
            return
        hid = _import_hid()
        try:
            self._device = hid.Device(path=self.info.path)
        except Exception as e:
            raise TransportError(
                f"failed to open {self.info.describe()}: {e}"
            ) from e
        logger.debug(f"Opened {self.info.describe()}")

    def close(self) -> None:
        """Close the HID interface. Safe to call more than once."""
        device, self._device = self._device, None
        if device is None:
            return
        try:
            device.close()
        except Exception as e:
            logger.debug(f"Error while closing {self.info.describe()}: {e}")
        else:
            logger.debug(f"Closed {self.info.describe()}")

    def is_open(self) -> bool:
        return self._device is not None

    def write_report(self, report: bytes) -> None:
        """
        Write one report (report ID included) with a single blocking call.

        Raises:
            TransportError: If the device is not open or the write fails
        """
        if self._device is None:
            raise TransportError(f"{self.info.describe()} is not open")
        try:
            written = self._device.write(bytes(report))
        except Exception as e:
            raise TransportError(
                f"failed to write to {self.info.describe()}: {e}"
            ) from e
        if isinstance(written, int) and 0 <= written < len(report):
            raise TransportError(
                f"short write to {self.info.describe()}: {written} of {len(report)} bytes"
            )

    def read_report(self, size: int, timeout_ms: int = 1000) -> bytes:
        """
        Read one input report.

        Returns:
            Report bytes, or b"" if nothing arrived before the timeout

        Raises:
            TransportError: If the device is not open or the read fails
        """
        if self._device is None:
            raise TransportError(f"{self.info.describe()} is not open")
        try:
            data: Optional[bytes] = self._device.read(size, timeout=timeout_ms)
        except Exception as e:
            raise TransportError(
                f"failed to read from {self.info.describe()}: {e}"
            ) from e
        return bytes(data or b"")

    def __enter__(self) -> "HidTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
