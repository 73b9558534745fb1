"""Tests for transport module."""

from unittest.mock import MagicMock, patch

import pytest

from vialctl import transport
from vialctl.errors import TransportError
from vialctl.transport import DeviceInfo, HidTransport

HID_ENTRY = {
    "path": b"/dev/hidraw3",
    "vendor_id": 0x4653,
    "product_id": 0x0001,
    "serial_number": "vial:f64c2b3c",
    "release_number": 0x0001,
    "manufacturer_string": "Vial",
    "product_string": "Test Board",
    "usage_page": 0xFF60,
    "usage": 0x61,
    "interface_number": 1,
}


@pytest.fixture
def mock_hid():
    hid = MagicMock()
    hid.enumerate.return_value = [HID_ENTRY]
    with patch("vialctl.transport._import_hid", return_value=hid):
        yield hid


class TestDeviceInfo:
    """Tests for DeviceInfo."""

    def test_from_hid(self):
        info = DeviceInfo.from_hid(HID_ENTRY)
        assert info.path == b"/dev/hidraw3"
        assert info.vendor_id == 0x4653
        assert info.serial_number == "vial:f64c2b3c"
        assert info.usage_page == 0xFF60
        assert info.usage == 0x61
        assert info.product == "Test Board"

    def test_from_hid_missing_strings(self):
        entry = dict(HID_ENTRY, serial_number=None, manufacturer_string=None, product_string=None)
        info = DeviceInfo.from_hid(entry)
        assert info.serial_number == ""
        assert info.name == "? ?"

    def test_describe(self):
        info = DeviceInfo.from_hid(HID_ENTRY)
        assert info.describe() == "Vial Test Board (VID=0x4653 PID=0x0001)"


class TestEnumerate:
    """Tests for enumerate_devices function."""

    def test_enumerate(self, mock_hid):
        assert transport.enumerate_devices() == [DeviceInfo.from_hid(HID_ENTRY)]

    def test_enumerate_error(self, mock_hid):
        mock_hid.enumerate.side_effect = OSError("boom")
        with pytest.raises(TransportError, match="enumerate"):
            transport.enumerate_devices()

    def test_hidapi_missing(self):
        with patch.dict("sys.modules", {"hid": None}):
            with pytest.raises(TransportError, match="pip install hid"):
                transport.enumerate_devices()


class TestHidTransport:
    """Tests for HidTransport."""

    def test_open_by_path(self, mock_hid):
        info = DeviceInfo.from_hid(HID_ENTRY)
        t = HidTransport(info)
        t.open()
        mock_hid.Device.assert_called_once_with(path=b"/dev/hidraw3")
        assert t.is_open()

    def test_open_error(self, mock_hid):
        mock_hid.Device.side_effect = OSError("Permission denied")
        t = HidTransport(DeviceInfo.from_hid(HID_ENTRY))
        with pytest.raises(TransportError, match="Permission denied"):
            t.open()
        assert not t.is_open()

    def test_write_report(self, mock_hid):
        device = mock_hid.Device.return_value
        device.write.return_value = 33
        with HidTransport(DeviceInfo.from_hid(HID_ENTRY)) as t:
            t.write_report(b"\x00" + b"\x09" + b"\x00" * 31)
        device.write.assert_called_once_with(b"\x00\x09" + b"\x00" * 31)
        device.close.assert_called_once()

    def test_write_error(self, mock_hid):
        device = mock_hid.Device.return_value
        device.write.side_effect = OSError("device unplugged")
        with HidTransport(DeviceInfo.from_hid(HID_ENTRY)) as t:
            with pytest.raises(TransportError, match="device unplugged"):
                t.write_report(b"\x00" * 33)
        # Closed even though the write failed
        device.close.assert_called_once()

    def test_short_write(self, mock_hid):
        mock_hid.Device.return_value.write.return_value = 5
        with HidTransport(DeviceInfo.from_hid(HID_ENTRY)) as t:
            with pytest.raises(TransportError, match="short write"):
                t.write_report(b"\x00" * 33)

    def test_write_when_closed(self):
        t = HidTransport(DeviceInfo.from_hid(HID_ENTRY))
        with pytest.raises(TransportError, match="not open"):
            t.write_report(b"\x00")

    def test_read_report(self, mock_hid):
        device = mock_hid.Device.return_value
        device.read.return_value = b"\x01\x00\x09"
        with HidTransport(DeviceInfo.from_hid(HID_ENTRY)) as t:
            assert t.read_report(32, timeout_ms=500) == b"\x01\x00\x09"
        device.read.assert_called_once_with(32, timeout=500)

    def test_read_timeout_returns_empty(self, mock_hid):
        mock_hid.Device.return_value.read.return_value = b""
        with HidTransport(DeviceInfo.from_hid(HID_ENTRY)) as t:
            assert t.read_report(32) == b""

    def test_read_error(self, mock_hid):
        mock_hid.Device.return_value.read.side_effect = OSError("gone")
        with HidTransport(DeviceInfo.from_hid(HID_ENTRY)) as t:
            with pytest.raises(TransportError, match="gone"):
                t.read_report(32)

    def test_close_twice(self, mock_hid):
        device = mock_hid.Device.return_value
        t = HidTransport(DeviceInfo.from_hid(HID_ENTRY))
        t.open()
        t.close()
        t.close()
        device.close.assert_called_once()

    def test_close_error_is_logged(self, mock_hid):
        mock_hid.Device.return_value.close.side_effect = OSError("already gone")
        t = HidTransport(DeviceInfo.from_hid(HID_ENTRY))
        t.open()
        t.close()
        assert not t.is_open()
