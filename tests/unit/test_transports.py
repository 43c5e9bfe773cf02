"""Unit tests for the pyserial and hidapi transports.

The hardware libraries are replaced by mocks through ``sys.modules`` so the
tests run without devices or the libraries installed.
"""

from __future__ import annotations

import asyncio
import sys
from unittest.mock import MagicMock, patch

import pytest

from calbench.errors import TransportClosedError, TransportIOError, TransportOpenError
from calbench.hid_device import HidTransport, parse_hid_id
from calbench.serial_port import SerialSettings, SerialTransport
from calbench.transport import ByteTransport

# ---------------------------------------------------------------------------
# Serial
# ---------------------------------------------------------------------------


def _make_mock_serial() -> tuple[MagicMock, MagicMock]:
    """Return (mock_module, mock_port) for patching pyserial."""
    mock_module = MagicMock()
    mock_port = MagicMock()
    mock_port.read.return_value = b""
    mock_module.Serial.return_value = mock_port
    return mock_module, mock_port


class TestSerialSettings:
    def test_defaults(self) -> None:
        settings = SerialSettings()
        assert settings.baudrate == 9600
        assert settings.bytesize == 8
        assert settings.parity == "N"
        assert settings.stopbits == 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"baudrate": 0},
            {"bytesize": 9},
            {"parity": "X"},
            {"stopbits": 3},
            {"poll_interval": 0},
            {"write_timeout": -1},
        ],
    )
    def test_invalid(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            SerialSettings(**kwargs)

    def test_frozen(self) -> None:
        settings = SerialSettings()
        with pytest.raises(AttributeError):
            settings.baudrate = 4800  # type: ignore[misc]


class TestSerialTransport:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(SerialTransport("/dev/ttyUSB0"), ByteTransport)

    @pytest.mark.asyncio
    async def test_open_applies_settings(self) -> None:
        mock_module, mock_port = _make_mock_serial()
        settings = SerialSettings(baudrate=4800, dtr=True, rts=False)
        transport = SerialTransport("/dev/ttyUSB0", settings)
        with patch.dict(sys.modules, {"serial": mock_module}):
            await transport.open()
        assert transport.is_open
        assert mock_port.port == "/dev/ttyUSB0"
        assert mock_port.baudrate == 4800
        assert mock_port.dtr is True
        assert mock_port.rts is False
        assert mock_port.rtscts is False
        assert mock_port.xonxoff is False
        mock_port.open.assert_called_once()

    @pytest.mark.asyncio
    async def test_open_failure(self) -> None:
        mock_module, mock_port = _make_mock_serial()
        mock_port.open.side_effect = OSError("busy")
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": mock_module}):
            with pytest.raises(TransportOpenError, match="busy"):
                await transport.open()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_missing_library(self) -> None:
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": None}):
            with pytest.raises(TransportOpenError, match="pip install pyserial"):
                await transport.open()

    @pytest.mark.asyncio
    async def test_write_and_read(self) -> None:
        mock_module, mock_port = _make_mock_serial()
        mock_port.read.return_value = b"\x01\x02"
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": mock_module}):
            await transport.open()
        await transport.write(b"d\r")
        mock_port.write.assert_called_once_with(b"d\r")
        assert await transport.read(8) == b"\x01\x02"
        mock_port.read.assert_called_once_with(8)

    @pytest.mark.asyncio
    async def test_io_error_mapped(self) -> None:
        mock_module, mock_port = _make_mock_serial()
        mock_port.read.side_effect = OSError("device disconnected")
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": mock_module}):
            await transport.open()
        with pytest.raises(TransportIOError):
            await transport.read(1)

    @pytest.mark.asyncio
    async def test_discard_input(self) -> None:
        mock_module, mock_port = _make_mock_serial()
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": mock_module}):
            await transport.open()
        await transport.discard_input()
        mock_port.reset_input_buffer.assert_called_once()
        mock_port.reset_output_buffer.assert_called_once()

    @pytest.mark.asyncio
    async def test_closed_operations_raise(self) -> None:
        transport = SerialTransport("COM3")
        with pytest.raises(TransportClosedError):
            await transport.write(b"x")
        with pytest.raises(TransportClosedError):
            await transport.read(1)

    @pytest.mark.asyncio
    async def test_close_idempotent(self) -> None:
        mock_module, mock_port = _make_mock_serial()
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": mock_module}):
            await transport.open()
        transport.close()
        transport.close()
        mock_port.close.assert_called_once()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_reopen_releases_previous_handle(self) -> None:
        mock_module, _ = _make_mock_serial()
        first, second = MagicMock(), MagicMock()
        mock_module.Serial.side_effect = [first, second]
        transport = SerialTransport("COM3")
        with patch.dict(sys.modules, {"serial": mock_module}):
            await transport.open()
            await transport.open()
        first.close.assert_called_once()
        second.close.assert_not_called()


# ---------------------------------------------------------------------------
# HID
# ---------------------------------------------------------------------------


def _make_mock_hid(reports: list[list[int]] | None = None) -> tuple[MagicMock, MagicMock]:
    """Return (mock_module, mock_device) for patching hidapi."""
    mock_module = MagicMock()
    mock_module.enumerate.return_value = [{"path": b"/dev/hidraw3"}]
    mock_device = MagicMock()
    mock_device.write.return_value = 65
    queue = list(reports or [])
    mode = {"nonblocking": 0}

    def _set_nonblocking(flag: int) -> int:
        mode["nonblocking"] = flag
        return 0

    def _read(size: int, timeout_ms: int = 0) -> list[int]:
        if queue:
            return queue.pop(0)
        # hidapi: a 0 ms read on a blocking handle waits for the next report
        if timeout_ms == 0 and not mode["nonblocking"]:
            raise AssertionError("blocking hid_read() with no report queued")
        return []

    mock_device.set_nonblocking.side_effect = _set_nonblocking
    mock_device.read.side_effect = _read
    mock_module.device.return_value = mock_device
    return mock_module, mock_device


class TestParseHidId:
    def test_valid(self) -> None:
        assert parse_hid_id("ffff:0003") == (0xFFFF, 0x0003)

    @pytest.mark.parametrize("identifier", ["ffff", "ffff:zz", "1ffff:0001", "a:b:c"])
    def test_invalid(self, identifier: str) -> None:
        with pytest.raises(ValueError):
            parse_hid_id(identifier)


class TestHidTransport:
    def test_identifier(self) -> None:
        assert HidTransport.from_identifier("FFFF:0002").identifier == "ffff:0002"

    def test_satisfies_protocol(self) -> None:
        assert isinstance(HidTransport(0xFFFF, 0x0003), ByteTransport)

    @pytest.mark.asyncio
    async def test_open_first_match(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        mock_module.enumerate.assert_called_once_with(0xFFFF, 0x0003)
        mock_device.open_path.assert_called_once_with(b"/dev/hidraw3")
        assert transport.is_open

    @pytest.mark.asyncio
    async def test_no_device(self) -> None:
        mock_module, _ = _make_mock_hid()
        mock_module.enumerate.return_value = []
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            with pytest.raises(TransportOpenError, match="ffff:0003"):
                await transport.open()

    @pytest.mark.asyncio
    async def test_missing_library(self) -> None:
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": None}):
            with pytest.raises(TransportOpenError, match="pip install hidapi"):
                await transport.open()

    @pytest.mark.asyncio
    async def test_write_pads_report(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        await transport.write(b"abc")
        (report,), _ = mock_device.write.call_args
        assert report == b"\x00abc" + bytes(61)

    @pytest.mark.asyncio
    async def test_write_too_long(self) -> None:
        mock_module, _ = _make_mock_hid()
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        with pytest.raises(TransportIOError):
            await transport.write(bytes(65))

    @pytest.mark.asyncio
    async def test_write_failure(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        mock_device.write.return_value = -1
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        with pytest.raises(TransportIOError):
            await transport.write(b"x")

    @pytest.mark.asyncio
    async def test_read_buffers_surplus(self) -> None:
        mock_module, _ = _make_mock_hid([list(range(64))])
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        assert await transport.read(4) == bytes([0, 1, 2, 3])
        assert await transport.read(60) == bytes(range(4, 64))
        assert await transport.read(1) == b""

    @pytest.mark.asyncio
    async def test_open_sets_nonblocking(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        mock_device.set_nonblocking.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_open_nonblocking_failure_closes_device(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        mock_device.set_nonblocking.side_effect = OSError("not supported")
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            with pytest.raises(TransportOpenError, match="configure"):
                await transport.open()
        mock_device.close.assert_called_once()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_discard_input_drains_queued_reports(self) -> None:
        mock_module, mock_device = _make_mock_hid([[1] * 64, [2] * 64])
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        await transport.discard_input()
        assert mock_device.read.call_count == 3
        assert await transport.read(1) == b""

    @pytest.mark.asyncio
    async def test_discard_input_returns_when_nothing_queued(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        await asyncio.wait_for(transport.discard_input(), timeout=1.0)
        mock_device.read.assert_called_once_with(64, 0)

    @pytest.mark.asyncio
    async def test_close_idempotent(self) -> None:
        mock_module, mock_device = _make_mock_hid()
        transport = HidTransport(0xFFFF, 0x0003)
        with patch.dict(sys.modules, {"hid": mock_module}):
            await transport.open()
        transport.close()
        transport.close()
        mock_device.close.assert_called_once()
        with pytest.raises(TransportClosedError):
            await transport.read(1)
