"""Unit tests for the pressure gauge driver."""

from __future__ import annotations

import struct

import pytest

from calbench.drivers.pressure_gauge import (
    READ_PRESSURE,
    UNIT_TO_PASCAL,
    PressureGaugeConfig,
    PressureGaugeDriver,
    create_instrument,
    decode_pressure,
)
from calbench.errors import FrameError, ResponseTimeoutError
from calbench.framing import GAUGE_SLAVE_START, encode_gauge_packet, gauge_checksum
from calbench.interfaces import PressureGauge
from calbench.testing import MemoryTransport
from calbench.types import Unit


def _body(unit_code: int, value: float) -> bytes:
    return b"\x00\x00" + bytes([unit_code]) + struct.pack(">f", value)


def _response(data: bytes, command: int = READ_PRESSURE) -> bytes:
    body = (
        b"\xff\xff\xff"
        + bytes([GAUGE_SLAVE_START])
        + b"\xff\xff\xff\xff\x00"
        + bytes([command, len(data)])
        + data
    )
    return body + bytes([gauge_checksum(body)])


async def _make_gauge(transport: MemoryTransport) -> PressureGaugeDriver:
    gauge = PressureGaugeDriver(
        PressureGaugeConfig(port="mem", timeout=0.1), transport_factory=lambda _: transport
    )
    await gauge.open()
    return gauge


class TestDecodePressure:
    @pytest.mark.parametrize(
        ("unit_code", "value", "pascals"),
        [
            (1, 1.0, 98066.5),
            (2, 0.5, 500000.0),
            (3, 2.0, 2000.0),
            (4, 123.0, 123.0),
            (5, 10.0, 98.0665),
            (6, 1.0, 101325.0),
            (7, 1.0, 133.322387415),
            (8, 100.0, 980.665),
            (9, 2.0, 200000.0),
        ],
    )
    def test_unit_conversion(self, unit_code: int, value: float, pascals: float) -> None:
        reading = decode_pressure(_body(unit_code, value))
        assert reading.unit is Unit.PASCAL
        assert reading.value == pytest.approx(pascals, rel=1e-6)

    def test_all_codes_covered(self) -> None:
        assert sorted(UNIT_TO_PASCAL) == list(range(1, 10))

    @pytest.mark.parametrize("unit_code", [0, 10, 0x30, 0x35])
    def test_unknown_unit(self, unit_code: int) -> None:
        with pytest.raises(FrameError, match="unit"):
            decode_pressure(_body(unit_code, 1.0))

    def test_short_body(self) -> None:
        with pytest.raises(FrameError):
            decode_pressure(b"\x00\x00\x04\x00")


class TestPressureGaugeDriver:
    def test_satisfies_interface(self) -> None:
        assert isinstance(create_instrument("COM2"), PressureGauge)

    def test_default_line_settings(self) -> None:
        assert PressureGaugeConfig().serial.baudrate == 9600

    @pytest.mark.asyncio
    async def test_get_pressure(self) -> None:
        transport = MemoryTransport(lambda request: _response(_body(3, 101.5)))
        gauge = await _make_gauge(transport)
        reading = await gauge.get_pressure()
        assert reading.value == pytest.approx(101500.0)
        assert transport.written == [encode_gauge_packet(READ_PRESSURE)]

    @pytest.mark.asyncio
    async def test_wrong_command_echo(self) -> None:
        gauge = await _make_gauge(MemoryTransport(lambda request: _response(_body(4, 1.0), 0x02)))
        with pytest.raises(FrameError):
            await gauge.get_pressure()

    @pytest.mark.asyncio
    async def test_bad_checksum(self) -> None:
        def respond(request: bytes) -> bytes:
            packet = bytearray(_response(_body(4, 1.0)))
            packet[-1] ^= 0x10
            return bytes(packet)

        gauge = await _make_gauge(MemoryTransport(respond))
        with pytest.raises(FrameError):
            await gauge.get_pressure()

    @pytest.mark.asyncio
    async def test_unknown_unit(self) -> None:
        gauge = await _make_gauge(MemoryTransport(lambda request: _response(_body(0x35, 1.0))))
        with pytest.raises(FrameError):
            await gauge.get_pressure()

    @pytest.mark.asyncio
    async def test_truncated_reply_times_out(self) -> None:
        gauge = await _make_gauge(
            MemoryTransport(lambda request: _response(_body(4, 1.0))[:-3])
        )
        with pytest.raises(ResponseTimeoutError):
            await gauge.get_pressure()
