"""Digital pressure gauge driver.

The gauge answers HART-style packets over RS-232 at 9600 8N1 (see
:mod:`calbench.framing`). Only one command is used: read pressure (``0x01``).
Its response body is::

    0..1  device status     2 bytes
    2     unit code         uint8
    3..6  pressure          float32 big-endian, in the unit above

The value is always returned converted to pascals.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field

from calbench.drivers.base import InstrumentDriver
from calbench.errors import CalbenchError, FrameError
from calbench.framing import GAUGE_HEADER_SIZE, encode_gauge_packet, validate_gauge_packet
from calbench.reader import read_exact
from calbench.serial_port import SerialSettings, SerialTransport
from calbench.transport import TransportFactory
from calbench.types import DeviceReading, Unit

logger = logging.getLogger(__name__)

READ_PRESSURE = 0x01

UNIT_TO_PASCAL: dict[int, tuple[str, float]] = {
    1: ("kgf/cm2", 98066.5),
    2: ("MPa", 1e6),
    3: ("kPa", 1e3),
    4: ("Pa", 1.0),
    5: ("kgf/m2", 9.80665),
    6: ("atm", 101325.0),
    7: ("mmHg", 133.322387415),
    8: ("mmH2O", 9.80665),
    9: ("bar", 1e5),
}
"""Gauge unit code -> (unit name, pascals per unit)."""

_BODY = struct.Struct(">2sBf")


def decode_pressure(body: bytes) -> DeviceReading:
    """Decode a read-pressure response body into pascals.

    Raises:
        FrameError: If the body is too short or the unit code is unknown.
    """
    if len(body) < _BODY.size:
        raise FrameError(f"Gauge pressure body is {len(body)} bytes, expected {_BODY.size}")
    _status, unit_code, value = _BODY.unpack_from(body)
    try:
        _name, factor = UNIT_TO_PASCAL[unit_code]
    except KeyError:
        raise FrameError(f"Gauge reported unknown unit code {unit_code}") from None
    return DeviceReading(value * factor, Unit.PASCAL)


@dataclass(frozen=True)
class PressureGaugeConfig:
    """Configuration for a pressure gauge.

    Attributes:
        port: Default serial port name.
        timeout: Maximum idle time in seconds between response bytes.
        serial: Serial line settings.
    """

    port: str | None = None
    timeout: float = 1.0
    serial: SerialSettings = field(default_factory=lambda: SerialSettings(baudrate=9600))

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


class PressureGaugeDriver(InstrumentDriver):
    """Driver for the digital pressure gauge.

    Implements the :class:`~calbench.interfaces.PressureGauge` interface.
    """

    def __init__(
        self,
        config: PressureGaugeConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or PressureGaugeConfig()
        super().__init__(
            self._config.port,
            transport_factory or (lambda port: SerialTransport(port, self._config.serial)),
        )

    @property
    def config(self) -> PressureGaugeConfig:
        """The gauge configuration."""
        return self._config

    async def get_pressure(self) -> DeviceReading:
        """Measure pressure.

        Returns:
            Pressure in pascals.

        Raises:
            FrameError: If the response is malformed or uses an unknown unit.
            ResponseTimeoutError: If the gauge stops answering.
        """
        transport = self._require_transport()
        request = encode_gauge_packet(READ_PRESSURE)
        timeout = self._config.timeout
        try:
            await transport.discard_input()
            logger.debug("TX %s", request.hex(" "))
            await transport.write(request)
            header = await read_exact(transport, GAUGE_HEADER_SIZE, timeout)
            packet = header + await read_exact(transport, header[-1] + 1, timeout)
            logger.debug("RX %s", packet.hex(" "))
            reading = decode_pressure(validate_gauge_packet(packet, READ_PRESSURE))
        except CalbenchError:
            logger.warning("Gauge command 0x%02X (read pressure) failed", READ_PRESSURE)
            raise
        logger.info("Gauge pressure: %s", reading)
        return reading


def create_instrument(port: str | None = None, timeout: float = 1.0) -> PressureGaugeDriver:
    """Create a pressure gauge driver from configuration parameters."""
    return PressureGaugeDriver(PressureGaugeConfig(port=port, timeout=timeout))
