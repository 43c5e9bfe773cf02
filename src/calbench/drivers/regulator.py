"""Electro-pneumatic pressure regulator driver.

The regulator takes CRLF-terminated ASCII commands over RS-232 at 9600 8N1
and answers each with one line. Pressures are exchanged as integer codes
spanning the regulator's full scale::

    code = int(pressure / full_scale * 1023)

Commands:

    SET n   set the output pressure to code n
    INC     raise the set-point by one code
    DEC     lower the set-point by one code
    REQ     read back the set-point code
    MON     read the measured output pressure code
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from calbench.drivers.base import InstrumentDriver
from calbench.errors import CalbenchError, FrameError, ValueRangeError
from calbench.reader import read_until
from calbench.serial_port import SerialSettings, SerialTransport
from calbench.transport import TransportFactory
from calbench.types import DeviceReading, Unit

logger = logging.getLogger(__name__)

MAX_CODE = 1023
DEFAULT_FULL_SCALE = 0.9
"""Full-scale output pressure in MPa."""

NEWLINE = b"\r\n"


def pressure_to_code(pressure: float, full_scale: float = DEFAULT_FULL_SCALE) -> int:
    """Convert a pressure in MPa to a set-point code.

    Raises:
        ValueRangeError: If the pressure is not finite, negative or above full
            scale.
    """
    if not math.isfinite(pressure):
        raise ValueRangeError(f"Output pressure {pressure} MPa is not a finite number")
    if pressure < 0:
        raise ValueRangeError(f"Output pressure {pressure} MPa is negative")
    code = int(pressure / full_scale * MAX_CODE)
    if code > MAX_CODE:
        raise ValueRangeError(f"Set code {code} exceeds {MAX_CODE} ({pressure} MPa)")
    return code


def code_to_pressure(code: int, full_scale: float = DEFAULT_FULL_SCALE) -> float:
    """Convert a set-point or monitor code to a pressure in MPa."""
    return code * full_scale / MAX_CODE


@dataclass(frozen=True)
class RegulatorConfig:
    """Configuration for a pressure regulator.

    Attributes:
        port: Default serial port name.
        full_scale: Full-scale output pressure in MPa.
        timeout: Maximum idle time in seconds between response bytes.
        serial: Serial line settings.
    """

    port: str | None = None
    full_scale: float = DEFAULT_FULL_SCALE
    timeout: float = 1.0
    serial: SerialSettings = field(default_factory=lambda: SerialSettings(baudrate=9600))

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.full_scale <= 0:
            raise ValueError("full_scale must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


class PressureRegulatorDriver(InstrumentDriver):
    """Driver for the electro-pneumatic pressure regulator.

    Implements the :class:`~calbench.interfaces.PressureRegulator` interface.
    """

    def __init__(
        self,
        config: RegulatorConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or RegulatorConfig()
        super().__init__(
            self._config.port,
            transport_factory or (lambda port: SerialTransport(port, self._config.serial)),
        )

    @property
    def config(self) -> RegulatorConfig:
        """The regulator configuration."""
        return self._config

    async def get_pressure(self) -> DeviceReading:
        """Read the measured output pressure, in MPa."""
        code = self._parse_code(await self._command("MON"))
        reading = DeviceReading(code_to_pressure(code, self._config.full_scale), Unit.MEGAPASCAL)
        logger.info("Regulator output pressure: %s", reading)
        return reading

    async def set_output_pressure(self, pressure: float) -> None:
        """Set the output pressure.

        Args:
            pressure: Output pressure in MPa.

        Raises:
            ValueRangeError: If the pressure is out of range. Nothing is sent.
        """
        code = pressure_to_code(pressure, self._config.full_scale)
        reply = await self._command(f"SET {code}")
        logger.info("Regulator SET %.4f MPa (code %d): %s", pressure, code, reply)

    async def confirm_output_pressure(self) -> DeviceReading:
        """Read back the active set-point, in MPa."""
        code = self._parse_code(await self._command("REQ"))
        reading = DeviceReading(code_to_pressure(code, self._config.full_scale), Unit.MEGAPASCAL)
        logger.info("Regulator confirmed set-point: %s", reading)
        return reading

    async def bleed_output_pressure(self) -> None:
        """Drop the output pressure to zero."""
        await self.set_output_pressure(0.0)

    async def increase_setting(self) -> None:
        """Raise the set-point by one code."""
        await self._command("INC")

    async def decrease_setting(self) -> None:
        """Lower the set-point by one code."""
        await self._command("DEC")

    async def _command(self, line: str) -> str:
        transport = self._require_transport()
        request = line.encode("ascii") + NEWLINE
        try:
            await transport.discard_input()
            logger.debug("TX %r", request)
            await transport.write(request)
            reply = await read_until(transport, b"\n", self._config.timeout)
        except CalbenchError:
            logger.warning("Regulator command %s failed", line.split(" ")[0])
            raise
        logger.debug("RX %r", reply)
        return reply.decode("ascii", errors="replace").strip()

    @staticmethod
    def _parse_code(reply: str) -> int:
        try:
            return int(reply)
        except ValueError:
            raise FrameError(f"Regulator reply {reply!r} is not a pressure code") from None


def create_instrument(
    port: str | None = None,
    full_scale: float = DEFAULT_FULL_SCALE,
    timeout: float = 1.0,
) -> PressureRegulatorDriver:
    """Create a pressure regulator driver from configuration parameters."""
    return PressureRegulatorDriver(RegulatorConfig(port=port, full_scale=full_scale, timeout=timeout))
