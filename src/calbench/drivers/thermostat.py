"""Precision liquid thermostat driver.

The thermostat is a USB-HID device (``ffff:0003``) exchanging one 64-byte
report per request. Reports carry ASCII command lines (see
:mod:`calbench.framing`)::

    :00000000 PRG.TEMP.1 WR 25\\n   ->   <echo> 0x00 ...
    :00000000 DAT.T RD \\n          ->   <echo> 0x00 24.98

Commands used:

    RUN            power state, 1 = on, 0 = off
    PRG.TEMP.<i>   program step i temperature (i = 1..10)
    PRG.TIME.<i>   program step i duration in minutes
    MOD            control mode, P = run the program
    FLU            heat-transfer fluid code
    FSW            external cooling unit control, 1 = enabled
    RTC.TIME       real-time clock, HH:MM
    DAT.T / DAT.R  measured temperature / sensor resistance

The device re-enumerates when it changes power state, invalidating the open
HID handle. Power changes are therefore confirmed by polling, closing and
reopening the handle before every status read.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from calbench.drivers.base import InstrumentDriver
from calbench.errors import CalbenchError, FrameError, PowerStateTimeoutError, ValueRangeError
from calbench.framing import READ, WRITE, encode_thermostat_request, parse_thermostat_response
from calbench.hid_device import REPORT_SIZE, HidTransport, parse_hid_id
from calbench.reader import read_exact
from calbench.transport import TransportFactory
from calbench.types import DeviceReading, FluidType, Unit

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "ffff:0003"
BROADCAST_ADDRESS = "00000000"
PROGRAM_STEPS = 10
SETUP_DURATION = 999
"""Step duration in minutes used by :meth:`ThermostatDriver.setup_temperature`."""

_ADDRESS_PATTERN = re.compile(r"^[0-9A-Za-z]{1,8}$")


def _format_number(value: float) -> str:
    return f"{value:g}"


@dataclass(frozen=True)
class ThermostatConfig:
    """Configuration for a thermostat.

    Attributes:
        device: HID identifier ``"vvvv:pppp"``.
        address: Network address; ``"00000000"`` reaches any thermostat.
        timeout: Maximum idle time in seconds waiting for a report.
        power_timeout: Time in seconds allowed for a power change to show.
        poll_interval: Pause in seconds between power state polls.
        reopen_delay: Pause in seconds between closing and reopening the
            handle while polling.
        report_size: HID report size in bytes.
    """

    device: str = DEFAULT_DEVICE
    address: str = BROADCAST_ADDRESS
    timeout: float = 1.0
    power_timeout: float = 10.0
    poll_interval: float = 0.2
    reopen_delay: float = 0.3
    report_size: int = REPORT_SIZE

    def __post_init__(self) -> None:
        """Validate configuration."""
        parse_hid_id(self.device)
        if not _ADDRESS_PATTERN.match(self.address):
            raise ValueError(f"address must be 1-8 alphanumeric characters, got {self.address!r}")
        if self.timeout <= 0 or self.power_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.poll_interval < 0 or self.reopen_delay < 0:
            raise ValueError("poll_interval and reopen_delay must be >= 0")
        if self.report_size < 1:
            raise ValueError("report_size must be >= 1")


class ThermostatDriver(InstrumentDriver):
    """Driver for the precision liquid thermostat.

    Implements the :class:`~calbench.interfaces.Thermostat` interface.

    Args:
        config: Thermostat configuration.
        transport_factory: Builds the transport for a device identifier.
            Defaults to :meth:`HidTransport.from_identifier`.
    """

    def __init__(
        self,
        config: ThermostatConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or ThermostatConfig()
        super().__init__(
            self._config.device,
            transport_factory
            or (
                lambda device: HidTransport.from_identifier(
                    device, report_size=self._config.report_size
                )
            ),
        )

    @property
    def config(self) -> ThermostatConfig:
        """The thermostat configuration."""
        return self._config

    async def setup_temperature(self, temperature: float) -> None:
        """Power-cycle the thermostat and hold ``temperature`` via a one-step program."""
        logger.info("Thermostat setup for %s degC", _format_number(temperature))
        await self.turn_off()
        await self.turn_on()
        await self.set_clock()
        await self.set_fluid()
        await self.enable_cooling_control()
        await self.set_time_scheme([temperature], [SETUP_DURATION])
        await self.start_program_mode()

    async def turn_on(self) -> None:
        """Power on and wait until the thermostat reports it.

        Raises:
            PowerStateTimeoutError: If the state is not confirmed in time.
        """
        await self._set_power(True)

    async def turn_off(self) -> None:
        """Power off and wait until the thermostat reports it.

        Raises:
            PowerStateTimeoutError: If the state is not confirmed in time.
        """
        await self._set_power(False)

    async def set_time_scheme(self, temperatures: Sequence[float], durations: Sequence[int]) -> None:
        """Write all program steps.

        Steps beyond the given sequences are written as zero.

        Args:
            temperatures: Step temperatures in degrees Celsius.
            durations: Step durations in minutes.

        Raises:
            ValueRangeError: If more than ten steps are given.
        """
        if len(temperatures) > PROGRAM_STEPS or len(durations) > PROGRAM_STEPS:
            raise ValueRangeError(f"A thermostat program holds at most {PROGRAM_STEPS} steps")
        for step in range(1, PROGRAM_STEPS + 1):
            temperature = temperatures[step - 1] if step <= len(temperatures) else 0
            duration = durations[step - 1] if step <= len(durations) else 0
            await self._request("PRG", WRITE, "TEMP", str(step), _format_number(temperature))
            await self._request("PRG", WRITE, "TIME", str(step), str(int(duration)))

    async def start_program_mode(self) -> None:
        """Switch to program control; the program starts at its first non-empty step."""
        await self._request("MOD", WRITE, value="P")

    async def set_fluid(self, fluid: FluidType = FluidType.ANY) -> None:
        """Select the heat-transfer fluid."""
        await self._request("FLU", WRITE, value=str(fluid.value))

    async def set_clock(self, now: datetime | None = None) -> None:
        """Set the real-time clock to ``now`` (local time by default)."""
        now = now or datetime.now()
        await self._request("RTC", WRITE, "TIME", value=now.strftime("%H:%M"))

    async def enable_cooling_control(self) -> None:
        """Let the thermostat control the external cooling unit."""
        await self._request("FSW", WRITE, value="1")

    async def disable_cooling_control(self) -> None:
        """Stop controlling the external cooling unit."""
        await self._request("FSW", WRITE, value="0")

    async def get_temperature(self) -> DeviceReading:
        """Read the fluid temperature, in degrees Celsius."""
        value = self._parse_float(await self._request("DAT", READ, "T"))
        return DeviceReading(value, Unit.DEGREE_CELSIUS)

    async def get_resistance(self) -> DeviceReading:
        """Read the sensor resistance, in ohms."""
        value = self._parse_float(await self._request("DAT", READ, "R"))
        return DeviceReading(value, Unit.OHM)

    async def _set_power(self, on: bool) -> None:
        expected = "1" if on else "0"
        state = "on" if on else "off"
        self._require_transport()
        device = self.port
        logger.info("Turning thermostat %s", state)
        await self._request("RUN", WRITE, value=expected)

        deadline = time.monotonic() + self._config.power_timeout
        while time.monotonic() < deadline:
            await asyncio.sleep(self._config.poll_interval)
            try:
                await self._reopen(device)
                current = await self._request("RUN", READ)
            except CalbenchError as exc:
                logger.info("Thermostat power poll failed: %s", exc)
                continue
            logger.debug("Thermostat power state: %r", current)
            if current[:1] == expected:
                logger.info("Thermostat is %s", state)
                return
        raise PowerStateTimeoutError(
            f"Thermostat did not report power {state} within {self._config.power_timeout:g} s"
        )

    async def _reopen(self, device: str | None) -> None:
        self.close()
        await asyncio.sleep(self._config.reopen_delay)
        await self.open(device)

    async def _request(
        self,
        command: str,
        operation: str,
        parameter: str | None = None,
        subparameter: str | None = None,
        value: str | None = None,
    ) -> str:
        transport = self._require_transport()
        request = encode_thermostat_request(
            self._config.address, command, operation, parameter, subparameter, value
        )
        if len(request) > self._config.report_size:
            raise ValueRangeError(f"Thermostat request {request!r} exceeds one report")
        try:
            await transport.discard_input()
            logger.debug("TX %r", request)
            await transport.write(request)
            report = await read_exact(transport, self._config.report_size, self._config.timeout)
            logger.debug("RX %r", report.rstrip(b"\x00"))
            return parse_thermostat_response(report)
        except CalbenchError:
            logger.warning("Thermostat %s %s failed", command, operation)
            raise

    @staticmethod
    def _parse_float(text: str) -> float:
        try:
            return float(text)
        except ValueError:
            raise FrameError(f"Thermostat value {text!r} is not a number") from None


def create_instrument(
    port: str | None = None,
    address: str = BROADCAST_ADDRESS,
    timeout: float = 1.0,
    power_timeout: float = 10.0,
) -> ThermostatDriver:
    """Create a thermostat driver from configuration parameters.

    Args:
        port: HID identifier ``"vvvv:pppp"``; defaults to ``ffff:0003``.
        address: Thermostat network address.
        timeout: Report timeout in seconds.
        power_timeout: Power change confirmation timeout in seconds.
    """
    return ThermostatDriver(
        ThermostatConfig(
            device=port or DEFAULT_DEVICE,
            address=address,
            timeout=timeout,
            power_timeout=power_timeout,
        )
    )
