"""Capability interfaces for bench instruments.

Each protocol is the operation contract for one kind of instrument. Both the
real driver in :mod:`calbench.drivers` and its counterpart in
:mod:`calbench.emulators` satisfy it, so calibration code can depend on the
protocol alone. Which implementation backs an instance is decided once, when
it is constructed.

Every operation is a coroutine and may be cancelled. ``open()`` accepts an
optional port or device identifier; ``None`` uses the one configured at
construction.

Example:
    Run the same step against hardware or an emulator::

        async def soak(chamber: HeatChamber, target: int) -> ChamberParams:
            scheme = TimeScheme(1, (TimeSchemeEntry(True, target, 0, 30, 60),))
            await chamber.write_time_scheme(scheme)
            await chamber.start_process()
            return await chamber.get_current_params()
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from calbench.types import ChamberParams, ChamberSetup, DeviceReading, FluidType, TimeScheme


@runtime_checkable
class HeatChamber(Protocol):
    """Thermal/humidity chamber running stored time-scheme programs."""

    async def open(self, port: str | None = None) -> None:
        """Open the connection to the chamber."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...

    async def get_connected_device_id(self) -> tuple[int, int]:
        """Return the (device type, address) of the connected chamber."""
        ...

    async def get_current_params(self) -> ChamberParams:
        """Read the current temperature, humidity and program progress."""
        ...

    async def read_time_scheme(self) -> TimeScheme:
        """Read the stored program."""
        ...

    async def write_time_scheme(self, scheme: TimeScheme) -> None:
        """Replace the stored program."""
        ...

    async def start_process(self) -> None:
        """Start executing the stored program."""
        ...

    async def stop_process(self) -> None:
        """Stop executing the program."""
        ...

    async def set_current_datetime(self, now: datetime | None = None) -> None:
        """Set the chamber clock (local time when ``now`` is None)."""
        ...

    async def write_setup_params(self, setup: ChamberSetup) -> None:
        """Write the factory setup constants."""
        ...


@runtime_checkable
class PressureGauge(Protocol):
    """Digital pressure gauge."""

    async def open(self, port: str | None = None) -> None:
        """Open the connection to the gauge."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...

    async def get_pressure(self) -> DeviceReading:
        """Measure pressure, in pascals."""
        ...


@runtime_checkable
class PressureRegulator(Protocol):
    """Electro-pneumatic pressure regulator."""

    async def open(self, port: str | None = None) -> None:
        """Open the connection to the regulator."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...

    async def get_pressure(self) -> DeviceReading:
        """Read the output pressure, in megapascals."""
        ...

    async def set_output_pressure(self, pressure: float) -> None:
        """Set the output pressure in megapascals."""
        ...

    async def confirm_output_pressure(self) -> DeviceReading:
        """Read back the active set-point, in megapascals."""
        ...

    async def bleed_output_pressure(self) -> None:
        """Drop the output pressure to zero."""
        ...

    async def increase_setting(self) -> None:
        """Raise the set-point by one step."""
        ...

    async def decrease_setting(self) -> None:
        """Lower the set-point by one step."""
        ...


@runtime_checkable
class Thermostat(Protocol):
    """Precision liquid thermostat."""

    async def open(self, port: str | None = None) -> None:
        """Open the connection to the thermostat."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...

    async def setup_temperature(self, temperature: float) -> None:
        """Power-cycle the thermostat and run a single-step program at ``temperature``."""
        ...

    async def turn_on(self) -> None:
        """Power on and wait for confirmation."""
        ...

    async def turn_off(self) -> None:
        """Power off and wait for confirmation."""
        ...

    async def set_time_scheme(self, temperatures: Sequence[float], durations: Sequence[int]) -> None:
        """Write the program steps."""
        ...

    async def start_program_mode(self) -> None:
        """Switch to program control."""
        ...

    async def set_fluid(self, fluid: FluidType = FluidType.ANY) -> None:
        """Select the heat-transfer fluid."""
        ...

    async def set_clock(self, now: datetime | None = None) -> None:
        """Set the real-time clock (local time when ``now`` is None)."""
        ...

    async def enable_cooling_control(self) -> None:
        """Let the thermostat control the external cooling unit."""
        ...

    async def disable_cooling_control(self) -> None:
        """Stop controlling the external cooling unit."""
        ...

    async def get_temperature(self) -> DeviceReading:
        """Read the fluid temperature, in degrees Celsius."""
        ...

    async def get_resistance(self) -> DeviceReading:
        """Read the sensor resistance, in ohms."""
        ...


@runtime_checkable
class Thermometer(Protocol):
    """Contact reference thermometer."""

    async def open(self, port: str | None = None) -> None:
        """Prepare the connection to the thermometer."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...

    async def get_temperature(self) -> DeviceReading:
        """Measure temperature, in degrees Celsius."""
        ...


INSTRUMENT_KINDS: dict[str, type] = {
    "heat_chamber": HeatChamber,
    "pressure_gauge": PressureGauge,
    "pressure_regulator": PressureRegulator,
    "thermostat": Thermostat,
    "thermometer": Thermometer,
}
"""Capability protocol for each instrument kind name used in bench files."""
