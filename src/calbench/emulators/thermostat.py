"""Thermostat emulator."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from calbench.drivers.thermostat import PROGRAM_STEPS
from calbench.emulators.base import DEFAULT_DELAY, EmulatorBase
from calbench.errors import ValueRangeError
from calbench.types import DeviceReading, FluidType, Unit

SETTLED_FRACTION = 0.95
"""Share of the set-point the emulated fluid settles at."""

PT100_R0 = 100.0
PT100_ALPHA = 0.00385


class ThermostatEmulator(EmulatorBase):
    """In-process thermostat implementing the ``Thermostat`` interface.

    After :meth:`setup_temperature` the fluid reads 95 % of the set-point.
    Resistance follows a linear Pt100 characteristic of that temperature.
    """

    def __init__(self, delay: float = DEFAULT_DELAY, seed: int | None = None) -> None:
        super().__init__(delay, seed)
        self._temperature = 0.0
        self._powered = False
        self._program_mode = False
        self._cooling_control = False
        self._fluid = FluidType.ANY
        self._program: list[tuple[float, int]] = []

    @property
    def powered(self) -> bool:
        """Return True while powered on."""
        return self._powered

    @property
    def program(self) -> list[tuple[float, int]]:
        """The written program as ``(temperature, minutes)`` steps."""
        return list(self._program)

    @property
    def program_mode(self) -> bool:
        """Return True while the written program is running."""
        return self._program_mode

    @property
    def cooling_control(self) -> bool:
        """Return True while cooling control is enabled."""
        return self._cooling_control

    @property
    def fluid(self) -> FluidType:
        return self._fluid

    async def setup_temperature(self, temperature: float) -> None:
        await self.turn_off()
        await self.turn_on()
        await self.set_time_scheme([temperature], [999])
        await self.start_program_mode()
        self._temperature = temperature * SETTLED_FRACTION

    async def turn_on(self) -> None:
        await self._operation()
        self._powered = True

    async def turn_off(self) -> None:
        await self._operation()
        self._powered = False
        self._program_mode = False

    async def set_time_scheme(self, temperatures: Sequence[float], durations: Sequence[int]) -> None:
        if len(temperatures) > PROGRAM_STEPS or len(durations) > PROGRAM_STEPS:
            raise ValueRangeError(f"A thermostat program holds at most {PROGRAM_STEPS} steps")
        await self._operation()
        self._program = [
            (
                temperatures[i] if i < len(temperatures) else 0.0,
                durations[i] if i < len(durations) else 0,
            )
            for i in range(PROGRAM_STEPS)
        ]

    async def start_program_mode(self) -> None:
        await self._operation()
        self._program_mode = True

    async def set_fluid(self, fluid: FluidType = FluidType.ANY) -> None:
        await self._operation()
        self._fluid = fluid

    async def set_clock(self, now: datetime | None = None) -> None:
        await self._operation()

    async def enable_cooling_control(self) -> None:
        await self._operation()
        self._cooling_control = True

    async def disable_cooling_control(self) -> None:
        await self._operation()
        self._cooling_control = False

    async def get_temperature(self) -> DeviceReading:
        await self._operation()
        return DeviceReading(self._temperature, Unit.DEGREE_CELSIUS)

    async def get_resistance(self) -> DeviceReading:
        await self._operation()
        return DeviceReading(PT100_R0 * (1 + PT100_ALPHA * self._temperature), Unit.OHM)


def create_emulator(
    port: str | None = None, delay: float = DEFAULT_DELAY, seed: int | None = None
) -> ThermostatEmulator:
    """Create a thermostat emulator. ``port`` is accepted and ignored."""
    return ThermostatEmulator(delay=delay, seed=seed)
