"""Thermometer emulator."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from calbench.emulators.base import DEFAULT_DELAY, EmulatorBase
from calbench.types import DeviceReading, Unit

TemperatureFunc = Callable[[datetime], float]

DEFAULT_TEMPERATURE = 20.0
NOISE = 0.05


class ThermometerEmulator(EmulatorBase):
    """In-process thermometer implementing the ``Thermometer`` interface.

    Readings are rounded to two decimals like the real device prints them.

    Args:
        temperature_func: Maps the current local time to a temperature in
            degrees Celsius. Defaults to 20 degC with up to 0.05 degC of noise.
        delay: Artificial latency in seconds.
        seed: Seed for the noise generator.
    """

    def __init__(
        self,
        temperature_func: TemperatureFunc | None = None,
        delay: float = DEFAULT_DELAY,
        seed: int | None = None,
    ) -> None:
        super().__init__(delay, seed)
        self._temperature_func = temperature_func or self._ambient

    def _ambient(self, now: datetime) -> float:
        return DEFAULT_TEMPERATURE + self.random_epsilon(NOISE)

    async def get_temperature(self) -> DeviceReading:
        await self._operation()
        return DeviceReading(round(self._temperature_func(datetime.now()), 2), Unit.DEGREE_CELSIUS)


def create_emulator(
    port: str | None = None, delay: float = DEFAULT_DELAY, seed: int | None = None
) -> ThermometerEmulator:
    """Create a thermometer emulator. ``port`` is accepted and ignored."""
    return ThermometerEmulator(delay=delay, seed=seed)
