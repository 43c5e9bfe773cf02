"""Pressure gauge emulator."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from calbench.emulators.base import DEFAULT_DELAY, EmulatorBase
from calbench.types import DeviceReading, Unit

PressureFunc = Callable[[datetime], float]


def _seconds(now: datetime) -> float:
    return float(now.second)


class PressureGaugeEmulator(EmulatorBase):
    """In-process pressure gauge implementing the ``PressureGauge`` interface.

    Args:
        pressure_func: Maps the current local time to a pressure in pascals.
            Defaults to the seconds of the current minute.
        delay: Artificial latency in seconds.
        seed: Seed for the noise generator.
    """

    def __init__(
        self,
        pressure_func: PressureFunc | None = None,
        delay: float = DEFAULT_DELAY,
        seed: int | None = None,
    ) -> None:
        super().__init__(delay, seed)
        self._pressure_func = pressure_func or _seconds

    async def get_pressure(self) -> DeviceReading:
        await self._operation()
        return DeviceReading(self._pressure_func(datetime.now()), Unit.PASCAL)


def create_emulator(
    port: str | None = None, delay: float = DEFAULT_DELAY, seed: int | None = None
) -> PressureGaugeEmulator:
    """Create a pressure gauge emulator. ``port`` is accepted and ignored."""
    return PressureGaugeEmulator(delay=delay, seed=seed)
