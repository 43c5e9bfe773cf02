"""Pressure regulator emulator."""

from __future__ import annotations

import logging

from calbench.drivers.regulator import (
    DEFAULT_FULL_SCALE,
    MAX_CODE,
    code_to_pressure,
    pressure_to_code,
)
from calbench.emulators.base import DEFAULT_DELAY, EmulatorBase
from calbench.types import DeviceReading, Unit

logger = logging.getLogger(__name__)


class PressureRegulatorEmulator(EmulatorBase):
    """In-process regulator implementing the ``PressureRegulator`` interface.

    The output follows the set-point exactly. Range rules are the driver's:
    negative pressures and codes above 1023 raise ``ValueRangeError``.
    """

    def __init__(
        self,
        full_scale: float = DEFAULT_FULL_SCALE,
        delay: float = DEFAULT_DELAY,
        seed: int | None = None,
    ) -> None:
        super().__init__(delay, seed)
        if full_scale <= 0:
            raise ValueError("full_scale must be positive")
        self._full_scale = full_scale
        self._code = 0

    @property
    def full_scale(self) -> float:
        """Full-scale output pressure in MPa."""
        return self._full_scale

    @property
    def code(self) -> int:
        """The current set-point code."""
        return self._code

    async def get_pressure(self) -> DeviceReading:
        await self._operation()
        return DeviceReading(code_to_pressure(self._code, self._full_scale), Unit.MEGAPASCAL)

    async def set_output_pressure(self, pressure: float) -> None:
        code = pressure_to_code(pressure, self._full_scale)
        await self._operation()
        self._code = code
        logger.debug("Emulated regulator set-point code %d", code)

    async def confirm_output_pressure(self) -> DeviceReading:
        await self._operation()
        return DeviceReading(code_to_pressure(self._code, self._full_scale), Unit.MEGAPASCAL)

    async def bleed_output_pressure(self) -> None:
        await self.set_output_pressure(0.0)

    async def increase_setting(self) -> None:
        await self._operation()
        self._code = min(self._code + 1, MAX_CODE)

    async def decrease_setting(self) -> None:
        await self._operation()
        self._code = max(self._code - 1, 0)


def create_emulator(
    port: str | None = None,
    full_scale: float = DEFAULT_FULL_SCALE,
    delay: float = DEFAULT_DELAY,
    seed: int | None = None,
) -> PressureRegulatorEmulator:
    """Create a pressure regulator emulator. ``port`` is accepted and ignored."""
    return PressureRegulatorEmulator(full_scale=full_scale, delay=delay, seed=seed)
