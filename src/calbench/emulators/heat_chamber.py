"""Thermal chamber emulator."""

from __future__ import annotations

import logging
from datetime import datetime

from calbench.emulators.base import DEFAULT_DELAY, EmulatorBase
from calbench.framing import CHAMBER_DEFAULT_ADDRESS, CHAMBER_DEVICE_TYPE
from calbench.types import ChamberParams, ChamberSetup, DeviceReading, TimeScheme, Unit

logger = logging.getLogger(__name__)

EMULATED_HUMIDITY = 25.0
EMULATED_PROGRESS = 1.0


class HeatChamberEmulator(EmulatorBase):
    """In-process thermal chamber implementing the ``HeatChamber`` interface.

    The chamber reports the first step temperature of the last written
    program as its current temperature, with fixed humidity and progress.
    """

    def __init__(self, delay: float = DEFAULT_DELAY, seed: int | None = None) -> None:
        super().__init__(delay, seed)
        self._scheme = TimeScheme()
        self._running = False
        self._clock: datetime | None = None
        self._setup: ChamberSetup | None = None

    @property
    def running(self) -> bool:
        """Return True while the program is started."""
        return self._running

    @property
    def setup(self) -> ChamberSetup | None:
        """The last written setup constants."""
        return self._setup

    @property
    def clock(self) -> datetime | None:
        """The last clock value written."""
        return self._clock

    async def get_connected_device_id(self) -> tuple[int, int]:
        await self._operation()
        return CHAMBER_DEVICE_TYPE, CHAMBER_DEFAULT_ADDRESS

    async def get_current_params(self) -> ChamberParams:
        await self._operation()
        temperature = self._scheme.entries[0].temperature if self._scheme.entries else 0
        return ChamberParams(
            temperature=DeviceReading(float(temperature), Unit.DEGREE_CELSIUS),
            humidity=DeviceReading(EMULATED_HUMIDITY, Unit.RELATIVE_HUMIDITY),
            progress=DeviceReading(EMULATED_PROGRESS, Unit.PERCENT),
        )

    async def read_time_scheme(self) -> TimeScheme:
        await self._operation()
        return TimeScheme(self._scheme.repeat_count, self._scheme.padded())

    async def write_time_scheme(self, scheme: TimeScheme) -> None:
        await self._operation()
        self._scheme = scheme
        logger.debug("Emulated chamber program: %s", scheme)

    async def start_process(self) -> None:
        await self._operation()
        self._running = True

    async def stop_process(self) -> None:
        await self._operation()
        self._running = False

    async def set_current_datetime(self, now: datetime | None = None) -> None:
        await self._operation()
        self._clock = now or datetime.now()

    async def write_setup_params(self, setup: ChamberSetup) -> None:
        await self._operation()
        self._setup = setup


def create_emulator(
    port: str | None = None, delay: float = DEFAULT_DELAY, seed: int | None = None
) -> HeatChamberEmulator:
    """Create a thermal chamber emulator. ``port`` is accepted and ignored."""
    return HeatChamberEmulator(delay=delay, seed=seed)
