"""Value types shared by drivers, emulators and callers.

Only decoded engineering values cross the driver boundary: readings tagged
with their unit, and structured thermal chamber programs. Raw bytes never do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from calbench.errors import ValueRangeError

MAX_SCHEME_ENTRIES = 9
"""Number of steps in a thermal chamber program."""


class Unit(Enum):
    """Units a :class:`DeviceReading` can be tagged with."""

    PASCAL = "Pa"
    MEGAPASCAL = "MPa"
    DEGREE_CELSIUS = "degC"
    OHM = "ohm"
    RELATIVE_HUMIDITY = "%RH"
    PERCENT = "%"


@dataclass(frozen=True)
class DeviceReading:
    """A decoded value tagged with the unit it was decoded under.

    Attributes:
        value: The numeric value.
        unit: The unit of ``value``.
    """

    value: float
    unit: Unit

    def __str__(self) -> str:
        return f"{self.value:g} {self.unit.value}"


@dataclass(frozen=True)
class ChamberParams:
    """Current thermal chamber state.

    Attributes:
        temperature: Chamber temperature in degrees Celsius.
        humidity: Relative humidity in percent.
        progress: Elapsed share of the running program in percent.
    """

    temperature: DeviceReading
    humidity: DeviceReading
    progress: DeviceReading


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ValueRangeError(f"{name} must be {low}..{high}, got {value}")


@dataclass(frozen=True)
class TimeSchemeEntry:
    """One step of a thermal chamber program.

    Attributes:
        used: Whether the step is executed.
        temperature: Target temperature in degrees Celsius (-128..127).
        humidity: Target relative humidity in percent (-128..127).
        minutes_to_reach: Ramp time to the target in minutes (0..65535).
        minutes_to_hold: Hold time at the target in minutes (0..65535).

    Raises:
        ValueRangeError: If a field does not fit its wire representation.
    """

    used: bool = False
    temperature: int = 0
    humidity: int = 0
    minutes_to_reach: int = 0
    minutes_to_hold: int = 0

    def __post_init__(self) -> None:
        _check_range("temperature", self.temperature, -128, 127)
        _check_range("humidity", self.humidity, -128, 127)
        _check_range("minutes_to_reach", self.minutes_to_reach, 0, 0xFFFF)
        _check_range("minutes_to_hold", self.minutes_to_hold, 0, 0xFFFF)


@dataclass(frozen=True)
class TimeScheme:
    """A complete thermal chamber program.

    The program is always written and read as a whole. Programs shorter than
    :data:`MAX_SCHEME_ENTRIES` are padded with unused steps on the wire.

    Attributes:
        repeat_count: Number of times the program repeats (0..65535).
        entries: Up to nine program steps, in execution order.
    """

    repeat_count: int = 1
    entries: tuple[TimeSchemeEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        _check_range("repeat_count", self.repeat_count, 0, 0xFFFF)
        if len(self.entries) > MAX_SCHEME_ENTRIES:
            raise ValueRangeError(
                f"A program holds at most {MAX_SCHEME_ENTRIES} steps, got {len(self.entries)}"
            )

    def padded(self) -> tuple[TimeSchemeEntry, ...]:
        """Return the entries padded with unused steps to the full length."""
        return self.entries + (TimeSchemeEntry(),) * (MAX_SCHEME_ENTRIES - len(self.entries))


@dataclass(frozen=True)
class ChamberSetup:
    """Factory setup constants of the thermal chamber.

    Temperatures are in degrees Celsius, times in the device's own units.

    Attributes:
        temperature_high: Upper temperature limit.
        temperature_low: Lower temperature limit.
        temperature_delta: Temperature hysteresis.
        temperature_dead_zone: Boundary between control algorithms.
        temperature_correction: Temperature sensor correction.
        sound_delta: Hysteresis of the audible alarm.
        cooler_off_delay: Compressor off delay after the last valve action.
        heat_time: Maximum heating time.
        cool_time: Maximum cooling time.
        has_humidity: Whether the chamber controls humidity.
        humidity_delta: Humidity hysteresis.
        humidity_dead_zone: Boundary between humidity control algorithms.
        humidity_correction: Humidity sensor correction.
    """

    temperature_high: int
    temperature_low: int
    temperature_delta: int
    temperature_dead_zone: int
    temperature_correction: int
    sound_delta: int
    cooler_off_delay: int
    heat_time: int
    cool_time: int
    has_humidity: bool
    humidity_delta: int
    humidity_dead_zone: int
    humidity_correction: int

    def __post_init__(self) -> None:
        for name in (
            "temperature_high",
            "temperature_low",
            "temperature_delta",
            "temperature_dead_zone",
            "temperature_correction",
            "sound_delta",
            "cooler_off_delay",
            "humidity_delta",
            "humidity_dead_zone",
            "humidity_correction",
        ):
            _check_range(name, getattr(self, name), -128, 127)
        _check_range("heat_time", self.heat_time, 0, 0xFFFF)
        _check_range("cool_time", self.cool_time, 0, 0xFFFF)


class FluidType(Enum):
    """Heat-transfer fluid codes understood by the thermostat."""

    ANY = 1
    WATER = 2
    PMS_5 = 3
    PMS_10 = 4
    PMS_20 = 5
    PMS_50 = 6
    PMS_100 = 7
    ETHANOL = 8
    ANTIFREEZE = 9
