"""In-process instrument emulators.

Each emulator satisfies the same capability interface as its driver, so a
bench can run end to end without hardware. Module names mirror
:mod:`calbench.drivers`; each provides ``create_emulator(...)``.
"""

from calbench.emulators.base import EmulatorBase
from calbench.emulators.heat_chamber import HeatChamberEmulator
from calbench.emulators.pressure_gauge import PressureGaugeEmulator
from calbench.emulators.regulator import PressureRegulatorEmulator
from calbench.emulators.thermometer import ThermometerEmulator
from calbench.emulators.thermostat import ThermostatEmulator

__all__ = [
    "EmulatorBase",
    "HeatChamberEmulator",
    "PressureGaugeEmulator",
    "PressureRegulatorEmulator",
    "ThermometerEmulator",
    "ThermostatEmulator",
]
