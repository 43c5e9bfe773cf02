"""Instrument drivers.

One module per physical instrument. Each driver owns exactly one transport,
implements one capability interface from :mod:`calbench.interfaces`, and
exposes a ``create_instrument(...)`` factory for bench files.

Modules:
    heat_chamber: Thermal/humidity chamber (RS-232, binary frames).
    pressure_gauge: Digital pressure gauge (RS-232, HART-style frames).
    regulator: Electro-pneumatic pressure regulator (RS-232, ASCII lines).
    thermostat: Precision liquid thermostat (USB-HID, ASCII reports).
    thermometer: Contact reference thermometer (RS-232 or USB-HID).
"""

from calbench.drivers.base import InstrumentDriver
from calbench.drivers.heat_chamber import HeatChamberConfig, HeatChamberDriver
from calbench.drivers.pressure_gauge import PressureGaugeConfig, PressureGaugeDriver
from calbench.drivers.regulator import PressureRegulatorDriver, RegulatorConfig
from calbench.drivers.thermometer import (
    SerialThermometerDriver,
    ThermometerConfig,
    UsbThermometerDriver,
)
from calbench.drivers.thermostat import ThermostatConfig, ThermostatDriver

__all__ = [
    "InstrumentDriver",
    "HeatChamberConfig",
    "HeatChamberDriver",
    "PressureGaugeConfig",
    "PressureGaugeDriver",
    "PressureRegulatorDriver",
    "RegulatorConfig",
    "SerialThermometerDriver",
    "ThermometerConfig",
    "ThermostatConfig",
    "ThermostatDriver",
    "UsbThermometerDriver",
]
