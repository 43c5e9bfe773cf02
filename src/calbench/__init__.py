"""Instrument protocol engine for a pressure/temperature calibration bench.

This package talks to the bench instruments (thermal chamber, pressure gauge,
pressure regulator, liquid thermostat, reference thermometer) over RS-232 and
USB-HID through one cancellable request/response contract, and provides an
in-process emulator for each of them.

Modules:
    interfaces: Capability protocols shared by drivers and emulators.
    drivers: One driver per physical instrument.
    emulators: One emulator per capability interface.
    framing: Checksum and framing codecs.
    reader: Deadline-bounded reads over a byte transport.
    bench: YAML bench configuration and instrument construction.
    testing: In-memory transport for exercising drivers.

Example:
    Read the pressure gauge::

        from calbench.drivers.pressure_gauge import create_instrument

        async with create_instrument("/dev/ttyUSB1") as gauge:
            await gauge.open()
            reading = await gauge.get_pressure()
"""

from calbench.errors import (
    CalbenchError,
    FrameError,
    IncompletePacketError,
    PowerStateTimeoutError,
    ProtocolStatusError,
    ResponseTimeoutError,
    TransportClosedError,
    TransportIOError,
    TransportOpenError,
    ValueRangeError,
)
from calbench.interfaces import (
    INSTRUMENT_KINDS,
    HeatChamber,
    PressureGauge,
    PressureRegulator,
    Thermometer,
    Thermostat,
)
from calbench.types import (
    ChamberParams,
    ChamberSetup,
    DeviceReading,
    FluidType,
    TimeScheme,
    TimeSchemeEntry,
    Unit,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "CalbenchError",
    "FrameError",
    "IncompletePacketError",
    "PowerStateTimeoutError",
    "ProtocolStatusError",
    "ResponseTimeoutError",
    "TransportClosedError",
    "TransportIOError",
    "TransportOpenError",
    "ValueRangeError",
    # Capability interfaces
    "INSTRUMENT_KINDS",
    "HeatChamber",
    "PressureGauge",
    "PressureRegulator",
    "Thermometer",
    "Thermostat",
    # Values
    "ChamberParams",
    "ChamberSetup",
    "DeviceReading",
    "FluidType",
    "TimeScheme",
    "TimeSchemeEntry",
    "Unit",
]
