"""Thermal/humidity chamber driver.

The chamber speaks a length-prefixed binary protocol over RS-232 at
115200 8N1 (see :mod:`calbench.framing`). Every request is answered by one
packet whose first byte is its total length; the driver reads that byte, then
the remainder, each bounded by the rolling response timeout.

Payload layouts (offsets within the packet payload):

Current parameters (command 0x01), at least 13 bytes::

    10  temperature   int8   degC
    11  humidity      uint8  %RH
    12  progress      uint8  % of program elapsed

Time scheme (commands 0x04/0x05), exactly 65 bytes, little-endian::

    0        repeat count        uint16
    2 + 7*i  step i (i = 0..8):
        +0   used                uint8
        +1   temperature         int8
        +2   humidity            int8
        +3   minutes to reach    uint16
        +5   minutes to hold     uint16

Setup constants (command 0x14), 15 bytes::

    0..6   temperature high/low/delta/dead zone/correction, sound delta,
           cooler off delay                               int8 each
    7      heat time                                      uint16 big-endian
    9      cool time                                      uint16 big-endian
    11     humidity present flag                          uint8
    12..14 humidity delta/dead zone/correction            int8 each

Clock (command 0x0B), 6 bytes: second, minute, hour, day, month, year % 100.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum

from calbench.drivers.base import InstrumentDriver
from calbench.errors import CalbenchError, FrameError
from calbench.framing import (
    CHAMBER_DEFAULT_ADDRESS,
    CHAMBER_DEVICE_TYPE,
    CHAMBER_OVERHEAD,
    ChamberFrame,
    decode_chamber_packet,
    encode_chamber_packet,
)
from calbench.reader import read_exact
from calbench.serial_port import SerialSettings, SerialTransport
from calbench.transport import ByteTransport, TransportFactory
from calbench.types import (
    MAX_SCHEME_ENTRIES,
    ChamberParams,
    ChamberSetup,
    DeviceReading,
    TimeScheme,
    TimeSchemeEntry,
    Unit,
)

logger = logging.getLogger(__name__)


class ChamberCommand(IntEnum):
    """Thermal chamber command bytes."""

    READ_DEVICE_ID = 0x00
    READ_CURRENT_PARAMS = 0x01
    WRITE_TIME_SCHEME = 0x04
    READ_TIME_SCHEME = 0x05
    START_PROCESS = 0x06
    STOP_PROCESS = 0x07
    SET_DATETIME = 0x0B
    WRITE_SETTINGS = 0x14


# -- Payload layouts ---------------------------------------------------------

PARAMS_MIN_SIZE = 13
PARAMS_TEMPERATURE_OFFSET = 10
PARAMS_HUMIDITY_OFFSET = 11
PARAMS_PROGRESS_OFFSET = 12

_SCHEME_HEADER = struct.Struct("<H")
_SCHEME_ENTRY = struct.Struct("<BbbHH")
SCHEME_SIZE = _SCHEME_HEADER.size + MAX_SCHEME_ENTRIES * _SCHEME_ENTRY.size

_SETUP = struct.Struct(">7bHHB3b")


def decode_current_params(payload: bytes) -> ChamberParams:
    """Decode a current-parameters payload.

    Raises:
        FrameError: If the payload is shorter than 13 bytes.
    """
    if len(payload) < PARAMS_MIN_SIZE:
        raise FrameError(
            f"Current parameters payload is {len(payload)} bytes, expected >= {PARAMS_MIN_SIZE}"
        )
    temperature = struct.unpack_from("b", payload, PARAMS_TEMPERATURE_OFFSET)[0]
    return ChamberParams(
        temperature=DeviceReading(float(temperature), Unit.DEGREE_CELSIUS),
        humidity=DeviceReading(float(payload[PARAMS_HUMIDITY_OFFSET]), Unit.RELATIVE_HUMIDITY),
        progress=DeviceReading(float(payload[PARAMS_PROGRESS_OFFSET]), Unit.PERCENT),
    )


def encode_time_scheme(scheme: TimeScheme) -> bytes:
    """Serialize a program to the 65-byte wire block."""
    parts = [_SCHEME_HEADER.pack(scheme.repeat_count)]
    for entry in scheme.padded():
        parts.append(
            _SCHEME_ENTRY.pack(
                1 if entry.used else 0,
                entry.temperature,
                entry.humidity,
                entry.minutes_to_reach,
                entry.minutes_to_hold,
            )
        )
    return b"".join(parts)


def decode_time_scheme(payload: bytes) -> TimeScheme:
    """Decode the 65-byte wire block into a program of nine steps.

    Raises:
        FrameError: If the payload is shorter than 65 bytes.
    """
    if len(payload) < SCHEME_SIZE:
        raise FrameError(f"Time scheme payload is {len(payload)} bytes, expected {SCHEME_SIZE}")
    (repeat_count,) = _SCHEME_HEADER.unpack_from(payload, 0)
    entries = []
    for index in range(MAX_SCHEME_ENTRIES):
        used, temperature, humidity, to_reach, to_hold = _SCHEME_ENTRY.unpack_from(
            payload, _SCHEME_HEADER.size + index * _SCHEME_ENTRY.size
        )
        entries.append(TimeSchemeEntry(bool(used), temperature, humidity, to_reach, to_hold))
    return TimeScheme(repeat_count=repeat_count, entries=tuple(entries))


def encode_setup(setup: ChamberSetup) -> bytes:
    """Serialize setup constants to the 15-byte wire block."""
    return _SETUP.pack(
        setup.temperature_high,
        setup.temperature_low,
        setup.temperature_delta,
        setup.temperature_dead_zone,
        setup.temperature_correction,
        setup.sound_delta,
        setup.cooler_off_delay,
        setup.heat_time,
        setup.cool_time,
        1 if setup.has_humidity else 0,
        setup.humidity_delta,
        setup.humidity_dead_zone,
        setup.humidity_correction,
    )


def encode_datetime(now: datetime) -> bytes:
    """Serialize a clock value to the 6-byte wire block."""
    return bytes((now.second, now.minute, now.hour, now.day, now.month, now.year % 100))


# -- Driver ------------------------------------------------------------------


@dataclass(frozen=True)
class HeatChamberConfig:
    """Configuration for a thermal chamber.

    Attributes:
        port: Default serial port name.
        timeout: Maximum idle time in seconds between response bytes.
        device_type: Device type byte placed in requests.
        address: Device address placed in requests.
        serial: Serial line settings.
    """

    port: str | None = None
    timeout: float = 1.0
    device_type: int = CHAMBER_DEVICE_TYPE
    address: int = CHAMBER_DEFAULT_ADDRESS
    serial: SerialSettings = field(default_factory=lambda: SerialSettings(baudrate=115200))

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if not 0 <= self.address <= 0xFFFF:
            raise ValueError(f"address must be 0-65535, got {self.address}")
        if not 0 <= self.device_type <= 0xFF:
            raise ValueError(f"device_type must be 0-255, got {self.device_type}")


class HeatChamberDriver(InstrumentDriver):
    """Driver for the thermal chamber.

    Implements the :class:`~calbench.interfaces.HeatChamber` interface.

    Args:
        config: Chamber configuration.
        transport_factory: Builds the transport for a port name. Defaults to a
            :class:`SerialTransport` with the configured line settings.
    """

    def __init__(
        self,
        config: HeatChamberConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or HeatChamberConfig()
        super().__init__(
            self._config.port,
            transport_factory or (lambda port: SerialTransport(port, self._config.serial)),
        )

    @property
    def config(self) -> HeatChamberConfig:
        """The chamber configuration."""
        return self._config

    async def get_connected_device_id(self) -> tuple[int, int]:
        """Return the (device type, address) reported by the chamber."""
        logger.info("Reading chamber device id")
        frame = await self._send_command(ChamberCommand.READ_DEVICE_ID)
        return frame.device_type, frame.address

    async def get_current_params(self) -> ChamberParams:
        """Read the current temperature, humidity and program progress.

        Raises:
            FrameError: If the payload is shorter than 13 bytes.
        """
        logger.info("Reading chamber current parameters")
        frame = await self._send_command(ChamberCommand.READ_CURRENT_PARAMS)
        return decode_current_params(frame.payload)

    async def read_time_scheme(self) -> TimeScheme:
        """Read the stored program.

        Raises:
            FrameError: If the payload is shorter than 65 bytes.
        """
        logger.info("Reading chamber time scheme")
        frame = await self._send_command(ChamberCommand.READ_TIME_SCHEME)
        return decode_time_scheme(frame.payload)

    async def write_time_scheme(self, scheme: TimeScheme) -> None:
        """Replace the stored program with ``scheme``."""
        first = scheme.entries[0].temperature if scheme.entries else None
        logger.info("Writing chamber time scheme, T0=%s", first)
        await self._send_command(ChamberCommand.WRITE_TIME_SCHEME, encode_time_scheme(scheme))

    async def start_process(self) -> None:
        """Start executing the stored program."""
        logger.info("Starting chamber program")
        await self._send_command(ChamberCommand.START_PROCESS)

    async def stop_process(self) -> None:
        """Stop executing the program."""
        logger.info("Stopping chamber program")
        await self._send_command(ChamberCommand.STOP_PROCESS)

    async def set_current_datetime(self, now: datetime | None = None) -> None:
        """Set the chamber clock, defaulting to the local time."""
        now = now or datetime.now()
        logger.info("Setting chamber clock to %s", now.isoformat(timespec="seconds"))
        await self._send_command(ChamberCommand.SET_DATETIME, encode_datetime(now))

    async def write_setup_params(self, setup: ChamberSetup) -> None:
        """Write the factory setup constants."""
        logger.info("Writing chamber setup parameters")
        await self._send_command(ChamberCommand.WRITE_SETTINGS, encode_setup(setup))

    async def _send_command(self, command: ChamberCommand, payload: bytes = b"") -> ChamberFrame:
        transport = self._require_transport()
        request = encode_chamber_packet(
            command,
            payload,
            device_type=self._config.device_type,
            address=self._config.address,
        )
        try:
            packet = await self._exchange(transport, request)
            frame = decode_chamber_packet(packet)
        except CalbenchError:
            logger.warning("Chamber command 0x%02X (%s) failed", command, command.name)
            raise
        logger.debug(
            "Chamber reply to %s from type 0x%02X address %d: %s",
            command.name,
            frame.device_type,
            frame.address,
            frame.payload.hex(" "),
        )
        return frame

    async def _exchange(self, transport: ByteTransport, request: bytes) -> bytes:
        timeout = self._config.timeout
        await transport.discard_input()
        logger.debug("TX %s", request.hex(" "))
        await transport.write(request)
        head = await read_exact(transport, 1, timeout)
        if head[0] < CHAMBER_OVERHEAD:
            raise FrameError(f"Chamber reply declares impossible length {head[0]}")
        packet = head + await read_exact(transport, head[0] - 1, timeout)
        logger.debug("RX %s", packet.hex(" "))
        return packet


def create_instrument(
    port: str | None = None,
    timeout: float = 1.0,
    address: int = CHAMBER_DEFAULT_ADDRESS,
    device_type: int = CHAMBER_DEVICE_TYPE,
) -> HeatChamberDriver:
    """Create a thermal chamber driver from configuration parameters.

    Standard factory entry point for bench files and programmatic use. The
    returned driver is not yet open.
    """
    return HeatChamberDriver(
        HeatChamberConfig(port=port, timeout=timeout, address=address, device_type=device_type)
    )
