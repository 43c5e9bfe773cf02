"""Checksum and framing codecs.

Three framing families are used on the bench. Every function in this module
is pure: encoders return immutable ``bytes`` and validators either return the
payload of a complete, checksum-correct packet or raise
:class:`~calbench.errors.FrameError`. A packet that fails validation is never
partially interpreted.

Thermal chamber (length-prefixed, additive complement)::

    [length][device type][addr lo][addr hi][command][data...][checksum]

    checksum = (256 - sum(preceding bytes)) mod 256

Pressure gauge (preamble, XOR)::

    FF FF FF 82 FF FF FF FF 00 [command][data length][data...][checksum]

    checksum = XOR of bytes 3 .. end of data

Thermostat (ASCII line)::

    request:  ":<address> <command>[.<parameter>[.<subparameter>]] <RD|WR> <value>\\n"
    response: "<echo> <status hex> [value]"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import reduce
from operator import xor

from calbench.errors import FrameError, ProtocolStatusError, ValueRangeError

# ---------------------------------------------------------------------------
# Thermal chamber
# ---------------------------------------------------------------------------

CHAMBER_DEVICE_TYPE = 0x62
CHAMBER_DEFAULT_ADDRESS = 1
CHAMBER_OVERHEAD = 6
"""Length byte, device type, two address bytes, command and checksum."""


@dataclass(frozen=True)
class ChamberFrame:
    """A validated thermal chamber packet.

    Attributes:
        device_type: Device type byte.
        address: 16-bit device address.
        command: Command byte.
        payload: Data bytes between the command and the checksum.
    """

    device_type: int
    address: int
    command: int
    payload: bytes


def chamber_checksum(data: bytes) -> int:
    """Return the additive-complement checksum of ``data``."""
    return (256 - sum(data)) % 256


def encode_chamber_packet(
    command: int,
    payload: bytes = b"",
    *,
    device_type: int = CHAMBER_DEVICE_TYPE,
    address: int = CHAMBER_DEFAULT_ADDRESS,
) -> bytes:
    """Build a thermal chamber request packet.

    Args:
        command: Command byte.
        payload: Command data.
        device_type: Device type byte.
        address: 16-bit device address (sent little-endian).

    Returns:
        The complete packet including length and checksum.

    Raises:
        ValueRangeError: If the packet would not fit in a length byte or a
            header field is out of range.
    """
    length = CHAMBER_OVERHEAD + len(payload)
    if length > 0xFF:
        raise ValueRangeError(f"Chamber payload of {len(payload)} bytes is too long")
    if not 0 <= command <= 0xFF or not 0 <= device_type <= 0xFF:
        raise ValueRangeError("Chamber command and device type must be single bytes")
    if not 0 <= address <= 0xFFFF:
        raise ValueRangeError(f"Chamber address must be 0-65535, got {address}")
    body = bytes((length, device_type, address & 0xFF, address >> 8, command)) + bytes(payload)
    return body + bytes((chamber_checksum(body),))


def decode_chamber_packet(packet: bytes) -> ChamberFrame:
    """Validate a thermal chamber packet and split it into fields.

    Raises:
        FrameError: If the length byte disagrees with the packet size, the
            packet is shorter than the fixed header, or the checksum fails.
    """
    if len(packet) < CHAMBER_OVERHEAD:
        raise FrameError(f"Chamber packet too short: {len(packet)} bytes")
    if packet[0] != len(packet):
        raise FrameError(
            f"Chamber length byte {packet[0]} does not match packet size {len(packet)}"
        )
    if sum(packet) % 256 != 0:
        raise FrameError(f"Chamber checksum mismatch in packet {packet.hex(' ')}")
    return ChamberFrame(
        device_type=packet[1],
        address=packet[2] | (packet[3] << 8),
        command=packet[4],
        payload=bytes(packet[5:-1]),
    )


def validate_chamber_packet(packet: bytes) -> bytes:
    """Validate a thermal chamber packet and return its payload."""
    return decode_chamber_packet(packet).payload


# ---------------------------------------------------------------------------
# Pressure gauge
# ---------------------------------------------------------------------------

GAUGE_PREAMBLE = b"\xff\xff\xff"
GAUGE_MASTER_START = 0x82
GAUGE_SLAVE_START = 0x86
GAUGE_ADDRESS = b"\xff\xff\xff\xff\x00"
GAUGE_HEADER_SIZE = 11
"""Preamble, start byte, 5-byte address field, command and length byte."""
GAUGE_CHECKSUM_FROM = 3


def gauge_checksum(data: bytes) -> int:
    """Return the XOR of ``data`` from the start byte onward."""
    return reduce(xor, data[GAUGE_CHECKSUM_FROM:], 0)


def encode_gauge_packet(command: int, payload: bytes = b"") -> bytes:
    """Build a pressure gauge request packet.

    Raises:
        ValueRangeError: If the command or payload length does not fit a byte.
    """
    if not 0 <= command <= 0xFF:
        raise ValueRangeError(f"Gauge command must be a single byte, got {command}")
    if len(payload) > 0xFF:
        raise ValueRangeError(f"Gauge payload of {len(payload)} bytes is too long")
    body = (
        GAUGE_PREAMBLE
        + bytes((GAUGE_MASTER_START,))
        + GAUGE_ADDRESS
        + bytes((command, len(payload)))
        + bytes(payload)
    )
    return body + bytes((gauge_checksum(body),))


def validate_gauge_packet(packet: bytes, command: int | None = None) -> bytes:
    """Validate a pressure gauge packet and return its payload.

    Args:
        packet: The complete packet including preamble and checksum.
        command: If given, the command byte the packet must carry.

    Raises:
        FrameError: If the packet is malformed, the checksum fails, the
            command does not match, or the declared length disagrees with
            the packet size.
    """
    if len(packet) < GAUGE_HEADER_SIZE + 1:
        raise FrameError(f"Gauge packet too short: {len(packet)} bytes")
    if packet[:3] != GAUGE_PREAMBLE:
        raise FrameError(f"Gauge packet has no preamble: {packet[:3].hex(' ')}")
    if packet[3] not in (GAUGE_MASTER_START, GAUGE_SLAVE_START):
        raise FrameError(f"Gauge packet has unknown start byte 0x{packet[3]:02x}")
    if gauge_checksum(packet) != 0:
        raise FrameError(f"Gauge checksum mismatch in packet {packet.hex(' ')}")
    if command is not None and packet[9] != command:
        raise FrameError(f"Gauge answered command 0x{packet[9]:02x}, expected 0x{command:02x}")
    declared = packet[10]
    if GAUGE_HEADER_SIZE + declared + 1 != len(packet):
        raise FrameError(
            f"Gauge length byte {declared} does not match packet size {len(packet)}"
        )
    return bytes(packet[GAUGE_HEADER_SIZE : GAUGE_HEADER_SIZE + declared])


# ---------------------------------------------------------------------------
# Thermostat ASCII lines
# ---------------------------------------------------------------------------

READ = "RD"
WRITE = "WR"


class ThermostatStatus(Enum):
    """Status codes returned in the second token of a thermostat response."""

    OK = 0x00
    MALFORMED_REQUEST = 0x01
    MALFORMED_VALUE = 0x02
    UNKNOWN_ADDRESS = 0x03
    UNKNOWN_OPERATION = 0x04
    VALUE_OUT_OF_RANGE = 0x05
    UNAVAILABLE_WHEN_OFF = 0x06

    @property
    def description(self) -> str:
        """Human-readable fault description."""
        return _STATUS_DESCRIPTIONS[self]


_STATUS_DESCRIPTIONS: dict[ThermostatStatus, str] = {
    ThermostatStatus.OK: "operation completed",
    ThermostatStatus.MALFORMED_REQUEST: "malformed request",
    ThermostatStatus.MALFORMED_VALUE: "malformed value",
    ThermostatStatus.UNKNOWN_ADDRESS: "unknown address",
    ThermostatStatus.UNKNOWN_OPERATION: "unknown operation",
    ThermostatStatus.VALUE_OUT_OF_RANGE: "value out of range",
    ThermostatStatus.UNAVAILABLE_WHEN_OFF: "command unavailable while powered off",
}


def encode_thermostat_request(
    address: str,
    command: str,
    operation: str,
    parameter: str | None = None,
    subparameter: str | None = None,
    value: str | None = None,
) -> bytes:
    """Build a thermostat request line.

    The value field is always present, empty for reads, matching the device's
    expected layout ``":00000000 RUN RD \\n"``.

    Raises:
        ValueError: If the operation is not ``RD`` or ``WR``.
    """
    if operation not in (READ, WRITE):
        raise ValueError(f"operation must be {READ!r} or {WRITE!r}, got {operation!r}")
    target = command
    if parameter:
        target += f".{parameter}"
    if subparameter:
        target += f".{subparameter}"
    return f":{address} {target} {operation} {value or ''}\n".encode("ascii")


def encode_thermostat_response(echo: str, status: ThermostatStatus, value: str | None = None) -> bytes:
    """Build a thermostat response line, as sent by the device."""
    line = f"{echo} 0x{status.value:02X}"
    if value is not None:
        line += f" {value}"
    return (line + "\r\n").encode("ascii")


def parse_thermostat_response(data: bytes) -> str:
    """Check the status of a thermostat response and return its value.

    Args:
        data: Raw response bytes, possibly NUL-padded to a full report.

    Returns:
        The third token with line terminators trimmed, or ``""`` if absent.

    Raises:
        FrameError: If the response has no status token.
        ProtocolStatusError: If the status is not ``0x00``.
    """
    text = data.decode("ascii", errors="replace").rstrip("\x00")
    tokens = text.split(" ")
    if len(tokens) < 2:
        raise FrameError(f"Thermostat response has no status: {text!r}")
    raw_status = tokens[1].strip("\r\n\x00")
    try:
        status: ThermostatStatus | None = ThermostatStatus(int(raw_status, 16))
    except ValueError:
        status = None
    if status is None:
        raise ProtocolStatusError(f"Unknown thermostat status {raw_status!r}", None, raw_status)
    if status is not ThermostatStatus.OK:
        raise ProtocolStatusError(
            f"Thermostat reported {status.description} ({raw_status})", status, raw_status
        )
    if len(tokens) < 3:
        return ""
    return tokens[2].rstrip("\r\n\x00")
