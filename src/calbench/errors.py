"""Exception types for calbench.

This module defines the exception hierarchy used by transports, codecs, the
deadline-bounded reader and the instrument drivers. All calbench exceptions
inherit from CalbenchError, allowing consumers to catch all engine errors with
a single except clause.

Cancellation is not part of this hierarchy: a cancelled operation raises
``asyncio.CancelledError`` unchanged.

Exception hierarchy:
    CalbenchError (base)
    +-- TransportOpenError: Transport could not be acquired
    +-- TransportIOError: Read/write failure on an open transport
    |   +-- TransportClosedError: Stream ended or handle not open
    +-- ResponseTimeoutError: No response within the deadline
    |   +-- PowerStateTimeoutError: Device never confirmed a power state
    +-- IncompletePacketError: Stream ended mid-packet
    +-- FrameError: Checksum or structural validation failed
    +-- ProtocolStatusError: Device returned a non-success status code
    +-- ValueRangeError: Caller value outside the device's domain
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from calbench.framing import ThermostatStatus


class CalbenchError(Exception):
    """Base exception for all calbench errors.

    This is the root of the calbench exception hierarchy. Catch this to handle
    any engine-specific error.
    """


class TransportOpenError(CalbenchError):
    """Raised when a serial port or HID device cannot be opened.

    Common causes are a missing device, a port held by another process, or
    the hardware library not being installed.
    """


class TransportIOError(CalbenchError):
    """Raised when a read or write on an open transport fails."""


class TransportClosedError(TransportIOError):
    """Raised when the byte stream has ended.

    The transport was never opened, has been closed, or the underlying device
    disappeared.
    """


class ResponseTimeoutError(CalbenchError, TimeoutError):
    """Raised when no byte arrives before the read deadline elapses."""


class PowerStateTimeoutError(ResponseTimeoutError):
    """Raised when a device never confirms a requested power state."""


class IncompletePacketError(CalbenchError):
    """Raised when the stream closes before a full packet was received.

    Attributes:
        partial: The bytes received before the stream ended.
        expected: Number of bytes that were expected, if known.
    """

    def __init__(self, message: str, partial: bytes = b"", expected: int | None = None) -> None:
        self.partial = partial
        self.expected = expected
        super().__init__(message)


class FrameError(CalbenchError):
    """Raised when a packet fails checksum or structural validation."""


class ProtocolStatusError(CalbenchError):
    """Raised when a device answers with a non-success status code.

    Attributes:
        status: The decoded status, or None if the code is not recognized.
        raw_status: The status token exactly as sent by the device.
    """

    def __init__(self, message: str, status: ThermostatStatus | None, raw_status: str) -> None:
        self.status = status
        self.raw_status = raw_status
        super().__init__(message)


class ValueRangeError(CalbenchError, ValueError):
    """Raised when a caller-supplied value cannot be represented by the device."""
