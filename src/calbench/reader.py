"""Deadline-bounded reads over a byte transport.

The functions in this module turn a :class:`~calbench.transport.ByteTransport`
into "exactly N bytes" or "up to a terminator" reads. The deadline is rolling:
every time at least one byte arrives it moves forward by ``timeout``, so what
is bounded is the idle time between bytes rather than the total duration of
the call. A slow device that keeps making progress is tolerated.

The deadline uses :func:`time.monotonic`. Cancellation of the awaiting task
propagates from every await, including the short pause taken after an empty
read.
"""

from __future__ import annotations

import asyncio
import time

from calbench.errors import IncompletePacketError, ResponseTimeoutError, TransportClosedError
from calbench.transport import ByteTransport

IDLE_PAUSE = 0.01
"""Pause in seconds after a read that returned no bytes."""


async def read_exact(transport: ByteTransport, count: int, timeout: float) -> bytes:
    """Read exactly ``count`` bytes.

    Args:
        transport: An open transport.
        count: Number of bytes to read.
        timeout: Maximum idle time in seconds between received bytes.

    Returns:
        Exactly ``count`` bytes.

    Raises:
        ResponseTimeoutError: If no byte arrives for ``timeout`` seconds.
        IncompletePacketError: If the stream ends before ``count`` bytes.
        asyncio.CancelledError: If the awaiting task is cancelled.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if timeout <= 0:
        raise ValueError("timeout must be positive")

    buffer = bytearray()
    deadline = time.monotonic() + timeout
    while len(buffer) < count:
        try:
            chunk = await transport.read(count - len(buffer))
        except TransportClosedError as exc:
            raise IncompletePacketError(
                f"Stream closed after {len(buffer)} of {count} bytes",
                partial=bytes(buffer),
                expected=count,
            ) from exc
        if chunk:
            buffer.extend(chunk)
            deadline = time.monotonic() + timeout
            continue
        if time.monotonic() >= deadline:
            raise ResponseTimeoutError(
                f"No data for {timeout:.3f} s after {len(buffer)} of {count} bytes"
            )
        await asyncio.sleep(IDLE_PAUSE)
    return bytes(buffer)


async def read_until(
    transport: ByteTransport,
    terminator: bytes,
    timeout: float,
    *,
    max_size: int = 1024,
) -> bytes:
    """Read up to and including ``terminator``.

    Bytes are requested one at a time so nothing past the terminator is
    consumed from the transport.

    Args:
        transport: An open transport.
        terminator: Byte sequence that ends the message.
        timeout: Maximum idle time in seconds between received bytes.
        max_size: Maximum message length including the terminator.

    Returns:
        The message including the terminator.

    Raises:
        ResponseTimeoutError: If no byte arrives for ``timeout`` seconds.
        IncompletePacketError: If the stream ends before the terminator, or
            ``max_size`` bytes arrive without one.
        asyncio.CancelledError: If the awaiting task is cancelled.
    """
    if not terminator:
        raise ValueError("terminator must not be empty")
    if timeout <= 0:
        raise ValueError("timeout must be positive")

    buffer = bytearray()
    deadline = time.monotonic() + timeout
    while not buffer.endswith(terminator):
        if len(buffer) >= max_size:
            raise IncompletePacketError(
                f"No terminator {terminator!r} within {max_size} bytes", partial=bytes(buffer)
            )
        try:
            chunk = await transport.read(1)
        except TransportClosedError as exc:
            raise IncompletePacketError(
                f"Stream closed after {len(buffer)} bytes without terminator {terminator!r}",
                partial=bytes(buffer),
            ) from exc
        if chunk:
            buffer.extend(chunk)
            deadline = time.monotonic() + timeout
            continue
        if time.monotonic() >= deadline:
            raise ResponseTimeoutError(
                f"No data for {timeout:.3f} s waiting for terminator {terminator!r}"
            )
        await asyncio.sleep(IDLE_PAUSE)
    return bytes(buffer)
