"""Byte transport protocol definition.

This module defines the :class:`ByteTransport` protocol, which specifies the
interface that every physical channel used by an instrument driver must
provide. Transports move raw bytes; framing, checksums and deadlines live in
:mod:`calbench.framing` and :mod:`calbench.reader`.

Implementations include:
- :class:`calbench.serial_port.SerialTransport`: pyserial-backed RS-232 port
- :class:`calbench.hid_device.HidTransport`: hidapi-backed USB-HID device
- :class:`calbench.testing.MemoryTransport`: in-memory stand-in for tests
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class ByteTransport(Protocol):
    """Protocol for a cancellable byte duplex.

    All blocking operations are coroutines, so cancelling the awaiting task
    cancels the operation. A cancelled operation leaves the transport either
    open and usable or fully closed.

    ``read()`` never blocks for longer than the transport's poll interval. It
    returns ``b""`` when nothing arrived, which lets callers enforce their own
    deadline and observe cancellation between attempts.
    """

    @property
    def is_open(self) -> bool:
        """Return True if the underlying handle is open."""
        ...

    async def open(self) -> None:
        """Open the channel, closing any previously owned handle first.

        Raises:
            TransportOpenError: If the channel cannot be acquired.
        """
        ...

    async def write(self, data: bytes) -> None:
        """Write all of ``data``.

        Raises:
            TransportClosedError: If the transport is not open.
            TransportIOError: If the write fails.
        """
        ...

    async def read(self, max_count: int) -> bytes:
        """Read up to ``max_count`` bytes.

        Returns:
            The bytes received, or ``b""`` if none arrived within the poll
            interval.

        Raises:
            TransportClosedError: If the stream has ended.
            TransportIOError: If the read fails.
        """
        ...

    async def discard_input(self) -> None:
        """Drop any bytes already received but not yet read."""
        ...

    def close(self) -> None:
        """Release the handle. Safe to call multiple times."""
        ...


TransportFactory = Callable[[str], ByteTransport]
"""Builds an unopened transport from a port or device identifier."""


async def open_in_executor(opener: Callable[[], T], closer: Callable[[T], None]) -> T:
    """Run a blocking open call in the default executor without leaking it.

    If the awaiting task is cancelled while ``opener`` is still running, the
    handle it eventually returns is passed to ``closer`` instead of being
    dropped.

    Args:
        opener: Blocking callable returning an open handle.
        closer: Callable that releases a handle returned by ``opener``.

    Returns:
        The open handle.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, opener)
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:

        def _release(done: asyncio.Future[T]) -> None:
            if not done.cancelled() and done.exception() is None:
                closer(done.result())

        future.add_done_callback(_release)
        raise
