"""In-memory byte transport for exercising drivers without hardware.

:class:`MemoryTransport` implements :class:`~calbench.transport.ByteTransport`.
A responder callable sees every written request and returns the bytes the
"device" answers with. Replies can be dripped out one byte at a time with a
pause between bytes, and the stream can be ended to simulate a vanished
device.

Example:
    Script a regulator that echoes a set-point code::

        transport = MemoryTransport(lambda request: b"512\\r\\n")
        driver = PressureRegulatorDriver(
            RegulatorConfig(port="mem"), transport_factory=lambda _: transport
        )
"""

from __future__ import annotations

import time
from typing import Callable

from calbench.errors import TransportClosedError, TransportOpenError

Responder = Callable[[bytes], "bytes | None"]


class MemoryTransport:
    """Scripted in-memory transport.

    Args:
        responder: Called with each written request; its return value, if
            any, is queued as incoming data.
        drip_delay: If set, incoming bytes are released one at a time, each
            ``drip_delay`` seconds after the previous one.
        chunk_size: Maximum bytes returned by one ``read()`` when not dripping.
        open_error: If set, ``open()`` raises it.

    Attributes:
        written: Every request written, in order.
        open_count: Number of successful ``open()`` calls.
        discard_count: Number of ``discard_input()`` calls.
    """

    def __init__(
        self,
        responder: Responder | None = None,
        *,
        drip_delay: float = 0.0,
        chunk_size: int | None = None,
        open_error: Exception | None = None,
    ) -> None:
        self._responder = responder
        self._drip_delay = drip_delay
        self._chunk_size = chunk_size
        self._open_error = open_error
        self._incoming = bytearray()
        self._next_due = 0.0
        self._ended = False
        self._open = False
        self.written: list[bytes] = []
        self.open_count = 0
        self.discard_count = 0

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        if self._open_error is not None:
            raise self._open_error
        self._open = True
        self.open_count += 1

    def close(self) -> None:
        self._open = False

    def feed(self, data: bytes) -> None:
        """Queue ``data`` as incoming bytes."""
        if not self._incoming:
            self._next_due = time.monotonic() + self._drip_delay
        self._incoming.extend(data)

    def end_stream(self) -> None:
        """End the stream: once queued bytes are consumed, reads raise."""
        self._ended = True

    async def write(self, data: bytes) -> None:
        self._require_open()
        self.written.append(bytes(data))
        if self._responder is not None:
            reply = self._responder(bytes(data))
            if reply:
                self.feed(reply)

    async def read(self, max_count: int) -> bytes:
        self._require_open()
        if not self._incoming:
            if self._ended:
                raise TransportClosedError("Memory stream ended")
            return b""
        if self._drip_delay:
            now = time.monotonic()
            if now < self._next_due:
                return b""
            self._next_due = now + self._drip_delay
            count = 1
        else:
            count = min(max_count, self._chunk_size or max_count)
        chunk = bytes(self._incoming[:count])
        del self._incoming[:count]
        return chunk

    async def discard_input(self) -> None:
        self._require_open()
        self.discard_count += 1
        self._incoming.clear()

    def _require_open(self) -> None:
        if not self._open:
            raise TransportClosedError("Memory transport is not open")


def failing_open(message: str = "no such device") -> MemoryTransport:
    """Return a transport whose ``open()`` fails with :class:`TransportOpenError`."""
    return MemoryTransport(open_error=TransportOpenError(message))
