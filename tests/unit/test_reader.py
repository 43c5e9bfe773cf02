"""Unit tests for deadline-bounded reads."""

from __future__ import annotations

import asyncio

import pytest

from calbench.errors import IncompletePacketError, ResponseTimeoutError
from calbench.reader import read_exact, read_until
from calbench.testing import MemoryTransport


async def _open(transport: MemoryTransport) -> MemoryTransport:
    await transport.open()
    return transport


class TestReadExact:
    @pytest.mark.asyncio
    async def test_reads_count(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"abcdef")
        assert await read_exact(transport, 4, 0.5) == b"abcd"
        assert await read_exact(transport, 2, 0.5) == b"ef"

    @pytest.mark.asyncio
    async def test_small_chunks(self) -> None:
        transport = await _open(MemoryTransport(chunk_size=1))
        transport.feed(b"\x01\x02\x03")
        assert await read_exact(transport, 3, 0.5) == b"\x01\x02\x03"

    @pytest.mark.asyncio
    async def test_zero_count(self) -> None:
        transport = await _open(MemoryTransport())
        assert await read_exact(transport, 0, 0.1) == b""

    @pytest.mark.asyncio
    async def test_drip_below_timeout_succeeds(self) -> None:
        # Total duration exceeds the timeout, but no gap does.
        transport = await _open(MemoryTransport(drip_delay=0.1))
        transport.feed(b"12345")
        assert await read_exact(transport, 5, 0.2) == b"12345"

    @pytest.mark.asyncio
    async def test_stall_times_out(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"ab")
        with pytest.raises(ResponseTimeoutError):
            await read_exact(transport, 3, 0.05)

    @pytest.mark.asyncio
    async def test_timeout_is_builtin_timeout(self) -> None:
        transport = await _open(MemoryTransport())
        with pytest.raises(TimeoutError):
            await read_exact(transport, 1, 0.02)

    @pytest.mark.asyncio
    async def test_stream_end_carries_partial(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"xy")
        transport.end_stream()
        with pytest.raises(IncompletePacketError) as exc_info:
            await read_exact(transport, 4, 0.5)
        assert exc_info.value.partial == b"xy"
        assert exc_info.value.expected == 4

    @pytest.mark.asyncio
    async def test_invalid_arguments(self) -> None:
        transport = await _open(MemoryTransport())
        with pytest.raises(ValueError):
            await read_exact(transport, -1, 0.1)
        with pytest.raises(ValueError):
            await read_exact(transport, 1, 0)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        transport = await _open(MemoryTransport())
        task = asyncio.create_task(read_exact(transport, 1, 10.0))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert transport.is_open


class TestReadUntil:
    @pytest.mark.asyncio
    async def test_includes_terminator(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"512\r\nrest")
        assert await read_until(transport, b"\r\n", 0.5) == b"512\r\n"

    @pytest.mark.asyncio
    async def test_does_not_consume_past_terminator(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"a\rb\r")
        assert await read_until(transport, b"\r", 0.5) == b"a\r"
        assert await read_until(transport, b"\r", 0.5) == b"b\r"

    @pytest.mark.asyncio
    async def test_stall_times_out(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"no terminator")
        with pytest.raises(ResponseTimeoutError):
            await read_until(transport, b"\n", 0.05)

    @pytest.mark.asyncio
    async def test_max_size(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"x" * 20)
        with pytest.raises(IncompletePacketError) as exc_info:
            await read_until(transport, b"\n", 0.5, max_size=8)
        assert exc_info.value.partial == b"x" * 8

    @pytest.mark.asyncio
    async def test_stream_end(self) -> None:
        transport = await _open(MemoryTransport())
        transport.feed(b"12")
        transport.end_stream()
        with pytest.raises(IncompletePacketError) as exc_info:
            await read_until(transport, b"\n", 0.5)
        assert exc_info.value.partial == b"12"

    @pytest.mark.asyncio
    async def test_empty_terminator(self) -> None:
        transport = await _open(MemoryTransport())
        with pytest.raises(ValueError):
            await read_until(transport, b"", 0.5)
