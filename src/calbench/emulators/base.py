"""Shared behaviour of instrument emulators."""

from __future__ import annotations

import asyncio
import logging
import random
from types import TracebackType
from typing import TypeVar

from calbench.errors import TransportClosedError

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.3
"""Artificial latency in seconds applied to every emulated operation."""

EmulatorT = TypeVar("EmulatorT", bound="EmulatorBase")


class EmulatorBase:
    """Base class for in-process instrument emulators.

    Emulators satisfy the same capability interfaces as the drivers but touch
    no hardware. Every operation waits ``delay`` seconds, so callers see
    device-like latency and can be cancelled mid-operation.

    Args:
        delay: Artificial latency in seconds.
        seed: Seed for the noise generator, for reproducible readings.
    """

    def __init__(self, delay: float = DEFAULT_DELAY, seed: int | None = None) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self._delay = delay
        self._random = random.Random(seed)
        self._port: str | None = None
        self._open = False

    @property
    def port(self) -> str | None:
        """The identifier passed to ``open()``, or None."""
        return self._port

    @property
    def is_open(self) -> bool:
        """Return True between ``open()`` and ``close()``."""
        return self._open

    async def open(self, port: str | None = None) -> None:
        """Simulate opening the instrument."""
        await self._latency()
        self._port = port
        self._open = True
        logger.info("%s opened (%s)", type(self).__name__, port or "emulated")

    def close(self) -> None:
        """Simulate closing the instrument. Safe to call multiple times."""
        self._open = False
        self._port = None

    def random_epsilon(self, epsilon: float) -> float:
        """Return noise in ``[-epsilon, 0)``."""
        return epsilon * (self._random.random() - 1)

    async def _latency(self) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)

    async def _operation(self) -> None:
        if not self._open:
            raise TransportClosedError(f"{type(self).__name__} is not open")
        await self._latency()

    async def __aenter__(self: EmulatorT) -> EmulatorT:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
