"""Transport ownership shared by all instrument drivers."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TypeVar

from calbench.errors import TransportClosedError
from calbench.transport import ByteTransport, TransportFactory

logger = logging.getLogger(__name__)

DriverT = TypeVar("DriverT", bound="InstrumentDriver")


class InstrumentDriver:
    """Base class owning exactly one transport handle.

    ``open()`` always releases the current handle before acquiring a new one,
    and releases the new one again if opening it fails or is cancelled.
    Drivers are async context managers that close on every exit path::

        async with HeatChamberDriver(config) as chamber:
            await chamber.open()
            params = await chamber.get_current_params()

    Args:
        default_port: Port or device identifier used when ``open()`` gets none.
        transport_factory: Builds an unopened transport for an identifier.
    """

    def __init__(self, default_port: str | None, transport_factory: TransportFactory) -> None:
        self._default_port = default_port
        self._transport_factory = transport_factory
        self._transport: ByteTransport | None = None
        self._port: str | None = None

    @property
    def port(self) -> str | None:
        """Identifier of the currently open transport, or None."""
        return self._port

    @property
    def is_open(self) -> bool:
        """Return True if the driver holds an open transport."""
        return self._transport is not None and self._transport.is_open

    async def open(self, port: str | None = None) -> None:
        """Open the transport, replacing any handle this driver owns.

        Args:
            port: Port or device identifier. Defaults to the configured one.

        Raises:
            ValueError: If no identifier is given or configured.
            TransportOpenError: If the transport cannot be opened.
        """
        self.close()
        identifier = port or self._default_port
        if not identifier:
            raise ValueError(f"{type(self).__name__}: no port configured")
        transport = self._transport_factory(identifier)
        try:
            await transport.open()
        except BaseException:
            transport.close()
            raise
        self._transport = transport
        self._port = identifier
        logger.info("%s opened on %s", type(self).__name__, identifier)

    def close(self) -> None:
        """Close the transport. Safe to call multiple times."""
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()
            logger.debug("%s closed %s", type(self).__name__, self._port)
        self._port = None

    def _require_transport(self) -> ByteTransport:
        if self._transport is None:
            raise TransportClosedError(f"{type(self).__name__} is not open")
        return self._transport

    async def __aenter__(self: DriverT) -> DriverT:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
