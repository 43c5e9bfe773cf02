"""pyserial transport for RS-232 instruments.

This module provides a serial-port implementation of
:class:`calbench.transport.ByteTransport`. It wraps the pyserial library,
which is lazily imported so the rest of calbench (codecs, emulators, bench
configuration) works without it installed.

Blocking pyserial calls run in the default executor. Reads use a short port
timeout (the poll interval) so a pending read never holds the event loop for
longer than that.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from calbench.errors import TransportClosedError, TransportIOError, TransportOpenError
from calbench.transport import open_in_executor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SerialSettings:
    """Line settings for a serial instrument.

    Handshake (RTS/CTS, DSR/DTR, XON/XOFF) is always disabled.

    Attributes:
        baudrate: Line speed in bits per second.
        bytesize: Data bits (5-8).
        parity: pyserial parity code ("N", "E", "O", "M", "S").
        stopbits: Stop bits (1, 1.5 or 2).
        dtr: DTR line level applied on open, or None to leave the driver default.
        rts: RTS line level applied on open, or None to leave the driver default.
        poll_interval: Port read timeout in seconds. Bounds a single read call.
        write_timeout: Write timeout in seconds.
    """

    baudrate: int = 9600
    bytesize: int = 8
    parity: str = "N"
    stopbits: float = 1
    dtr: bool | None = None
    rts: bool | None = None
    poll_interval: float = 0.05
    write_timeout: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ValueError: If any setting is out of range.
        """
        if self.baudrate <= 0:
            raise ValueError(f"baudrate must be > 0, got {self.baudrate}")
        if self.bytesize not in (5, 6, 7, 8):
            raise ValueError(f"bytesize must be 5-8, got {self.bytesize}")
        if self.parity not in ("N", "E", "O", "M", "S"):
            raise ValueError(f"invalid parity {self.parity!r}")
        if self.stopbits not in (1, 1.5, 2):
            raise ValueError(f"stopbits must be 1, 1.5 or 2, got {self.stopbits}")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.write_timeout <= 0:
            raise ValueError("write_timeout must be positive")


class SerialTransport:
    """Byte transport backed by pyserial.

    Implements the :class:`ByteTransport` protocol. The ``serial`` module is
    imported lazily on :meth:`open`.

    Attributes:
        port: The serial port name (e.g. ``"COM3"`` or ``"/dev/ttyUSB0"``).
        is_open: Whether the port is currently open.

    Args:
        port: Serial port name.
        settings: Line settings applied on open.

    Example:
        >>> transport = SerialTransport("/dev/ttyUSB0", SerialSettings(baudrate=115200))
        >>> await transport.open()
        >>> await transport.write(b"\\x06\\x62\\x01\\x00\\x01\\x96")
        >>> data = await transport.read(16)
        >>> transport.close()
    """

    def __init__(self, port: str, settings: SerialSettings | None = None) -> None:
        self._port = port
        self._settings = settings or SerialSettings()
        self._serial: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def port(self) -> str:
        """The serial port name."""
        return self._port

    @property
    def settings(self) -> SerialSettings:
        """The line settings."""
        return self._settings

    @property
    def is_open(self) -> bool:
        """Return True if the port is currently open."""
        return self._serial is not None

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        """Open the serial port, replacing any handle this transport owns.

        Raises:
            TransportOpenError: If ``pyserial`` is not installed or the port
                cannot be opened.
        """
        self.close()

        try:
            import serial  # type: ignore[import-untyped]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise TransportOpenError(
                "pyserial library is not installed. Install with: pip install pyserial"
            ) from exc

        self._serial = await open_in_executor(
            lambda: self._open_port(serial), _close_quietly
        )
        logger.debug("Opened serial port %s (%d baud)", self._port, self._settings.baudrate)

    def _open_port(self, serial: Any) -> Any:
        settings = self._settings
        port = serial.Serial()
        port.port = self._port
        port.baudrate = settings.baudrate
        port.bytesize = settings.bytesize
        port.parity = settings.parity
        port.stopbits = settings.stopbits
        port.timeout = settings.poll_interval
        port.write_timeout = settings.write_timeout
        port.xonxoff = False
        port.rtscts = False
        port.dsrdtr = False
        if settings.dtr is not None:
            port.dtr = settings.dtr
        if settings.rts is not None:
            port.rts = settings.rts
        try:
            port.open()
        except Exception as exc:
            raise TransportOpenError(f"Failed to open serial port {self._port!r}: {exc}") from exc
        return port

    def close(self) -> None:
        """Close the serial port.

        Safe to call multiple times or on a never-opened transport.
        """
        port, self._serial = self._serial, None
        if port is not None:
            _close_quietly(port)
            logger.debug("Closed serial port %s", self._port)

    # -- Transport interface -------------------------------------------------

    async def write(self, data: bytes) -> None:
        """Write all of ``data`` to the port.

        Raises:
            TransportClosedError: If the port is not open.
            TransportIOError: If the write fails or times out.
        """
        port = self._require_open()
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, port.write, data)
        except (OSError, ValueError) as exc:  # SerialException is an OSError
            raise TransportIOError(f"Write to {self._port!r} failed: {exc}") from exc

    async def read(self, max_count: int) -> bytes:
        """Read up to ``max_count`` bytes, waiting at most one poll interval.

        Returns:
            The bytes received, possibly empty.

        Raises:
            TransportClosedError: If the port is not open.
            TransportIOError: If the read fails.
        """
        port = self._require_open()
        loop = asyncio.get_running_loop()
        try:
            data: bytes = await loop.run_in_executor(None, port.read, max_count)
        except (OSError, ValueError) as exc:
            raise TransportIOError(f"Read from {self._port!r} failed: {exc}") from exc
        return bytes(data)

    async def discard_input(self) -> None:
        """Drop unread input and pending output."""
        port = self._require_open()
        port.reset_input_buffer()
        port.reset_output_buffer()

    def _require_open(self) -> Any:
        if self._serial is None:
            raise TransportClosedError(f"Serial port {self._port!r} is not open")
        return self._serial


def _close_quietly(port: Any) -> None:
    try:
        port.close()
    except Exception:  # pylint: disable=broad-except
        logger.debug("Ignoring error while closing serial port", exc_info=True)
