"""hidapi transport for USB-HID instruments.

This module provides a USB-HID implementation of
:class:`calbench.transport.ByteTransport` for instruments that exchange fixed
64-byte reports. The ``hid`` module (hidapi bindings) is lazily imported so the
rest of calbench works without it installed.

Reports are presented as a byte stream: :meth:`HidTransport.write` pads the
payload to one report, and :meth:`HidTransport.read` returns bytes from whole
reports, buffering anything the caller did not ask for.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from calbench.errors import TransportClosedError, TransportIOError, TransportOpenError
from calbench.transport import open_in_executor

logger = logging.getLogger(__name__)

REPORT_SIZE = 64
"""Report size in bytes used by all supported HID instruments."""


def parse_hid_id(identifier: str) -> tuple[int, int]:
    """Parse a ``"VVVV:PPPP"`` hexadecimal vendor/product identifier.

    Args:
        identifier: Vendor and product ID, e.g. ``"ffff:0003"``.

    Returns:
        Tuple of (vendor_id, product_id).

    Raises:
        ValueError: If the identifier is malformed.
    """
    parts = identifier.split(":")
    if len(parts) != 2:
        raise ValueError(f"HID identifier must be 'VVVV:PPPP', got {identifier!r}")
    try:
        vendor_id = int(parts[0], 16)
        product_id = int(parts[1], 16)
    except ValueError as exc:
        raise ValueError(f"HID identifier must be hexadecimal, got {identifier!r}") from exc
    if not (0 <= vendor_id <= 0xFFFF and 0 <= product_id <= 0xFFFF):
        raise ValueError(f"HID identifier out of range: {identifier!r}")
    return vendor_id, product_id


class HidTransport:
    """Byte transport backed by hidapi.

    Opens the first enumerated device matching the vendor/product pair.

    Args:
        vendor_id: USB vendor ID.
        product_id: USB product ID.
        report_size: Report payload size in bytes (default 64).
        poll_interval: Report read timeout in seconds.
    """

    def __init__(
        self,
        vendor_id: int,
        product_id: int,
        *,
        report_size: int = REPORT_SIZE,
        poll_interval: float = 0.05,
    ) -> None:
        if report_size <= 0:
            raise ValueError("report_size must be positive")
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._report_size = report_size
        self._poll_ms = max(1, int(poll_interval * 1000))
        self._device: Any = None
        self._pending = bytearray()

    @classmethod
    def from_identifier(cls, identifier: str, **kwargs: Any) -> HidTransport:
        """Create a transport from a ``"VVVV:PPPP"`` identifier."""
        vendor_id, product_id = parse_hid_id(identifier)
        return cls(vendor_id, product_id, **kwargs)

    @property
    def identifier(self) -> str:
        """The ``"vvvv:pppp"`` identifier of this transport."""
        return f"{self._vendor_id:04x}:{self._product_id:04x}"

    @property
    def report_size(self) -> int:
        """Report payload size in bytes."""
        return self._report_size

    @property
    def is_open(self) -> bool:
        """Return True if the device is currently open."""
        return self._device is not None

    async def open(self) -> None:
        """Open the first matching HID device, replacing any owned handle.

        Raises:
            TransportOpenError: If ``hidapi`` is not installed or no matching
                device can be opened.
        """
        self.close()

        try:
            import hid  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise TransportOpenError(
                "hidapi library is not installed. Install with: pip install hidapi"
            ) from exc

        self._device = await open_in_executor(lambda: self._open_device(hid), _close_quietly)
        logger.debug("Opened HID device %s", self.identifier)

    def _open_device(self, hid: Any) -> Any:
        matches = hid.enumerate(self._vendor_id, self._product_id)
        if not matches:
            raise TransportOpenError(f"No HID device found for {self.identifier}")
        device = hid.device()
        try:
            device.open_path(matches[0]["path"])
        except (OSError, ValueError) as exc:
            raise TransportOpenError(f"Failed to open HID device {self.identifier}: {exc}") from exc
        # A 0 ms read only returns at once in non-blocking mode; timed reads ignore the flag.
        try:
            device.set_nonblocking(1)
        except (OSError, ValueError) as exc:
            _close_quietly(device)
            raise TransportOpenError(
                f"Failed to configure HID device {self.identifier}: {exc}"
            ) from exc
        return device

    def close(self) -> None:
        """Close the device. Safe to call multiple times."""
        device, self._device = self._device, None
        self._pending.clear()
        if device is not None:
            _close_quietly(device)
            logger.debug("Closed HID device %s", self.identifier)

    async def write(self, data: bytes) -> None:
        """Send ``data`` as one zero-padded output report.

        Raises:
            TransportClosedError: If the device is not open.
            TransportIOError: If ``data`` exceeds one report or the write fails.
        """
        device = self._require_open()
        if len(data) > self._report_size:
            raise TransportIOError(
                f"{len(data)} bytes do not fit in a {self._report_size}-byte report"
            )
        # Leading zero is the report ID expected by hidapi.
        report = b"\x00" + bytes(data).ljust(self._report_size, b"\x00")
        loop = asyncio.get_running_loop()
        try:
            written = await loop.run_in_executor(None, device.write, report)
        except (OSError, ValueError) as exc:
            raise TransportIOError(f"HID write to {self.identifier} failed: {exc}") from exc
        if written < 0:
            raise TransportIOError(f"HID write to {self.identifier} failed")

    async def read(self, max_count: int) -> bytes:
        """Read up to ``max_count`` bytes, waiting at most one poll interval.

        Raises:
            TransportClosedError: If the device is not open.
            TransportIOError: If the read fails.
        """
        device = self._require_open()
        if not self._pending:
            loop = asyncio.get_running_loop()
            try:
                report = await loop.run_in_executor(
                    None, device.read, self._report_size, self._poll_ms
                )
            except (OSError, ValueError) as exc:
                raise TransportIOError(f"HID read from {self.identifier} failed: {exc}") from exc
            self._pending.extend(report)
        chunk = bytes(self._pending[:max_count])
        del self._pending[:max_count]
        return chunk

    async def discard_input(self) -> None:
        """Drop buffered bytes and any reports already queued by the device."""
        device = self._require_open()
        self._pending.clear()
        loop = asyncio.get_running_loop()
        try:
            while await loop.run_in_executor(None, device.read, self._report_size, 0):
                pass
        except (OSError, ValueError) as exc:
            raise TransportIOError(f"HID read from {self.identifier} failed: {exc}") from exc

    def _require_open(self) -> Any:
        if self._device is None:
            raise TransportClosedError(f"HID device {self.identifier} is not open")
        return self._device


def _close_quietly(device: Any) -> None:
    try:
        device.close()
    except Exception:  # pylint: disable=broad-except
        logger.debug("Ignoring error while closing HID device", exc_info=True)
