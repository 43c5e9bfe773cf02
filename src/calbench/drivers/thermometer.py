"""Contact reference thermometer drivers.

The thermometer is reachable two ways:

- RS-232 through a USB adapter at 4800 8N1 with DTR asserted and RTS
  cleared. The request is ``d\\r`` and the answer one ``\\r``-terminated line.
- Native USB-HID (``ffff:0002``). The request is a report starting
  ``02 00 00 00 64 0D``; the answer report holds its text length in byte 0
  and the text from byte 4. The HID device is opened for one reading and
  closed again.

Either way the text is ``"<resistance> <temperature>"``. The device prints
the temperature as ``%6.2f``; any temperature token without exactly two
fractional digits is a corrupted line and is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import TracebackType

from calbench.drivers.base import InstrumentDriver
from calbench.errors import CalbenchError, FrameError, IncompletePacketError
from calbench.hid_device import REPORT_SIZE, HidTransport, parse_hid_id
from calbench.reader import read_exact, read_until
from calbench.serial_port import SerialSettings, SerialTransport
from calbench.transport import TransportFactory
from calbench.types import DeviceReading, Unit

logger = logging.getLogger(__name__)

SERIAL_REQUEST = b"d\r"
USB_REQUEST = bytes((2, 0, 0, 0)) + SERIAL_REQUEST
USB_TEXT_OFFSET = 4
DEFAULT_USB_DEVICE = "ffff:0002"


def parse_thermometer_response(text: str) -> tuple[float, float]:
    """Parse a thermometer line.

    Args:
        text: ``"<resistance> <temperature>"``, surrounding whitespace allowed.

    Returns:
        ``(resistance in ohms, temperature in degrees Celsius)``.

    Raises:
        FrameError: If the line has fewer than two tokens, a token is not a
            number, or the temperature does not have two fractional digits.
    """
    tokens = text.split()
    if len(tokens) < 2:
        raise FrameError(f"Thermometer line has no temperature: {text!r}")
    resistance_token, temperature_token = tokens[0], tokens[1]
    _, dot, fraction = temperature_token.partition(".")
    if not dot or len(fraction) != 2:
        raise FrameError(f"Thermometer temperature {temperature_token!r} is not in 0.00 format")
    try:
        return float(resistance_token), float(temperature_token)
    except ValueError:
        raise FrameError(f"Thermometer line is not numeric: {text!r}") from None


@dataclass(frozen=True)
class ThermometerConfig:
    """Configuration for a thermometer.

    Attributes:
        port: Default serial port name, or HID identifier for the USB driver.
        timeout: Maximum idle time in seconds waiting for the answer.
        serial: Serial line settings.
    """

    port: str | None = None
    timeout: float = 2.0
    serial: SerialSettings = field(
        default_factory=lambda: SerialSettings(baudrate=4800, dtr=True, rts=False)
    )

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


class SerialThermometerDriver(InstrumentDriver):
    """Thermometer driver over RS-232.

    Implements the :class:`~calbench.interfaces.Thermometer` interface.
    """

    def __init__(
        self,
        config: ThermometerConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or ThermometerConfig()
        super().__init__(
            self._config.port,
            transport_factory or (lambda port: SerialTransport(port, self._config.serial)),
        )

    @property
    def config(self) -> ThermometerConfig:
        """The thermometer configuration."""
        return self._config

    async def get_temperature(self) -> DeviceReading:
        """Measure temperature, in degrees Celsius."""
        transport = self._require_transport()
        try:
            await transport.discard_input()
            logger.debug("TX %r", SERIAL_REQUEST)
            await transport.write(SERIAL_REQUEST)
            line = await read_until(transport, b"\r", self._config.timeout)
            logger.debug("RX %r", line)
            _, temperature = parse_thermometer_response(line.decode("ascii", errors="replace"))
        except CalbenchError:
            logger.warning("Thermometer read on %s failed", self.port)
            raise
        return DeviceReading(temperature, Unit.DEGREE_CELSIUS)


class UsbThermometerDriver:
    """Thermometer driver over USB-HID.

    Implements the :class:`~calbench.interfaces.Thermometer` interface.
    ``open()`` only records the device identifier; each reading opens the HID
    device, exchanges one report and closes it again.

    Args:
        config: Thermometer configuration; ``port`` is the HID identifier.
        transport_factory: Builds the transport for a device identifier.
    """

    def __init__(
        self,
        config: ThermometerConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config or ThermometerConfig(port=DEFAULT_USB_DEVICE)
        self._transport_factory = transport_factory or HidTransport.from_identifier
        self._device: str | None = None

    @property
    def config(self) -> ThermometerConfig:
        """The thermometer configuration."""
        return self._config

    @property
    def port(self) -> str | None:
        """The device identifier readings go to, or None before ``open()``."""
        return self._device

    @property
    def is_open(self) -> bool:
        """Return True once a device identifier is recorded."""
        return self._device is not None

    async def open(self, port: str | None = None) -> None:
        """Record the HID identifier used for subsequent readings.

        Raises:
            ValueError: If the identifier is missing or malformed.
        """
        device = port or self._config.port or DEFAULT_USB_DEVICE
        parse_hid_id(device)
        self._device = device
        logger.info("UsbThermometerDriver using %s", device)

    def close(self) -> None:
        """Forget the device identifier. Safe to call multiple times."""
        self._device = None

    async def get_temperature(self) -> DeviceReading:
        """Measure temperature, in degrees Celsius."""
        if self._device is None:
            await self.open()
        transport = self._transport_factory(self._device)
        await transport.open()
        try:
            await transport.discard_input()
            logger.debug("TX %s", USB_REQUEST.hex(" "))
            await transport.write(USB_REQUEST)
            report = await read_exact(transport, REPORT_SIZE, self._config.timeout)
            logger.debug("RX %s", report.rstrip(b"\x00").hex(" "))
            length = report[0]
            if USB_TEXT_OFFSET + length > len(report):
                raise IncompletePacketError(
                    f"Thermometer report declares {length} text bytes", partial=report
                )
            text = report[USB_TEXT_OFFSET : USB_TEXT_OFFSET + length].decode("ascii", errors="replace")
            _, temperature = parse_thermometer_response(text)
        except CalbenchError:
            logger.warning("Thermometer read on %s failed", self._device)
            raise
        finally:
            transport.close()
        return DeviceReading(temperature, Unit.DEGREE_CELSIUS)

    async def __aenter__(self) -> UsbThermometerDriver:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def create_instrument(port: str | None = None, timeout: float = 2.0) -> SerialThermometerDriver:
    """Create a serial thermometer driver from configuration parameters."""
    return SerialThermometerDriver(ThermometerConfig(port=port, timeout=timeout))


def create_usb_instrument(
    port: str | None = DEFAULT_USB_DEVICE, timeout: float = 2.0
) -> UsbThermometerDriver:
    """Create a USB thermometer driver from configuration parameters."""
    return UsbThermometerDriver(ThermometerConfig(port=port or DEFAULT_USB_DEVICE, timeout=timeout))
