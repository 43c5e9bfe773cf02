"""YAML bench configuration and instrument construction.

A bench file names the instruments on one calibration bench, which driver
factory builds each of them, and the port each one is attached to. Whether a
bench runs against hardware or emulators is decided here, once, when the
instruments are created.

Example YAML configuration:
    bench:
      id: "bench-a"
      description: "Pressure/temperature calibration bench"
      emulate: false

    instruments:
      chamber:
        kind: heat_chamber
        port: "/dev/ttyUSB0"
        kwargs:
          timeout: 1.0
      gauge:
        kind: pressure_gauge
        driver: "calbench.drivers.pressure_gauge:create_instrument"
        port: "/dev/ttyUSB1"
      reference:
        kind: thermometer
        driver: "calbench.drivers.thermometer:create_usb_instrument"
        emulator_kwargs:
          delay: 0.0

``driver`` defaults to the standard factory for the kind. With emulation on,
every instrument is built by ``calbench.emulators.<module>:create_emulator``
with ``port`` and ``emulator_kwargs`` instead. A regulator emulator also takes
``full_scale`` from ``kwargs`` unless ``emulator_kwargs`` sets its own.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from calbench.interfaces import INSTRUMENT_KINDS

logger = logging.getLogger(__name__)

DEFAULT_DRIVERS: dict[str, str] = {
    "heat_chamber": "calbench.drivers.heat_chamber:create_instrument",
    "pressure_gauge": "calbench.drivers.pressure_gauge:create_instrument",
    "pressure_regulator": "calbench.drivers.regulator:create_instrument",
    "thermostat": "calbench.drivers.thermostat:create_instrument",
    "thermometer": "calbench.drivers.thermometer:create_instrument",
}

EMULATORS: dict[str, str] = {
    "heat_chamber": "calbench.emulators.heat_chamber:create_emulator",
    "pressure_gauge": "calbench.emulators.pressure_gauge:create_emulator",
    "pressure_regulator": "calbench.emulators.regulator:create_emulator",
    "thermostat": "calbench.emulators.thermostat:create_emulator",
    "thermometer": "calbench.emulators.thermometer:create_emulator",
}

SHARED_SETTINGS: dict[str, tuple[str, ...]] = {
    "pressure_regulator": ("full_scale",),
}
"""Driver ``kwargs`` also passed to the emulator unless ``emulator_kwargs`` overrides them."""


@dataclass(frozen=True)
class InstrumentConfig:
    """Configuration for a single instrument on the bench.

    Attributes:
        name: Unique instrument name within the bench (e.g., "chamber").
        kind: Capability kind; one of :data:`calbench.interfaces.INSTRUMENT_KINDS`.
        driver: Driver factory path in "module:function" format.
        port: Port or device identifier passed to the factory.
        kwargs: Additional keyword arguments for the driver factory.
        emulator_kwargs: Keyword arguments for the emulator factory.
    """

    name: str
    kind: str
    driver: str
    port: str | None = None
    kwargs: dict[str, Any] = field(default_factory=dict)
    emulator_kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BenchConfig:
    """Configuration for a calibration bench.

    Attributes:
        bench_id: Unique identifier for this bench.
        description: Human-readable description.
        emulate: Build emulators instead of drivers.
        instruments: Instrument configurations, in file order.
    """

    bench_id: str
    description: str
    instruments: tuple[InstrumentConfig, ...]
    emulate: bool = False

    def get(self, name: str) -> InstrumentConfig:
        """Return the instrument named ``name``.

        Raises:
            KeyError: If no instrument has that name.
        """
        for instrument in self.instruments:
            if instrument.name == name:
                return instrument
        raise KeyError(f"No instrument named '{name}' on bench '{self.bench_id}'")


def _parse_instrument(name: str, data: Any) -> InstrumentConfig:
    if not isinstance(data, dict):
        raise ValueError(f"Instrument '{name}' settings must be a mapping")

    kind = data.get("kind")
    if kind not in INSTRUMENT_KINDS:
        raise ValueError(
            f"Instrument '{name}' has unknown kind {kind!r}; "
            f"expected one of {', '.join(INSTRUMENT_KINDS)}"
        )

    driver = data.get("driver") or DEFAULT_DRIVERS[kind]

    port = data.get("port")
    if port is not None and not isinstance(port, str):
        raise ValueError(f"Instrument '{name}' port must be a string")

    kwargs = data.get("kwargs", {})
    if not isinstance(kwargs, dict):
        raise ValueError(f"Instrument '{name}': kwargs must be a mapping of factory arguments")
    emulator_kwargs = data.get("emulator_kwargs", {})
    if not isinstance(emulator_kwargs, dict):
        raise ValueError(f"Instrument '{name}' emulator_kwargs must be a mapping")

    return InstrumentConfig(
        name=name,
        kind=kind,
        driver=driver,
        port=port,
        kwargs=kwargs,
        emulator_kwargs=emulator_kwargs,
    )


def load_config(path: str | Path) -> BenchConfig:
    """Load bench configuration from a YAML file.

    Args:
        path: Bench YAML file.

    Returns:
        Parsed bench configuration.

    Raises:
        FileNotFoundError: If the bench file does not exist.
        ValueError: If the file is malformed, lacks ``bench.id``, or names an
            unknown instrument kind.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bench file not found: {path}")

    with path.open(encoding="utf-8") as stream:
        data = yaml.safe_load(stream)

    if not isinstance(data, dict):
        raise ValueError(f"Bench file {path} must hold a YAML mapping")

    bench_section = data.get("bench", {})
    if not isinstance(bench_section, dict):
        raise ValueError("bench must be a mapping")
    bench_id = bench_section.get("id")
    if not bench_id:
        raise ValueError("Missing required field: bench.id")

    instruments_data = data.get("instruments") or {}
    if not isinstance(instruments_data, dict):
        raise ValueError("instruments must map names to instrument settings")

    return BenchConfig(
        bench_id=str(bench_id),
        description=bench_section.get("description", ""),
        instruments=tuple(
            _parse_instrument(name, inst_data) for name, inst_data in instruments_data.items()
        ),
        emulate=bool(bench_section.get("emulate", False)),
    )


def load_factory(path: str) -> Callable[..., Any]:
    """Resolve a ``"package.module:function"`` reference to a callable.

    Used for both driver and emulator factories, e.g.
    ``"calbench.drivers.heat_chamber:create_instrument"``.

    Raises:
        ValueError: If ``path`` is not of the form ``module:function``.
        ImportError: If the module cannot be imported.
        AttributeError: If the module has no such attribute.
        TypeError: If the attribute is not callable.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr or ":" in attr:
        raise ValueError(f"Factory reference {path!r} is not of the form 'module:function'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ImportError(f"Cannot import factory module {module_name!r}: {exc}") from exc

    factory = getattr(module, attr, None)
    if factory is None:
        raise AttributeError(f"{module_name!r} defines no factory {attr!r}")
    if not callable(factory):
        raise TypeError(f"Factory reference {path!r} is not callable")
    return factory


def create_instrument(config: InstrumentConfig, emulate: bool = False) -> Any:
    """Build one instrument, real or emulated.

    Returns:
        An unopened instance satisfying the capability protocol of
        ``config.kind``.

    Raises:
        TypeError: If the factory returns an object lacking that protocol.
    """
    if emulate:
        factory = load_factory(EMULATORS[config.kind])
        shared = {
            key: config.kwargs[key]
            for key in SHARED_SETTINGS.get(config.kind, ())
            if key in config.kwargs
        }
        instance = factory(port=config.port, **{**shared, **config.emulator_kwargs})
    else:
        factory = load_factory(config.driver)
        instance = factory(port=config.port, **config.kwargs)

    protocol = INSTRUMENT_KINDS[config.kind]
    if not isinstance(instance, protocol):
        raise TypeError(
            f"Instrument '{config.name}': {type(instance).__name__} does not "
            f"implement {protocol.__name__}"
        )
    logger.debug(
        "Created %s '%s' as %s", config.kind, config.name, type(instance).__name__
    )
    return instance


def create_instruments(config: BenchConfig, emulate: bool | None = None) -> dict[str, Any]:
    """Build every instrument on the bench.

    Args:
        config: Bench configuration.
        emulate: Overrides ``config.emulate`` when not None.

    Returns:
        Mapping of instrument name to unopened instance.
    """
    use_emulators = config.emulate if emulate is None else emulate
    if use_emulators:
        logger.info("Bench '%s' runs on emulators", config.bench_id)
    return {inst.name: create_instrument(inst, use_emulators) for inst in config.instruments}
