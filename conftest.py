"""Root conftest.py for calbench.

Makes the src layout importable without installation, registers markers,
skips hardware tests unless ``--hardware`` is given, and marks tests that
drive instruments through mocks, the in-memory transport or emulators.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Item


# Make the src layout importable without installation
PROJECT_ROOT = Path(__file__).parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

SIMULATION_NAMES = frozenset({
    # unittest.mock
    "MagicMock",
    "Mock",
    "AsyncMock",
    "patch",
    # calbench.testing
    "MemoryTransport",
    "failing_open",
})


def pytest_addoption(parser: Parser) -> None:
    """Add the ``--hardware`` option.

    Args:
        parser: pytest argument parser.
    """
    parser.addoption(
        "--hardware",
        action="store_true",
        default=False,
        help="Run tests that need real instruments attached",
    )


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "hardware: Test requiring a real instrument on a serial or HID port",
    )
    config.addinivalue_line(
        "markers",
        "simulated: Test runs against mocks, MemoryTransport or emulators (auto-detected)",
    )


def _referenced_names(obj: object) -> set[str]:
    try:
        source = textwrap.dedent(inspect.getsource(obj))
        tree = ast.parse(source)
    except (OSError, TypeError, SyntaxError):
        return set()
    names = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name):
            names.add(node.id)
        elif isinstance(node, ast.Attribute):
            names.add(node.attr)
    return names


def _is_simulated(module: object) -> bool:
    names = _referenced_names(module)
    return any(name in SIMULATION_NAMES or name.endswith("Emulator") for name in names)


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Skip hardware tests by default and mark simulated ones.

    Args:
        config: pytest configuration object.
        items: List of collected test items.
    """
    run_hardware = config.getoption("--hardware")
    skip_hardware = pytest.mark.skip(reason="needs --hardware and attached instruments")
    module_cache: dict[str, bool] = {}

    for item in items:
        if item.get_closest_marker("hardware"):
            if not run_hardware:
                item.add_marker(skip_hardware)
            continue
        module = getattr(item, "module", None)
        module_name = getattr(module, "__name__", "")
        if module_name not in module_cache:
            module_cache[module_name] = _is_simulated(module)
        if module_cache[module_name]:
            item.add_marker(pytest.mark.simulated)


def pytest_report_header(config: Config) -> list[str]:
    """Add hardware and coverage mode info to the pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    lines = ["calbench test suite"]
    if config.getoption("--hardware"):
        lines.append("Hardware tests: enabled")
    else:
        lines.append("Hardware tests: skipped (use --hardware)")

    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled")

    return lines
