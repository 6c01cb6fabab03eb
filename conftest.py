"""Root conftest.py for the devctl monorepo.

Puts every package's ``src`` directory on the import path, registers the
shared markers and marks tests that fake the network with ``uses_mock``.
"""

from __future__ import annotations

import ast
import inspect
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in sorted(PROJECT_ROOT.glob("devctl-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    config.addinivalue_line(
        "markers",
        "uses_mock: Test fakes the instrument or transport (auto-detected)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Integration test requiring a real instrument",
    )
    config.addinivalue_line(
        "markers",
        "slow: Slow-running test",
    )


class MockDetector(ast.NodeVisitor):
    """AST visitor flagging use of mocks or fake transports."""

    MOCK_NAMES = frozenset({
        "MagicMock",
        "Mock",
        "patch",
        "create_autospec",
        "PropertyMock",
        "AsyncMock",
        "mocker",
        "monkeypatch",
    })
    # Substrings of helper names that stand in for an instrument
    FAKE_MARKERS = ("mock", "fake", "stub", "emulatortransport")

    def __init__(self) -> None:
        self.uses_mock = False

    def _check(self, name: str) -> None:
        lower = name.lower()
        if name in self.MOCK_NAMES or any(m in lower for m in self.FAKE_MARKERS):
            self.uses_mock = True

    def visit_Call(self, node: ast.Call) -> None:
        if isinstance(node.func, ast.Name):
            self._check(node.func.id)
        elif isinstance(node.func, ast.Attribute):
            self._check(node.func.attr)
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in ("mocker", "monkeypatch"):
            self.uses_mock = True
        self.generic_visit(node)

    def visit_arg(self, node: ast.arg) -> None:
        self._check(node.arg)
        self.generic_visit(node)


# Fixtures that wire drivers to fakes instead of a network instrument
_FAKE_FIXTURES = frozenset({"psu", "exchanger_for"})


def _uses_mock(item: Item) -> bool:
    """Return True if *item* fakes its instrument or transport."""
    name = item.name.lower()
    if "mock" in name or "fake" in name or "stub" in name:
        return True
    if _FAKE_FIXTURES.intersection(getattr(item, "fixturenames", ())):
        return True

    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    try:
        tree = ast.parse(inspect.getsource(obj).lstrip())
    except (OSError, TypeError, SyntaxError):
        return False
    detector = MockDetector()
    detector.visit(tree)
    return detector.uses_mock


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-mark tests that use mocking."""
    marker = pytest.mark.uses_mock
    for item in items:
        if item.get_closest_marker("uses_mock") is None and _uses_mock(item):
            item.add_marker(marker)


def pytest_report_header(config: Config) -> list[str]:
    lines = ["devctl monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
