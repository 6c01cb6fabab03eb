#!/usr/bin/env python3
"""Coverage runner for the devctl monorepo.

Runs each package's unit tests under pytest-cov, combines the data and
reports which source lines are reached only by tests that mock the network
(those auto-marked ``uses_mock`` by the root conftest).

Usage:
    # All packages
    python scripts/run_coverage.py

    # One package
    python scripts/run_coverage.py --package devctl-lan

    # Report mock-only coverage from the last run
    python scripts/run_coverage.py --skip-tests --analyze-mocks
"""

from __future__ import annotations

import argparse
import json
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
COVERAGE_DIR = PROJECT_ROOT / "coverage"

PACKAGES = [
    "devctl-core",
    "devctl-lan",
    "devctl-devices",
]

MOCK_CONTEXT_PATTERNS = ("mock", "Mock", "fake", "Fake")


@dataclass
class MockCoverage:
    """Mock-only coverage totals and per-file counts."""

    covered_lines: int = 0
    mocked_only_lines: int = 0
    files: dict[str, int] = field(default_factory=dict)

    @property
    def mocked_only_percent(self) -> float:
        if self.covered_lines == 0:
            return 0.0
        return self.mocked_only_lines / self.covered_lines * 100


def _coverage(*args: str) -> None:
    env = dict(os.environ, COVERAGE_FILE=str(COVERAGE_DIR / ".coverage"))
    subprocess.run([sys.executable, "-m", "coverage", *args], cwd=PROJECT_ROOT, env=env)


def run_tests(packages: list[str], verbose: bool) -> int:
    """Run each package's unit tests with coverage, then combine.

    Returns:
        0 if every package passed, 1 otherwise.
    """
    COVERAGE_DIR.mkdir(exist_ok=True)
    all_passed = True
    data_files: list[Path] = []

    for pkg in packages:
        test_path = PROJECT_ROOT / pkg / "tests" / "unit"
        if not test_path.exists():
            print(f"Skipping {pkg}: no unit tests")
            continue

        print(f"\n{'=' * 60}\nTesting: {pkg}\n{'=' * 60}")
        data_file = COVERAGE_DIR / f".coverage.{pkg}"
        data_files.append(data_file)
        cmd = [
            sys.executable,
            "-m",
            "pytest",
            f"--cov={PROJECT_ROOT / pkg / 'src'}",
            "--cov-report=",
            "--cov-context=test",
            str(test_path),
        ]
        if verbose:
            cmd.append("-v")
        env = dict(os.environ, COVERAGE_FILE=str(data_file))
        if subprocess.run(cmd, cwd=PROJECT_ROOT, env=env).returncode != 0:
            all_passed = False

    existing = [str(f) for f in data_files if f.exists()]
    if existing:
        _coverage("combine", "--keep", *existing)
        _coverage("report", "--show-missing")
        _coverage("html", "-d", str(COVERAGE_DIR / "html"))
        _coverage("json", "--show-contexts", "-o", str(COVERAGE_DIR / "coverage.json"))
        print(f"\nCoverage HTML report: {COVERAGE_DIR / 'html' / 'index.html'}")

    return 0 if all_passed else 1


def analyze_mocked_coverage() -> MockCoverage:
    """Count lines whose every covering test is a mocking test."""
    coverage_json = COVERAGE_DIR / "coverage.json"
    result = MockCoverage()
    if not coverage_json.exists():
        print(f"Coverage data not found at {coverage_json}")
        return result

    with open(coverage_json, encoding="utf-8") as f:
        data = json.load(f)

    for filename, file_data in data.get("files", {}).items():
        if "/tests/" in filename:
            continue
        result.covered_lines += len(file_data.get("executed_lines", []))
        mocked_only = sum(
            1
            for contexts in file_data.get("contexts", {}).values()
            if contexts and all(any(p in ctx for p in MOCK_CONTEXT_PATTERNS) for ctx in contexts)
        )
        if mocked_only:
            rel_path = filename.replace(str(PROJECT_ROOT) + "/", "")
            result.files[rel_path] = mocked_only
            result.mocked_only_lines += mocked_only

    return result


def print_mock_analysis(result: MockCoverage) -> None:
    print(f"\n{'=' * 60}\nMOCK COVERAGE ANALYSIS\n{'=' * 60}")
    print(f"Covered lines:          {result.covered_lines:,}")
    print(
        f"Covered by mocks only:  {result.mocked_only_lines:,} "
        f"({result.mocked_only_percent:.1f}% of covered)"
    )
    for filename, lines in sorted(result.files.items(), key=lambda x: x[1], reverse=True)[:20]:
        print(f"  {filename}: {lines} lines mock-only")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run coverage and analyze mock usage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--package",
        "-p",
        action="append",
        dest="packages",
        choices=PACKAGES,
        help="Package to test (repeatable)",
    )
    parser.add_argument("--analyze-mocks", "-m", action="store_true", help="Report mock-only coverage")
    parser.add_argument("--skip-tests", action="store_true", help="Only analyze existing data")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    args = parser.parse_args()

    exit_code = 0
    if not args.skip_tests:
        exit_code = run_tests(args.packages or PACKAGES, verbose=not args.quiet)
    if args.analyze_mocks or args.skip_tests:
        print_mock_analysis(analyze_mocked_coverage())
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
