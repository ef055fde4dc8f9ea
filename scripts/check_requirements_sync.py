#!/usr/bin/env python3
"""
Verify that Home Assistant manifest requirements and pyproject dependencies are aligned.

Rules:
- Every manifest requirement appears in pyproject, and every pyproject
  dependency appears in the manifest unless Home Assistant itself provides it.
- Version specifiers must be compatible (pyproject range within manifest range), or equal.

This is a simple, pragmatic check. It aims to catch drift, not solve dependency resolution.
"""

from __future__ import annotations

import json
import pathlib
import sys
import tomllib

from packaging.requirements import Requirement
from packaging.specifiers import SpecifierSet

ROOT = pathlib.Path(__file__).resolve().parents[1]
MANIFEST = ROOT / "custom_components" / "escpos_receipt" / "manifest.json"
PYPROJECT = ROOT / "pyproject.toml"

# Installed by Home Assistant core, never listed in a manifest
HOST_PROVIDED = {"homeassistant", "voluptuous"}

PROBES = ["0.0.0", "1.2.1", "3.0", "3.1", "3.5", "10.0.0", "11.0.0", "11.3.0"]


def _by_name(requirements: list[str]) -> dict[str, SpecifierSet]:
    result: dict[str, SpecifierSet] = {}
    for dep in requirements:
        r = Requirement(dep)
        result[r.name.lower()] = r.specifier
    return result


def parse_pyproject() -> dict[str, SpecifierSet]:
    data = tomllib.loads(PYPROJECT.read_text())
    deps = _by_name(data.get("project", {}).get("dependencies", []))
    return {name: spec for name, spec in deps.items() if name not in HOST_PROVIDED}


def parse_manifest() -> dict[str, SpecifierSet]:
    data = json.loads(MANIFEST.read_text())
    return _by_name(data.get("requirements", []))


def compatible(spec_py: SpecifierSet, spec_mani: SpecifierSet) -> bool:
    """Return True if pyproject spec is within manifest spec (or equal)."""
    # An empty specifier allows anything
    if not str(spec_py) or not str(spec_mani):
        return True
    return all(v not in spec_py or v in spec_mani for v in PROBES)


def main() -> int:
    py = parse_pyproject()
    mf = parse_manifest()

    missing = set(py.keys()) ^ set(mf.keys())
    if missing:
        print(f"Package sets differ between pyproject and manifest: {sorted(missing)}", file=sys.stderr)
        return 1

    problems = [
        (name, str(py[name]), str(mf[name])) for name in sorted(py) if not compatible(py[name], mf[name])
    ]
    if problems:
        print("Version specifiers incompatible:", file=sys.stderr)
        for name, p, m in problems:
            print(f"  - {name}: pyproject='{p}' vs manifest='{m}'", file=sys.stderr)
        return 1

    print("Requirements in sync: manifest.json and pyproject.toml")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
