"""Root conftest for the cmcontroller test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Options files
# ---------------------------------------------------------------------------


@pytest.fixture()
def write_options(tmp_path: Path):
    """Return a helper writing *data* as a YAML options file."""

    def _write(data: dict | None, name: str = "options.yaml") -> Path:
        path = tmp_path / name
        path.write_text(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )
        return path

    return _write


# ---------------------------------------------------------------------------
# Logger cleanup: configure_logging() detaches the package logger from
# the root, which would hide records from caplog in later tests.
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_logging():
    """Restore the ``cmcontroller`` logger before and after every test."""
    pkg = logging.getLogger("cmcontroller")

    def _reset() -> None:
        pkg.handlers.clear()
        pkg.propagate = True
        pkg.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()
