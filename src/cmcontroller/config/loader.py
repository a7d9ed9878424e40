"""Options file loading.

An options file holds the same nested structure as the staging dict
the flag binder produces, so the two can be layered::

    data = load_options_file("/etc/cmcontroller/options.yaml")
    data = apply_flags(args, data)      # switches win over the file

String values of the form ``${VAR}`` or ``${VAR:-default}`` are
replaced from the environment **before** the schema check, so the
substituted values are type-checked like any other.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from cmcontroller.config.validation import ConfigError

SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

log = logging.getLogger(__name__)


class OptionsFileError(ConfigError):
    """The options file is missing, unreadable, or does not match the schema."""

    def __init__(self, path: str | Path, problems: list[str]) -> None:
        self.path = str(path)
        self.problems = problems
        body = "\n".join(f"  - {p}" for p in problems)
        super().__init__(f"invalid options file {self.path}:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _substitute(value: str, where: str, unset: list[str]) -> str:
    match = _ENV_RE.match(value)
    if match is None:
        return value
    name, fallback = match.groups()
    if name in os.environ:
        return os.environ[name]
    if fallback is None:
        unset.append(f"{where}: environment variable {name} is not set and has no default")
        return value
    return fallback


def _walk(node: dict | list, prefix: str, unset: list[str]) -> None:
    entries = node.items() if isinstance(node, dict) else enumerate(node)
    for key, value in list(entries):
        if isinstance(node, list):
            where = f"{prefix}[{key}]"
        else:
            where = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, str):
            node[key] = _substitute(value, where, unset)
        elif isinstance(value, (dict, list)):
            _walk(value, where, unset)


def resolve_env_vars(data: dict, source: str | Path = "<options>") -> None:
    """Replace ``${VAR}`` / ``${VAR:-default}`` strings in *data* in place.

    Every reference to an unset variable without a default is collected
    and reported together in one :class:`OptionsFileError`.
    """
    unset: list[str] = []
    _walk(data, "", unset)
    if unset:
        raise OptionsFileError(source, unset)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_schema() -> dict:
    with SCHEMA_PATH.open(encoding="utf-8") as f:
        return json.load(f)


def check_schema(data: dict, path: str | Path = "<options>") -> None:
    """Raise :class:`OptionsFileError` listing every schema violation."""
    validator = jsonschema.Draft7Validator(_load_schema())
    problems = []
    errors = sorted(
        validator.iter_errors(data),
        key=lambda e: [str(p) for p in e.absolute_path],
    )
    for error in errors:
        where = ".".join(str(p) for p in error.absolute_path) or "<root>"
        problems.append(f"{where}: {error.message}")
    if problems:
        raise OptionsFileError(path, problems)


def load_options_file(path: str | Path) -> dict:
    """Read, resolve and schema-check the options file at *path*.

    YAML and JSON are both accepted (JSON is valid YAML).  An empty file
    yields an empty dict, i.e. all defaults.
    """
    source = Path(path)
    try:
        with source.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise OptionsFileError(source, [f"cannot read file: {exc.strerror or exc}"]) from exc
    except yaml.YAMLError as exc:
        raise OptionsFileError(source, [f"cannot parse file: {exc}"]) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise OptionsFileError(source, ["top level must be a mapping"])

    resolve_env_vars(data, source)

    check_schema(data, source)
    log.debug("Loaded options file %s (%d top-level keys)", source, len(data))
    return data
