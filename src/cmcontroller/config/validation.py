"""Cross-field validation of :class:`ControllerSettings`.

Runs once, after flags are applied and before any controller sees the
configuration::

    from cmcontroller.config import validate

    validate(settings)          # raises the first ConfigError found

    for err in iter_errors(settings):
        print(err)              # every problem, for --validate-only
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import TYPE_CHECKING

from cmcontroller.config.settings import (
    ISSUER_KINDS,
    KNOWN_CONTROLLERS,
    LOG_FORMATS,
    LOG_LEVELS,
    format_duration,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cmcontroller.config.settings import ControllerSettings

_SERVICE_NAME_RE = re.compile(r"^[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*$")
_MAX_PORT = 65535


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Base class for configuration problems detected at startup."""


class InvalidEnumError(ConfigError):
    """A field restricted to a fixed set of values got something else."""

    def __init__(self, field: str, value: str, allowed: tuple[str, ...]) -> None:
        self.field = field
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"invalid value {value!r} for --{field} (must be one of: {', '.join(allowed)})",
        )


class InvalidEndpointError(ConfigError):
    """A DNS-01 nameserver is not a ``host:port`` pair."""

    def __init__(self, value: str, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"invalid DNS server ({reason}): {value}")


class MissingDependentOptionError(ConfigError):
    """A feature toggle is on but the option it depends on is empty."""

    def __init__(self, toggle: str, requires: str) -> None:
        self.toggle = toggle
        self.requires = requires
        super().__init__(f"--{requires} must be specified if --{toggle} is enabled")


class InvalidValueError(ConfigError):
    """A single field holds a value outside its allowed range."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        shown = format_duration(value) if isinstance(value, timedelta) else value
        super().__init__(f"invalid value {shown!s} for --{field}: {reason}")


# ---------------------------------------------------------------------------
# host:port parsing
# ---------------------------------------------------------------------------


def split_host_port(hostport: str) -> tuple[str, str]:
    """Split ``host:port`` or ``[ipv6]:port`` into its two halves.

    Follows the rules of Go's ``net.SplitHostPort``: the port is
    mandatory, bracketed hosts may contain colons, bare hosts may not.
    Raises :class:`ValueError` with the Go error text on failure.
    """
    i = hostport.rfind(":")
    if i < 0:
        msg = "missing port in address"
        raise ValueError(msg)

    j = k = 0
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            msg = "missing ']' in address"
            raise ValueError(msg)
        if end + 1 == len(hostport):
            msg = "missing port in address"
            raise ValueError(msg)
        if end + 1 != i:
            if hostport[end + 1] == ":":
                msg = "too many colons in address"
                raise ValueError(msg)
            msg = "missing port in address"
            raise ValueError(msg)
        host = hostport[1:end]
        j, k = 1, end + 1
    else:
        host = hostport[:i]
        if ":" in host:
            msg = "too many colons in address"
            raise ValueError(msg)

    if "[" in hostport[j:]:
        msg = "unexpected '[' in address"
        raise ValueError(msg)
    if "]" in hostport[k:]:
        msg = "unexpected ']' in address"
        raise ValueError(msg)
    return host, hostport[i + 1 :]


def _check_nameserver(server: str) -> InvalidEndpointError | None:
    try:
        host, port = split_host_port(server)
    except ValueError as exc:
        return InvalidEndpointError(server, str(exc))
    if not host:
        return InvalidEndpointError(server, "missing host in address")
    if port.isascii() and port.isdigit():
        if int(port) > _MAX_PORT:
            return InvalidEndpointError(server, f"port {port} out of range")
    elif not _SERVICE_NAME_RE.match(port):
        return InvalidEndpointError(server, f"invalid port {port!r}")
    return None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _positive(field: str, value: timedelta | int) -> InvalidValueError | None:
    zero = timedelta(0) if isinstance(value, timedelta) else 0
    if value <= zero:
        return InvalidValueError(field, value, "must be greater than zero")
    return None


def iter_errors(settings: ControllerSettings) -> Iterator[ConfigError]:  # noqa: C901
    """Yield every problem found in *settings*, in a stable order."""
    shim = settings.ingress_shim
    if shim.default_issuer_kind not in ISSUER_KINDS:
        yield InvalidEnumError("default-issuer-kind", shim.default_issuer_kind, ISSUER_KINDS)

    for server in settings.dns01.recursive_nameservers:
        err = _check_nameserver(server)
        if err is not None:
            yield err

    keystores = settings.keystores
    if keystores.issue_pkcs12 and not keystores.pkcs12_password:
        yield MissingDependentOptionError(
            "experimental-issue-pkcs12",
            "experimental-pkcs12-keystore-password",
        )
    if keystores.issue_jks and not keystores.jks_password:
        yield MissingDependentOptionError(
            "experimental-issue-jks",
            "experimental-jks-password",
        )

    for name in settings.enabled_controllers:
        if name not in KNOWN_CONTROLLERS:
            yield InvalidEnumError("controllers", name, KNOWN_CONTROLLERS)

    if not settings.cluster_resource_namespace:
        yield InvalidValueError(
            "cluster-resource-namespace",
            '""',
            "a namespace for cluster scoped resources is required",
        )

    election = settings.leader_election
    checks = (
        ("leader-election-lease-duration", election.lease_duration),
        ("leader-election-renew-deadline", election.renew_deadline),
        ("leader-election-retry-period", election.retry_period),
        ("renew-before-expiry-duration", settings.renew_before_expiry_duration),
        ("max-concurrent-challenges", settings.max_concurrent_challenges),
    )
    for field, value in checks:
        err = _positive(field, value)
        if err is not None:
            yield err

    if election.enabled and election.renew_deadline >= election.lease_duration:
        yield InvalidValueError(
            "leader-election-renew-deadline",
            election.renew_deadline,
            f"must be less than the lease duration ({format_duration(election.lease_duration)})",
        )

    if settings.logging.level.upper() not in LOG_LEVELS:
        yield InvalidEnumError("log-level", settings.logging.level, LOG_LEVELS)
    if settings.logging.format not in LOG_FORMATS:
        yield InvalidEnumError("log-format", settings.logging.format, LOG_FORMATS)


def validate(settings: ControllerSettings) -> None:
    """Raise the first :class:`ConfigError` in *settings*, if any."""
    for err in iter_errors(settings):
        raise err
