"""Typed, frozen dataclasses for the controller configuration.

This module is the **single source of truth** for default values.  The
flag binder and the options-file loader only ever produce a raw nested
dict; the builders below are what turns it into the settings the rest of
the process reads.

Access pattern::

    from cmcontroller.config import new_default_configuration

    settings = new_default_configuration()
    print(settings.leader_election.lease_duration)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from cmcontroller import __version__

GROUP_NAME = "cert-manager.io"

ISSUER_KIND = "Issuer"
CLUSTER_ISSUER_KIND = "ClusterIssuer"
ISSUER_KINDS = (ISSUER_KIND, CLUSTER_ISSUER_KIND)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

ACME_HTTP01_SOLVER_REPOSITORY = "quay.io/jetstack/cert-manager-acmesolver"

KNOWN_CONTROLLERS: tuple[str, ...] = (
    "issuers",
    "clusterissuers",
    "certificates",
    "ingress-shim",
    "orders",
    "challenges",
    "certificaterequests-issuer-acme",
    "certificaterequests-issuer-ca",
    "certificaterequests-issuer-selfsigned",
    "certificaterequests-issuer-vault",
    "certificaterequests-issuer-venafi",
)

DEFAULT_RENEW_BEFORE = timedelta(days=30)

# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# int64 nanoseconds
_MAX_DURATION_SECONDS = (2**63 - 1) / 1e9


def _from_seconds(seconds: float, original: Any) -> timedelta:  # noqa: ANN401
    # ``not <=`` also catches NaN
    if not abs(seconds) <= _MAX_DURATION_SECONDS:
        msg = f"invalid duration {original!r}"
        raise ValueError(msg)
    return timedelta(seconds=seconds)


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration string such as ``"1h30m"`` or ``"250ms"``.

    A bare ``"0"`` is accepted.  Raises :class:`ValueError` on anything
    else that is not a sequence of ``<number><unit>`` pairs.  Durations
    longer than Go's maximum (about 2562047h) are rejected as well.
    """
    raw = text.strip()
    body = raw
    sign = 1
    if body[:1] in ("+", "-"):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        msg = f"invalid duration {text!r}"
        raise ValueError(msg)

    seconds = 0.0
    pos = 0
    while pos < len(body):
        match = _DURATION_PART_RE.match(body, pos)
        if match is None:
            msg = f"invalid duration {text!r}"
            raise ValueError(msg)
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    return _from_seconds(sign * seconds, text)


def format_duration(value: timedelta) -> str:
    """Render *value* the way Go prints durations (``1h0m0s``, ``40s``)."""
    total = value.total_seconds()
    sign = "-" if total < 0 else ""
    total = abs(total)
    if total == 0:
        return "0s"
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    secs = f"{seconds:g}s"
    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{secs}"
    if minutes:
        return f"{sign}{int(minutes)}m{secs}"
    return f"{sign}{secs}"


def _duration(value: Any, default: timedelta) -> timedelta:  # noqa: ANN401
    if value is None:
        return default
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        msg = f"invalid duration {value!r}"
        raise ValueError(msg)
    if isinstance(value, (int, float)):
        return _from_seconds(value, value)
    return parse_duration(str(value))


def _dedupe(values: Any) -> tuple[str, ...]:  # noqa: ANN401
    """Return *values* as a tuple with duplicates dropped, order kept."""
    return tuple(dict.fromkeys(values))


# ---------------------------------------------------------------------------
# Leader election
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LeaderElectionSettings:
    """Leader election between controller replicas."""

    enabled: bool
    namespace: str
    lease_duration: timedelta
    renew_deadline: timedelta
    retry_period: timedelta


def _build_leader_election(data: dict | None) -> LeaderElectionSettings:
    d = data or {}
    return LeaderElectionSettings(
        enabled=d.get("enabled", True),
        namespace=d.get("namespace", "kube-system"),
        lease_duration=_duration(d.get("lease_duration"), timedelta(seconds=60)),
        renew_deadline=_duration(d.get("renew_deadline"), timedelta(seconds=40)),
        retry_period=_duration(d.get("retry_period"), timedelta(seconds=15)),
    )


# ---------------------------------------------------------------------------
# ACME HTTP-01 solver
# ---------------------------------------------------------------------------


def default_solver_image(version: str = __version__) -> str:
    """Return the solver image matching the running control-plane release."""
    return f"{ACME_HTTP01_SOLVER_REPOSITORY}:{version}"


@dataclass(frozen=True)
class HTTP01SolverSettings:
    """Image and resources for the pods that solve HTTP-01 challenges."""

    image: str
    resource_request_cpu: str
    resource_request_memory: str
    resource_limits_cpu: str
    resource_limits_memory: str


def _build_acme_http01_solver(data: dict | None) -> HTTP01SolverSettings:
    d = data or {}
    return HTTP01SolverSettings(
        image=d.get("image", default_solver_image()),
        resource_request_cpu=d.get("resource_request_cpu", "10m"),
        resource_request_memory=d.get("resource_request_memory", "64Mi"),
        resource_limits_cpu=d.get("resource_limits_cpu", "100m"),
        resource_limits_memory=d.get("resource_limits_memory", "64Mi"),
    )


# ---------------------------------------------------------------------------
# Ambient credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AmbientCredentialsSettings:
    """Whether issuers may draw credentials from the environment."""

    cluster_issuer: bool
    issuer: bool


def _build_ambient_credentials(data: dict | None) -> AmbientCredentialsSettings:
    d = data or {}
    return AmbientCredentialsSettings(
        cluster_issuer=d.get("cluster_issuer", True),
        issuer=d.get("issuer", False),
    )


# ---------------------------------------------------------------------------
# Ingress shim
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IngressShimSettings:
    """Default issuer reference and the annotations that request issuance."""

    default_issuer_name: str
    default_issuer_kind: str
    default_issuer_group: str
    auto_certificate_annotations: tuple[str, ...]


def _build_ingress_shim(data: dict | None) -> IngressShimSettings:
    d = data or {}
    return IngressShimSettings(
        default_issuer_name=d.get("default_issuer_name", ""),
        default_issuer_kind=d.get("default_issuer_kind", ISSUER_KIND),
        default_issuer_group=d.get("default_issuer_group", GROUP_NAME),
        auto_certificate_annotations=tuple(
            d.get("auto_certificate_annotations", ["kubernetes.io/tls-acme"]),
        ),
    )


# ---------------------------------------------------------------------------
# DNS-01 self check
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DNS01Settings:
    """Nameservers used by the DNS-01 propagation self check."""

    recursive_nameservers: tuple[str, ...]
    recursive_nameservers_only: bool


def _build_dns01(data: dict | None) -> DNS01Settings:
    d = data or {}
    return DNS01Settings(
        recursive_nameservers=tuple(d.get("recursive_nameservers", [])),
        recursive_nameservers_only=d.get("recursive_nameservers_only", False),
    )


# ---------------------------------------------------------------------------
# Experimental keystores
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeystoreSettings:
    """Experimental PKCS#12 / JKS bundles written next to issued certificates."""

    issue_pkcs12: bool
    pkcs12_password: str
    issue_jks: bool
    jks_password: str

    def __repr__(self) -> str:
        return (
            f"KeystoreSettings(issue_pkcs12={self.issue_pkcs12}, "
            f"pkcs12_password={'***' if self.pkcs12_password else ''!r}, "
            f"issue_jks={self.issue_jks}, "
            f"jks_password={'***' if self.jks_password else ''!r})"
        )


def _build_keystores(data: dict | None) -> KeystoreSettings:
    d = data or {}
    return KeystoreSettings(
        issue_pkcs12=d.get("issue_pkcs12", False),
        pkcs12_password=d.get("pkcs12_password", ""),
        issue_jks=d.get("issue_jks", False),
        jks_password=d.get("jks_password", ""),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Process logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ControllerSettings:
    api_server_host: str
    kubeconfig: str
    cluster_resource_namespace: str
    namespace: str
    leader_election: LeaderElectionSettings
    enabled_controllers: tuple[str, ...]
    acme_http01_solver: HTTP01SolverSettings
    ambient_credentials: AmbientCredentialsSettings
    renew_before_expiry_duration: timedelta
    ingress_shim: IngressShimSettings
    dns01: DNS01Settings
    enable_certificate_owner_ref: bool
    max_concurrent_challenges: int
    keystores: KeystoreSettings
    logging: LoggingSettings


def build_settings(data: dict) -> ControllerSettings:
    """Build the full typed settings tree from raw staging data.

    Any key missing from *data* takes its default.  Raises
    :class:`ValueError` when a duration cannot be parsed.
    """
    return ControllerSettings(
        api_server_host=data.get("api_server_host", ""),
        kubeconfig=data.get("kubeconfig", ""),
        cluster_resource_namespace=data.get("cluster_resource_namespace", "kube-system"),
        namespace=data.get("namespace", ""),
        leader_election=_build_leader_election(data.get("leader_election")),
        enabled_controllers=_dedupe(data.get("enabled_controllers", KNOWN_CONTROLLERS)),
        acme_http01_solver=_build_acme_http01_solver(data.get("acme_http01_solver")),
        ambient_credentials=_build_ambient_credentials(data.get("ambient_credentials")),
        renew_before_expiry_duration=_duration(
            data.get("renew_before_expiry_duration"),
            DEFAULT_RENEW_BEFORE,
        ),
        ingress_shim=_build_ingress_shim(data.get("ingress_shim")),
        dns01=_build_dns01(data.get("dns01")),
        enable_certificate_owner_ref=data.get("enable_certificate_owner_ref", False),
        max_concurrent_challenges=data.get("max_concurrent_challenges", 60),
        keystores=_build_keystores(data.get("keystores")),
        logging=_build_logging(data.get("logging")),
    )


def new_default_configuration() -> ControllerSettings:
    """Return the configuration used when nothing is overridden."""
    return build_settings({})
