"""Command-line switches for every controller option.

Each switch writes into the raw staging dict that
:func:`~cmcontroller.config.settings.build_settings` consumes; nothing
here touches a :class:`ControllerSettings` directly::

    parser = argparse.ArgumentParser()
    add_flags(parser)
    args = parser.parse_args(argv)
    data = apply_flags(args, load_options_file(path))
    settings = build_settings(data)

Switch defaults are suppressed in the parsed namespace so that only the
switches the operator actually passed override the options file.
"""

from __future__ import annotations

import argparse
import copy
import csv
import logging
import re
import sys
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from cmcontroller.config.settings import (
    ISSUER_KINDS,
    LOG_FORMATS,
    LOG_LEVELS,
    format_duration,
    new_default_configuration,
    parse_duration,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cmcontroller.config.settings import ControllerSettings

log = logging.getLogger(__name__)

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

# Namespace attribute recording which string-set switches were already seen.
_SEEN_ATTR = "_string_slices_seen"
_LEGACY_OCTAL_RE = re.compile(r"^[+-]?0[0-7_]+$")


@dataclass(frozen=True)
class Flag:
    """One command-line switch bound to a dotted settings path."""

    name: str
    path: str
    kind: str
    help: str
    deprecated: str | None = None


_AMBIENT_HELP = (
    "'Ambient Credentials' are credentials drawn from the environment, metadata "
    "services, or local files which are not explicitly configured in the {obj} "
    "API object. When this flag is enabled, the following sources for credentials "
    "are also used: AWS - All sources the Go SDK defaults to, notably including "
    "any EC2 IAM roles available via instance metadata."
)

_NAMESERVERS_HELP = (
    "A list of comma separated dns server endpoints used for DNS01 check "
    "requests. This should be a list containing host and port, for example "
    "8.8.8.8:53,8.8.4.4:53"
)

FLAGS: tuple[Flag, ...] = (
    Flag(
        "master",
        "api_server_host",
        "string",
        "Optional apiserver host address to connect to. If not specified, "
        "autoconfiguration will be attempted.",
    ),
    Flag(
        "kubeconfig",
        "kubeconfig",
        "string",
        "Paths to a kubeconfig. Only required if out-of-cluster.",
    ),
    Flag(
        "cluster-resource-namespace",
        "cluster_resource_namespace",
        "string",
        "Namespace to store resources owned by cluster scoped resources such as "
        "ClusterIssuer in. This must be specified if ClusterIssuers are enabled.",
    ),
    Flag(
        "namespace",
        "namespace",
        "string",
        "If set, this limits the scope of the controller to a single namespace and "
        "ClusterIssuers are disabled. If not specified, all namespaces will be watched.",
    ),
    Flag(
        "leader-elect",
        "leader_election.enabled",
        "bool",
        "If true, leader election is performed between instances to ensure no more "
        "than one instance operates at a time.",
    ),
    Flag(
        "leader-election-namespace",
        "leader_election.namespace",
        "string",
        "Namespace used to perform leader election. Only used if leader election "
        "is enabled.",
    ),
    Flag(
        "leader-election-lease-duration",
        "leader_election.lease_duration",
        "duration",
        "The duration that non-leader candidates will wait after observing a "
        "leadership renewal until attempting to acquire leadership of a led but "
        "unrenewed leader slot. This is effectively the maximum duration that a "
        "leader can be stopped before it is replaced by another candidate. This is "
        "only applicable if leader election is enabled.",
    ),
    Flag(
        "leader-election-renew-deadline",
        "leader_election.renew_deadline",
        "duration",
        "The interval between attempts by the acting master to renew a leadership "
        "slot before it stops leading. This must be less than the lease duration. "
        "This is only applicable if leader election is enabled.",
    ),
    Flag(
        "leader-election-retry-period",
        "leader_election.retry_period",
        "duration",
        "The duration the clients should wait between attempting acquisition and "
        "renewal of a leadership. This is only applicable if leader election is "
        "enabled.",
    ),
    Flag(
        "controllers",
        "enabled_controllers",
        "strings",
        "The set of controllers to enable.",
    ),
    Flag(
        "acme-http01-solver-image",
        "acme_http01_solver.image",
        "string",
        "The docker image to use to solve ACME HTTP01 challenges. You most likely "
        "will not need to change this parameter unless you are testing a new "
        "feature or developing the controller.",
    ),
    Flag(
        "acme-http01-solver-resource-request-cpu",
        "acme_http01_solver.resource_request_cpu",
        "string",
        "Defines the resource request CPU size when spawning new ACME HTTP01 "
        "challenge solver pods.",
    ),
    Flag(
        "acme-http01-solver-resource-request-memory",
        "acme_http01_solver.resource_request_memory",
        "string",
        "Defines the resource request Memory size when spawning new ACME HTTP01 "
        "challenge solver pods.",
    ),
    Flag(
        "acme-http01-solver-resource-limits-cpu",
        "acme_http01_solver.resource_limits_cpu",
        "string",
        "Defines the resource limits CPU size when spawning new ACME HTTP01 "
        "challenge solver pods.",
    ),
    Flag(
        "acme-http01-solver-resource-limits-memory",
        "acme_http01_solver.resource_limits_memory",
        "string",
        "Defines the resource limits Memory size when spawning new ACME HTTP01 "
        "challenge solver pods.",
    ),
    Flag(
        "cluster-issuer-ambient-credentials",
        "ambient_credentials.cluster_issuer",
        "bool",
        "Whether a cluster-issuer may make use of ambient credentials for issuers. "
        + _AMBIENT_HELP.format(obj="ClusterIssuer"),
    ),
    Flag(
        "issuer-ambient-credentials",
        "ambient_credentials.issuer",
        "bool",
        "Whether an issuer may make use of ambient credentials. "
        + _AMBIENT_HELP.format(obj="Issuer"),
    ),
    Flag(
        "renew-before-expiry-duration",
        "renew_before_expiry_duration",
        "duration",
        "The default 'renew before expiry' time for Certificates. Once a "
        "certificate is within this duration until expiry, a new Certificate will "
        "be attempted to be issued.",
    ),
    Flag(
        "auto-certificate-annotations",
        "ingress_shim.auto_certificate_annotations",
        "strings",
        "The annotation consumed by the ingress-shim controller to indicate an "
        "ingress is requesting a certificate.",
    ),
    Flag(
        "default-issuer-name",
        "ingress_shim.default_issuer_name",
        "string",
        "Name of the Issuer to use when the tls is requested but issuer name is "
        "not specified on the ingress resource.",
    ),
    Flag(
        "default-issuer-kind",
        "ingress_shim.default_issuer_kind",
        "string",
        "Kind of the Issuer to use when the tls is requested but issuer kind is "
        f"not specified on the ingress resource. One of: {', '.join(ISSUER_KINDS)}.",
    ),
    Flag(
        "default-issuer-group",
        "ingress_shim.default_issuer_group",
        "string",
        "Group of the Issuer to use when the tls is requested but issuer group is "
        "not specified on the ingress resource.",
    ),
    Flag(
        "dns01-recursive-nameservers",
        "dns01.recursive_nameservers",
        "strings",
        _NAMESERVERS_HELP,
    ),
    Flag(
        "dns01-recursive-nameservers-only",
        "dns01.recursive_nameservers_only",
        "bool",
        "When true, only the configured DNS resolvers are ever queried to perform "
        "the ACME DNS01 self check. This is useful in DNS constrained environments, "
        "where access to authoritative nameservers is restricted. Enabling this "
        "option could cause the DNS01 self check to take longer due to caching "
        "performed by the recursive nameservers.",
    ),
    Flag(
        "dns01-self-check-nameservers",
        "dns01.recursive_nameservers",
        "strings",
        _NAMESERVERS_HELP,
        deprecated="Deprecated in favour of dns01-recursive-nameservers",
    ),
    Flag(
        "enable-certificate-owner-ref",
        "enable_certificate_owner_ref",
        "bool",
        "Whether to set the certificate resource as an owner of secret where the "
        "tls certificate is stored. When this flag is enabled, the secret will be "
        "automatically removed when the certificate resource is deleted.",
    ),
    Flag(
        "max-concurrent-challenges",
        "max_concurrent_challenges",
        "int",
        "The maximum number of challenges that can be scheduled as 'processing' "
        "at once.",
    ),
    Flag(
        "experimental-issue-pkcs12",
        "keystores.issue_pkcs12",
        "bool",
        "If true, the certificate controller will create 'keystore.p12' files in "
        "Secret resources it manages, containing a copy of the certificate data "
        "encrypted using the provided --experimental-pkcs12-keystore-password. If "
        "true, --experimental-pkcs12-keystore-password must be provided.",
    ),
    Flag(
        "experimental-pkcs12-keystore-password",
        "keystores.pkcs12_password",
        "string",
        "The password used to encrypt and decrypt PKCS#12 bundles stored in Secret "
        "resources. This field is required if --experimental-issue-pkcs12 is enabled.",
    ),
    Flag(
        "experimental-issue-jks",
        "keystores.issue_jks",
        "bool",
        "If true, the certificate controller will create 'keystore.jks' files in "
        "Secret resources it manages, containing a copy of the certificate data "
        "encrypted using the provided --experimental-jks-password. If true, "
        "--experimental-jks-password must be provided.",
    ),
    Flag(
        "experimental-jks-password",
        "keystores.jks_password",
        "string",
        "The password used to encrypt and decrypt JKS bundles stored in Secret "
        "resources. This field is required if --experimental-issue-jks is enabled.",
    ),
    Flag(
        "log-level",
        "logging.level",
        "string",
        f"Log level. One of: {', '.join(LOG_LEVELS)} (any case).",
    ),
    Flag(
        "log-format",
        "logging.format",
        "string",
        f"Log output format. One of: {', '.join(LOG_FORMATS)}.",
    ),
)

_SECRET_PATHS = frozenset({"keystores.pkcs12_password", "keystores.jks_password"})


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------


def _parse_bool(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    msg = f"invalid boolean value {value!r}"
    raise argparse.ArgumentTypeError(msg)


def _parse_duration(value: str) -> timedelta:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _parse_int(value: str) -> int:
    # base prefixes as in Go: 0x, 0o, 0b, and a bare leading 0 for octal
    base = 8 if _LEGACY_OCTAL_RE.match(value) else 0
    try:
        return int(value, base)
    except ValueError as exc:
        msg = f"invalid integer value {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc


def _parse_csv(value: str) -> list[str]:
    if not value:
        return []
    return next(csv.reader([value]))


class _StringSliceAction(argparse.Action):
    """Comma-separated list switch.

    The first use of a switch replaces the current value, later uses of
    the same switch append to it.
    """

    def __init__(self, *args: Any, deprecation: str | None = None, **kwargs: Any) -> None:  # noqa: ANN401
        super().__init__(*args, **kwargs)
        self.deprecation = deprecation

    def __call__(
        self,
        parser: argparse.ArgumentParser,  # noqa: ARG002
        namespace: argparse.Namespace,
        values: Any,  # noqa: ANN401
        option_string: str | None = None,
    ) -> None:
        if self.deprecation:
            log.warning("Flag %s has been deprecated, %s", option_string, self.deprecation)
        seen = getattr(namespace, _SEEN_ATTR, None)
        if seen is None:
            seen = set()
            setattr(namespace, _SEEN_ATTR, seen)
        items = _parse_csv(values)
        key = self.option_strings[0]
        if key in seen:
            items = [*getattr(namespace, self.dest), *items]
        seen.add(key)
        setattr(namespace, self.dest, items)


# ---------------------------------------------------------------------------
# Defaults rendering
# ---------------------------------------------------------------------------


def lookup(settings: ControllerSettings, path: str) -> Any:  # noqa: ANN401
    """Return the value at dotted *path* inside *settings*."""
    value: Any = settings
    for part in path.split("."):
        value = getattr(value, part)
    return value


def _render_default(value: Any) -> str:  # noqa: ANN401
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, tuple):
        return "[" + ",".join(value) + "]"
    if isinstance(value, str):
        return f'"{value}"' if value else ""
    return str(value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def add_flags(
    parser: argparse.ArgumentParser,
    defaults: ControllerSettings | None = None,
) -> argparse.ArgumentParser:
    """Register one switch per option on *parser*, in :data:`FLAGS` order.

    *defaults* only feeds the help text; the values themselves come from
    :func:`build_settings` for any switch that is not passed.
    """
    defaults = defaults or new_default_configuration()
    group = parser.add_argument_group("controller options")

    for flag in FLAGS:
        shown = "" if flag.path in _SECRET_PATHS else _render_default(lookup(defaults, flag.path))
        help_text = flag.help
        if flag.deprecated:
            help_text = f"DEPRECATED: {flag.deprecated}. {help_text}"
        if shown:
            help_text = f"{help_text} (default {shown})"
        help_text = help_text.replace("%", "%%")

        kwargs: dict[str, Any] = {
            "dest": flag.path,
            "default": argparse.SUPPRESS,
            "help": help_text,
        }
        if flag.kind == "bool":
            kwargs.update(nargs="?", const=True, type=_parse_bool, metavar="BOOL")
        elif flag.kind == "duration":
            kwargs.update(type=_parse_duration, metavar="DURATION")
        elif flag.kind == "int":
            kwargs.update(type=_parse_int, metavar="INT")
        elif flag.kind == "strings":
            kwargs.update(action=_StringSliceAction, deprecation=flag.deprecated, metavar="STRINGS")
        else:
            kwargs.update(metavar="STRING")

        group.add_argument(f"--{flag.name}", **kwargs)
    return parser


def expand_bool_switches(argv: Sequence[str] | None = None) -> list[str]:
    """Rewrite bare boolean switches in *argv* to their ``=true`` form.

    A boolean switch only takes a value as ``--name=value``; after the
    rewrite ``--leader-elect false`` leaves ``false`` as a stray argument
    that the parser rejects, instead of reading it as the value.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    names = {f"--{flag.name}" for flag in FLAGS if flag.kind == "bool"}
    for i, arg in enumerate(args):
        if arg == "--":
            break
        if arg in names:
            args[i] = f"{arg}=true"
    return args


def _set_path(data: dict, path: str, value: Any) -> None:  # noqa: ANN401
    *parents, leaf = path.split(".")
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[leaf] = value


def apply_flags(namespace: argparse.Namespace, data: dict | None = None) -> dict:
    """Overlay every switch present in *namespace* onto a copy of *data*.

    Returns the merged staging dict; *data* itself is left untouched.
    """
    merged = copy.deepcopy(data) if data else {}
    paths = {flag.path for flag in FLAGS}
    for key, value in vars(namespace).items():
        if key in paths:
            _set_path(merged, key, value)
    return merged


def parse_flags(argv: Sequence[str] | None = None, data: dict | None = None) -> dict:
    """Parse *argv* on a parser holding only the option switches."""
    parser = add_flags(argparse.ArgumentParser(add_help=False, allow_abbrev=False))
    return apply_flags(parser.parse_args(expand_bool_switches(argv)), data)
