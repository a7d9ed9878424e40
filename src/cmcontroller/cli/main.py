"""cmcontroller command-line entry point.

Usage::

    cmcontroller --namespace=team-a --default-issuer-name=letsencrypt
    cmcontroller --config /etc/cmcontroller/options.yaml --leader-elect=false
    cmcontroller --config options.yaml --validate-only
    python -m cmcontroller --help
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cmcontroller.config import ControllerSettings

log = logging.getLogger(__name__)


def _get_version() -> str:
    from cmcontroller import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    from cmcontroller.config import add_flags

    parser = argparse.ArgumentParser(
        prog="cmcontroller",
        allow_abbrev=False,
        description="Certificate management controller",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Optional options file (YAML or JSON). Command-line switches override it.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration, report every problem found and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    add_flags(parser)
    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"error: {message}", file=sys.stderr)  # noqa: T201


def load_settings(args: argparse.Namespace) -> ControllerSettings:
    """Layer defaults, the options file and switches into settings.

    Raises :class:`ValueError` (usually a :class:`ConfigError`) when the
    options file is invalid or a duration cannot be parsed.  The result
    is **not** validated yet.
    """
    from cmcontroller.config import apply_flags, build_settings, load_options_file

    data = load_options_file(args.config) if args.config else {}
    return build_settings(apply_flags(args, data))


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses switches, validates and hands off."""
    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    from cmcontroller.config import ConfigError, expand_bool_switches, iter_errors, validate

    parser = _build_parser()
    args = parser.parse_args(expand_bool_switches(argv))
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    # -- load config ---
    try:
        settings = load_settings(args)
    except ValueError as exc:
        if args.debug:
            raise
        _print_error(str(exc))
        sys.exit(1)

    if args.validate_only:
        _print_settings_summary(settings)
        errors = list(iter_errors(settings))
        for err in errors:
            _print_error(str(err))
        sys.exit(1 if errors else 0)

    # -- validate, nothing starts on failure ---
    try:
        validate(settings)
    except ConfigError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with the configured logging ---
    from cmcontroller.logging import configure_logging

    configure_logging(settings.logging)
    _start_controllers(settings)


def _start_controllers(settings: ControllerSettings) -> None:
    """Hand each enabled controller its read-only configuration view."""
    from cmcontroller.config.settings import format_duration
    from cmcontroller.controllers import controller_views

    election = settings.leader_election
    if election.enabled:
        log.info(
            "Leader election enabled in namespace %s (lease %s, renew %s, retry %s)",
            election.namespace,
            format_duration(election.lease_duration),
            format_duration(election.renew_deadline),
            format_duration(election.retry_period),
        )
    else:
        log.warning("Leader election disabled; only run a single replica")

    scope = settings.namespace or "all namespaces"
    log.info("Watching %s", scope)
    for name, view in controller_views(settings).items():
        log.info("Starting controller %s", name)
        log.debug("Controller %s configuration: %r", name, view)


def _print_settings_summary(settings: ControllerSettings) -> None:
    """Print a short summary of the loaded configuration."""
    shim = settings.ingress_shim
    lines = [
        f"namespace:                  {settings.namespace or '<all>'}",
        f"cluster resource namespace: {settings.cluster_resource_namespace}",
        f"leader election:            {settings.leader_election.enabled}",
        f"controllers:                {', '.join(settings.enabled_controllers)}",
        f"http01 solver image:        {settings.acme_http01_solver.image}",
        f"default issuer:             {shim.default_issuer_kind}/{shim.default_issuer_name or '-'}",
        f"dns01 nameservers:          {', '.join(settings.dns01.recursive_nameservers) or '-'}",
        f"max concurrent challenges:  {settings.max_concurrent_challenges}",
    ]
    for line in lines:
        print(line)  # noqa: T201
