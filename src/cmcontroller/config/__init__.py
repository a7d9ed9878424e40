"""Configuration subsystem for cmcontroller.

Public API::

    from cmcontroller.config import add_flags, apply_flags, build_settings, validate

    add_flags(parser)
    args = parser.parse_args()
    settings = build_settings(apply_flags(args, load_options_file(path)))
    validate(settings)                          # raises ConfigError

    settings.leader_election.lease_duration    # typed, frozen access
"""

from cmcontroller.config.flags import (
    FLAGS,
    Flag,
    add_flags,
    apply_flags,
    expand_bool_switches,
    parse_flags,
)
from cmcontroller.config.loader import OptionsFileError, load_options_file
from cmcontroller.config.settings import (
    KNOWN_CONTROLLERS,
    AmbientCredentialsSettings,
    ControllerSettings,
    DNS01Settings,
    HTTP01SolverSettings,
    IngressShimSettings,
    KeystoreSettings,
    LeaderElectionSettings,
    LoggingSettings,
    build_settings,
    new_default_configuration,
    parse_duration,
)
from cmcontroller.config.validation import (
    ConfigError,
    InvalidEndpointError,
    InvalidEnumError,
    InvalidValueError,
    MissingDependentOptionError,
    iter_errors,
    validate,
)

__all__ = [
    "FLAGS",
    "KNOWN_CONTROLLERS",
    "AmbientCredentialsSettings",
    # Errors
    "ConfigError",
    # Root
    "ControllerSettings",
    # Sections
    "DNS01Settings",
    "Flag",
    "HTTP01SolverSettings",
    "IngressShimSettings",
    "InvalidEndpointError",
    "InvalidEnumError",
    "InvalidValueError",
    "KeystoreSettings",
    "LeaderElectionSettings",
    "LoggingSettings",
    "MissingDependentOptionError",
    "OptionsFileError",
    # Binding
    "add_flags",
    "apply_flags",
    "build_settings",
    "expand_bool_switches",
    "iter_errors",
    "load_options_file",
    "new_default_configuration",
    "parse_duration",
    "parse_flags",
    "validate",
]
