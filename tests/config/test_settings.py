"""Tests for cmcontroller.config.settings: defaults, builders and durations."""

from __future__ import annotations

import dataclasses
from datetime import timedelta

import pytest

from cmcontroller import __version__
from cmcontroller.config.settings import (
    KNOWN_CONTROLLERS,
    build_settings,
    default_solver_image,
    format_duration,
    new_default_configuration,
    parse_duration,
)

# ===========================================================================
# Defaults
# ===========================================================================


class TestDefaults:
    def test_two_calls_are_equal(self):
        assert new_default_configuration() == new_default_configuration()

    def test_leader_election_defaults(self):
        election = new_default_configuration().leader_election
        assert election.enabled is True
        assert election.namespace == "kube-system"
        assert election.lease_duration == timedelta(seconds=60)
        assert election.renew_deadline == timedelta(seconds=40)
        assert election.retry_period == timedelta(seconds=15)

    def test_scope_defaults(self):
        settings = new_default_configuration()
        assert settings.api_server_host == ""
        assert settings.kubeconfig == ""
        assert settings.namespace == ""
        assert settings.cluster_resource_namespace == "kube-system"

    def test_ambient_credentials_defaults(self):
        creds = new_default_configuration().ambient_credentials
        assert creds.cluster_issuer is True
        assert creds.issuer is False

    def test_ingress_shim_defaults(self):
        shim = new_default_configuration().ingress_shim
        assert shim.default_issuer_name == ""
        assert shim.default_issuer_kind == "Issuer"
        assert shim.default_issuer_group == "cert-manager.io"
        assert shim.auto_certificate_annotations == ("kubernetes.io/tls-acme",)

    def test_misc_defaults(self):
        settings = new_default_configuration()
        assert settings.renew_before_expiry_duration == timedelta(days=30)
        assert settings.max_concurrent_challenges == 60
        assert settings.enable_certificate_owner_ref is False
        assert settings.dns01.recursive_nameservers == ()
        assert settings.dns01.recursive_nameservers_only is False

    def test_keystores_disabled(self):
        keystores = new_default_configuration().keystores
        assert keystores.issue_pkcs12 is False
        assert keystores.pkcs12_password == ""
        assert keystores.issue_jks is False
        assert keystores.jks_password == ""

    def test_controllers_listed_once(self):
        controllers = new_default_configuration().enabled_controllers
        assert controllers == KNOWN_CONTROLLERS
        assert len(set(controllers)) == len(controllers)
        assert "certificates" in controllers

    def test_solver_resources(self):
        solver = new_default_configuration().acme_http01_solver
        assert solver.resource_request_cpu == "10m"
        assert solver.resource_request_memory == "64Mi"
        assert solver.resource_limits_cpu == "100m"
        assert solver.resource_limits_memory == "64Mi"

    def test_solver_image_tracks_version(self):
        solver = new_default_configuration().acme_http01_solver
        assert solver.image == f"quay.io/jetstack/cert-manager-acmesolver:{__version__}"
        assert default_solver_image("v1.2.3") == "quay.io/jetstack/cert-manager-acmesolver:v1.2.3"

    def test_settings_are_frozen(self):
        settings = new_default_configuration()
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.namespace = "other"  # type: ignore[misc]
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.leader_election.enabled = False  # type: ignore[misc]


# ===========================================================================
# build_settings
# ===========================================================================


class TestBuildSettings:
    def test_overrides_only_given_keys(self):
        settings = build_settings(
            {
                "namespace": "team-a",
                "leader_election": {"enabled": False},
                "ingress_shim": {"default_issuer_kind": "ClusterIssuer"},
            },
        )
        assert settings.namespace == "team-a"
        assert settings.leader_election.enabled is False
        assert settings.leader_election.namespace == "kube-system"
        assert settings.ingress_shim.default_issuer_kind == "ClusterIssuer"
        assert settings.ingress_shim.default_issuer_group == "cert-manager.io"

    def test_lists_become_tuples(self):
        settings = build_settings(
            {
                "dns01": {"recursive_nameservers": ["8.8.8.8:53", "1.1.1.1:53"]},
                "ingress_shim": {"auto_certificate_annotations": ["a", "b"]},
            },
        )
        assert settings.dns01.recursive_nameservers == ("8.8.8.8:53", "1.1.1.1:53")
        assert settings.ingress_shim.auto_certificate_annotations == ("a", "b")

    def test_duplicate_controllers_collapse(self):
        settings = build_settings(
            {"enabled_controllers": ["issuers", "certificates", "issuers"]},
        )
        assert settings.enabled_controllers == ("issuers", "certificates")

    def test_durations_from_strings_and_numbers(self):
        settings = build_settings(
            {
                "leader_election": {"lease_duration": "2m", "renew_deadline": 30},
                "renew_before_expiry_duration": "1440h",
            },
        )
        assert settings.leader_election.lease_duration == timedelta(minutes=2)
        assert settings.leader_election.renew_deadline == timedelta(seconds=30)
        assert settings.renew_before_expiry_duration == timedelta(days=60)

    def test_bad_duration_raises(self):
        with pytest.raises(ValueError, match="invalid duration"):
            build_settings({"leader_election": {"retry_period": "soon"}})


# ===========================================================================
# Durations
# ===========================================================================


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("60s", timedelta(seconds=60)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("250ms", timedelta(milliseconds=250)),
            ("1.5h", timedelta(minutes=90)),
            ("0", timedelta(0)),
            ("-5s", timedelta(seconds=-5)),
            ("720h", timedelta(days=30)),
            ("10us", timedelta(microseconds=10)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize(
        "text",
        ["", "10", "s", "5x", "1h 30m", "abc", "99999999999h", "-2562048h", "9223372037s"],
    )
    def test_invalid(self, text):
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(text)

    def test_longest_go_duration(self):
        assert parse_duration("2562047h") == timedelta(hours=2562047)

    @pytest.mark.parametrize("value", [1e20, -1e20, 10**30, float("inf"), float("nan")])
    def test_numeric_seconds_out_of_range(self, value):
        with pytest.raises(ValueError, match="invalid duration"):
            build_settings({"leader_election": {"lease_duration": value}})


class TestFormatDuration:
    def test_seconds_only(self):
        assert format_duration(timedelta(seconds=40)) == "40s"

    def test_minutes(self):
        assert format_duration(timedelta(seconds=90)) == "1m30s"

    def test_hours(self):
        assert format_duration(timedelta(days=30)) == "720h0m0s"

    def test_zero(self):
        assert format_duration(timedelta(0)) == "0s"

    def test_parses_back(self):
        value = timedelta(hours=2, minutes=5, seconds=7)
        assert parse_duration(format_duration(value)) == value
