"""Tests for options-file loading (YAML/JSON, env vars, schema)."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from cmcontroller.config.loader import (
    OptionsFileError,
    check_schema,
    load_options_file,
    resolve_env_vars,
)
from cmcontroller.config.settings import build_settings
from cmcontroller.config.validation import ConfigError


class TestLoadOptionsFile:
    def test_yaml_round_trip_into_settings(self, write_options):
        path = write_options(
            {
                "namespace": "team-a",
                "leader_election": {"lease_duration": "2m", "renew_deadline": "90s"},
                "dns01": {"recursive_nameservers": ["8.8.8.8:53"]},
                "keystores": {"issue_pkcs12": True, "pkcs12_password": "pw"},
            },
        )
        settings = build_settings(load_options_file(path))
        assert settings.namespace == "team-a"
        assert settings.leader_election.lease_duration == timedelta(minutes=2)
        assert settings.leader_election.renew_deadline == timedelta(seconds=90)
        assert settings.dns01.recursive_nameservers == ("8.8.8.8:53",)
        assert settings.keystores.issue_pkcs12 is True

    def test_json_file(self, tmp_path):
        path = tmp_path / "options.json"
        path.write_text(json.dumps({"max_concurrent_challenges": 10}), encoding="utf-8")
        assert load_options_file(path) == {"max_concurrent_challenges": 10}

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_options_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(OptionsFileError, match="cannot read file"):
            load_options_file(tmp_path / "nope.yaml")

    def test_unparseable_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("namespace: [unclosed\n", encoding="utf-8")
        with pytest.raises(OptionsFileError, match="cannot parse file"):
            load_options_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(OptionsFileError, match="mapping"):
            load_options_file(path)

    def test_error_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_options_file(tmp_path / "nope.yaml")


class TestSchema:
    def test_unknown_key_rejected(self, write_options):
        path = write_options({"leader_election": {"enabled": True, "lease": "10s"}})
        with pytest.raises(OptionsFileError) as excinfo:
            load_options_file(path)
        assert any("leader_election" in p and "lease" in p for p in excinfo.value.problems)

    def test_wrong_type_rejected(self, write_options):
        path = write_options({"max_concurrent_challenges": "sixty"})
        with pytest.raises(OptionsFileError, match="max_concurrent_challenges"):
            load_options_file(path)

    def test_all_problems_listed(self):
        with pytest.raises(OptionsFileError) as excinfo:
            check_schema({"namespace": 1, "enable_certificate_owner_ref": "yes"})
        assert len(excinfo.value.problems) == 2

    def test_valid_data_passes(self):
        check_schema({"ingress_shim": {"auto_certificate_annotations": ["a/b"]}})


class TestEnvVars:
    def test_resolved_from_environment(self, write_options, monkeypatch):
        monkeypatch.setenv("CM_PKCS12_PASSWORD", "from-env")
        path = write_options({"keystores": {"pkcs12_password": "${CM_PKCS12_PASSWORD}"}})
        assert load_options_file(path)["keystores"]["pkcs12_password"] == "from-env"

    def test_fallback_used(self, monkeypatch):
        monkeypatch.delenv("CM_NAMESPACE", raising=False)
        data = {"namespace": "${CM_NAMESPACE:-default-ns}"}
        resolve_env_vars(data)
        assert data == {"namespace": "default-ns"}

    def test_inside_lists(self, monkeypatch):
        monkeypatch.setenv("CM_DNS", "9.9.9.9:53")
        data = {"dns01": {"recursive_nameservers": ["8.8.8.8:53", "${CM_DNS}"]}}
        resolve_env_vars(data)
        assert data["dns01"]["recursive_nameservers"] == ["8.8.8.8:53", "9.9.9.9:53"]

    def test_unset_without_default(self, write_options, monkeypatch):
        monkeypatch.delenv("CM_MISSING", raising=False)
        path = write_options({"kubeconfig": "${CM_MISSING}"})
        with pytest.raises(OptionsFileError, match="CM_MISSING"):
            load_options_file(path)

    def test_every_unset_reference_reported(self, monkeypatch):
        monkeypatch.delenv("CM_A", raising=False)
        monkeypatch.delenv("CM_B", raising=False)
        data = {"kubeconfig": "${CM_A}", "dns01": {"recursive_nameservers": ["${CM_B}"]}}
        with pytest.raises(OptionsFileError) as excinfo:
            resolve_env_vars(data, "opts.yaml")
        assert excinfo.value.path == "opts.yaml"
        assert excinfo.value.problems == [
            "kubeconfig: environment variable CM_A is not set and has no default",
            "dns01.recursive_nameservers[0]: environment variable CM_B is not set and has no default",
        ]

    def test_set_but_empty_beats_fallback(self, monkeypatch):
        monkeypatch.setenv("CM_NAMESPACE", "")
        data = {"namespace": "${CM_NAMESPACE:-default-ns}"}
        resolve_env_vars(data)
        assert data == {"namespace": ""}

    def test_plain_strings_untouched(self):
        data = {"namespace": "literal-${not-a-ref}"}
        resolve_env_vars(data)
        assert data == {"namespace": "literal-${not-a-ref}"}
