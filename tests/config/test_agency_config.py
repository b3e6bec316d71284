"""
Tests for the configuration loader: YAML parsing, environment overrides,
validation and the checksum of the effective configuration.
"""

from pathlib import Path
from uuid import uuid4

import pytest
import yaml

from agency_config import DEFAULT_CONFIG_PATH, get_active_config
from agency_config.loader import (
    apply_env_overrides,
    compute_checksum,
    load_yaml_file,
    parse_config,
)
from agency_services.rbac import DEFAULT_GRANTS, Actor, Authorizer


@pytest.fixture
def base_data() -> dict:
    return load_yaml_file(DEFAULT_CONFIG_PATH)


class TestDefaultConfig:
    def test_default_set_loads(self):
        config = get_active_config(environ={})
        assert config.config_id == "agency-default"
        assert config.currency.default_currency == "EGP"
        assert config.currency.cache_ttl_seconds == 43200
        assert config.pagination.default_limit == 10
        assert config.pagination.max_limit == 100
        assert config.email.company_name == "Glitci"

    def test_rbac_matches_builtin_grants(self):
        config = get_active_config(environ={})
        assert dict(config.rbac.role_permissions) == DEFAULT_GRANTS

    def test_authorizer_from_loaded_config(self):
        config = get_active_config(environ={})
        authorizer = Authorizer.from_config(config.rbac)
        assert authorizer.check(Actor(id=uuid4(), role="manager"), "finance.read")[0]

    def test_load_is_logged(self, captured_logs):
        get_active_config(environ={})
        loaded = [r for r in captured_logs() if r["message"] == "config_loaded"]
        assert loaded and loaded[0]["config_id"] == "agency-default"


class TestEnvOverrides:
    def test_overrides_apply(self, base_data):
        merged = apply_env_overrides(
            base_data,
            {
                "AGENCY_DATABASE_URL": "sqlite://",
                "AGENCY_RESEND_API_KEY": "re_secret",
                "AGENCY_RATES_TIMEOUT": "3.5",
            },
        )
        config = parse_config(merged)
        assert config.database.url == "sqlite://"
        assert config.email.api_key == "re_secret"
        assert config.currency.timeout_seconds == 3.5

    def test_empty_values_ignored(self, base_data):
        merged = apply_env_overrides(base_data, {"AGENCY_DATABASE_URL": ""})
        assert merged["database"]["url"] == base_data["database"]["url"]

    def test_original_not_mutated(self, base_data):
        original_url = base_data["database"]["url"]
        apply_env_overrides(base_data, {"AGENCY_DATABASE_URL": "sqlite://"})
        assert base_data["database"]["url"] == original_url

    def test_bad_cast_rejected(self, base_data):
        with pytest.raises(ValueError, match="AGENCY_RATES_TIMEOUT"):
            apply_env_overrides(base_data, {"AGENCY_RATES_TIMEOUT": "soon"})

    def test_checksum_tracks_effective_config(self, base_data):
        overridden = apply_env_overrides(base_data, {"AGENCY_LOG_LEVEL": "debug"})
        assert compute_checksum(base_data) != compute_checksum(overridden)
        assert parse_config(overridden).logging.level == "DEBUG"


class TestValidation:
    def test_unsupported_default_currency(self, base_data):
        base_data["currency"]["default_currency"] = "GBP"
        with pytest.raises(ValueError, match="Unsupported default currency"):
            parse_config(base_data)

    def test_inverted_pagination_limits(self, base_data):
        base_data["pagination"] = {"default_limit": 50, "max_limit": 10}
        with pytest.raises(ValueError, match="pagination"):
            parse_config(base_data)

    def test_missing_database_section(self, base_data):
        del base_data["database"]
        with pytest.raises(KeyError):
            parse_config(base_data)

    def test_rbac_roles_must_be_lists(self, base_data):
        base_data["rbac"]["finance.read"] = "admin"
        with pytest.raises(ValueError, match="finance.read"):
            parse_config(base_data)

    def test_custom_file(self, tmp_path: Path, base_data):
        base_data["config_id"] = "staging"
        path = tmp_path / "staging.yaml"
        path.write_text(yaml.safe_dump(base_data))
        assert get_active_config(path, environ={}).config_id == "staging"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})
