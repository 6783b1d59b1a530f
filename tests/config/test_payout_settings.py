"""Tests for payout_config: YAML settings, environment overrides, default policy."""

from decimal import Decimal

import pytest
import yaml

from payout_config import DEFAULTS_PATH, build_cipher, load_default_policy, load_settings
from payout_config.loader import (
    ENV_DATABASE_URL,
    ENV_ENCRYPTION_KEY,
    ENV_LOCK_TIMEOUT_MS,
    load_yaml_file,
    parse_settings,
)
from payout_kernel.exceptions import InvalidPolicyError


@pytest.fixture
def clean_env(monkeypatch):
    for name in (ENV_DATABASE_URL, ENV_LOCK_TIMEOUT_MS, ENV_ENCRYPTION_KEY):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadSettings:

    def test_defaults(self, clean_env):
        settings = load_settings()
        assert settings.database_url == "sqlite:///payouts.db"
        assert settings.lock_timeout_ms == 5000
        assert settings.pool_size == 20
        assert settings.echo_sql is False
        assert settings.log_level == "INFO"
        assert settings.encryption_key

    def test_environment_overrides(self, clean_env):
        clean_env.setenv(ENV_DATABASE_URL, "postgresql://payout@db/payouts")
        clean_env.setenv(ENV_LOCK_TIMEOUT_MS, "250")
        clean_env.setenv(ENV_ENCRYPTION_KEY, "prod-key")

        settings = load_settings()
        assert settings.database_url == "postgresql://payout@db/payouts"
        assert settings.lock_timeout_ms == 250
        assert settings.encryption_key == "prod-key"

    def test_encryption_key_hidden_from_repr(self, clean_env):
        assert "change-me" not in repr(load_settings())

    def test_explicit_environ(self):
        data = {"database": {"url": "sqlite://"}, "logging": {"level": "debug"}}
        settings = parse_settings(data, environ={ENV_LOCK_TIMEOUT_MS: "100"})
        assert settings.database_url == "sqlite://"
        assert settings.lock_timeout_ms == 100
        assert settings.log_level == "DEBUG"
        assert settings.encryption_key == ""

    def test_invalid_lock_timeout(self):
        with pytest.raises(ValueError):
            parse_settings({"database": {"url": "sqlite://"}}, environ={ENV_LOCK_TIMEOUT_MS: "soon"})

    def test_missing_database_block(self):
        with pytest.raises(KeyError):
            parse_settings({}, environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_settings_load_is_logged(self, clean_env, captured_logs):
        load_settings()
        loaded = [r for r in captured_logs() if r["message"] == "payout_settings_loaded"]
        assert loaded[0]["source"] == str(DEFAULTS_PATH)


class TestDefaultPolicy:

    def test_values(self):
        policy = load_default_policy()
        assert policy.min_payout_amount == Decimal("100.00")
        assert policy.max_payout_amount == Decimal("100000.00")
        assert policy.daily_payout_limit == Decimal("50000.00")
        assert policy.monthly_payout_limit == Decimal("500000.00")
        assert policy.processing_fee_percentage == Decimal("0.005")
        assert policy.processing_fee_fixed == Decimal("5.00")
        assert policy.tds_percentage == Decimal("0.01")
        assert policy.auto_approval_limit == Decimal("5000.00")
        assert policy.version is None

    def test_invalid_policy_file(self, tmp_path):
        data = load_yaml_file(DEFAULTS_PATH)
        data["policy"]["daily_payout_limit"] = "600000.00"
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(data))

        with pytest.raises(InvalidPolicyError) as exc_info:
            load_default_policy(path)
        assert exc_info.value.errors == ["daily_payout_limit must not exceed monthly_payout_limit"]

    def test_missing_policy_field(self, tmp_path):
        data = load_yaml_file(DEFAULTS_PATH)
        del data["policy"]["tds_percentage"]
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.safe_dump(data))

        with pytest.raises(KeyError):
            load_default_policy(path)

    def test_empty_file_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}


def test_build_cipher_round_trip(clean_env):
    cipher = build_cipher(load_settings())
    assert cipher.decrypt(cipher.encrypt("123456789012")) == "123456789012"
