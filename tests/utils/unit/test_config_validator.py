"""
Unit tests for startup configuration validation.
"""

from types import SimpleNamespace

import pytest

from utils.config_validator import (
    ConfigValidationError,
    validate_api_secret,
    validate_courier_api_url,
    validate_or_exit,
    validate_sync_settings,
)


def _config(**overrides):
    values = dict(
        API_SECRET_TOKEN="x" * 32,
        COURIER_API_URL="https://api.alwaseet-iq.net/v1/merchant",
        SYNC_FORCE_REFRESH_DAYS=60,
        SYNC_BOOTSTRAP_DAYS=7,
        SYNC_DEBOUNCE_MINUTES=3,
        SYNC_INTERVAL_MINUTES=10,
        EMPLOYEE_PROFIT_SHARE_PERCENT=50,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestApiSecret:

    @pytest.mark.parametrize("secret", [None, "", "   ", "short"])
    def test_rejects_missing_or_weak(self, secret):
        with pytest.raises(ConfigValidationError):
            validate_api_secret(secret)

    def test_accepts_strong_secret(self):
        validate_api_secret("a" * 64)


class TestCourierUrl:

    @pytest.mark.parametrize("url", [None, "", "api.alwaseet-iq.net", "ftp://courier.test"])
    def test_rejects_invalid(self, url):
        with pytest.raises(ConfigValidationError):
            validate_courier_api_url(url)


class TestSyncSettings:

    def test_defaults_are_consistent(self):
        validate_sync_settings(_config())

    @pytest.mark.parametrize("overrides", [
        {"SYNC_FORCE_REFRESH_DAYS": 3},
        {"SYNC_DEBOUNCE_MINUTES": 30},
        {"EMPLOYEE_PROFIT_SHARE_PERCENT": 150},
    ])
    def test_contradictions_are_rejected(self, overrides):
        with pytest.raises(ConfigValidationError):
            validate_sync_settings(_config(**overrides))

    def test_validate_or_exit_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            validate_or_exit(_config(API_SECRET_TOKEN=None))

        assert exc_info.value.code == 1
