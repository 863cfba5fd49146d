"""Tests for service configuration.

Covers:
- Default values
- Loading from environment variables
- Type coercion (string env vars to numeric fields)
- Fail-fast range validation
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from imagery_requests.core.config import ConfigValidationError, ServiceConfig


class TestServiceConfigDefaults:
    """Verify default configuration values."""

    def test_default_store(self) -> None:
        cfg = ServiceConfig()
        assert cfg.request_store == "memory"
        assert cfg.requests_container == "imagery-requests"

    def test_default_limits(self) -> None:
        cfg = ServiceConfig()
        assert cfg.list_default_limit == 20
        assert cfg.admin_list_default_limit == 20
        assert cfg.list_max_limit == 100

    def test_default_notification_backend(self) -> None:
        cfg = ServiceConfig()
        assert cfg.notification_backend == "log"
        assert cfg.notification_max_attempts == 3
        assert cfg.notification_retry_seconds == 5

    def test_frozen(self) -> None:
        cfg = ServiceConfig()
        with pytest.raises(AttributeError):
            cfg.request_store = "blob"  # type: ignore[misc]


class TestServiceConfigFromEnv:
    """Verify loading from environment variables."""

    def test_from_env_uses_defaults_when_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            cfg = ServiceConfig.from_env()
        assert cfg == ServiceConfig()

    def test_from_env_reads_values(self) -> None:
        env = {
            "REQUEST_STORE": "blob",
            "REQUESTS_CONTAINER": "custom-requests",
            "LIST_DEFAULT_LIMIT": "10",
            "ADMIN_LIST_DEFAULT_LIMIT": "50",
            "LIST_MAX_LIMIT": "80",
            "NOTIFICATION_BACKEND": "http",
            "EMAIL_API_URL": "https://mail.example.test/send",
            "EMAIL_API_KEY": "secret",
            "SALES_EMAIL": "ops@example.test",
            "NOTIFICATION_MAX_ATTEMPTS": "5",
            "NOTIFICATION_RETRY_SECONDS": "2",
            "NOTIFICATION_TIMEOUT_SECONDS": "3.5",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = ServiceConfig.from_env()
        assert cfg.request_store == "blob"
        assert cfg.requests_container == "custom-requests"
        assert cfg.list_default_limit == 10
        assert cfg.admin_list_default_limit == 50
        assert cfg.list_max_limit == 80
        assert cfg.notification_backend == "http"
        assert cfg.email_api_key == "secret"
        assert cfg.sales_email == "ops@example.test"
        assert cfg.notification_max_attempts == 5
        assert cfg.notification_retry_seconds == 2
        assert cfg.notification_timeout_seconds == 3.5

    def test_non_numeric_limit_raises_value_error(self) -> None:
        with (
            patch.dict(os.environ, {"LIST_MAX_LIMIT": "abc"}, clear=True),
            pytest.raises(ValueError),
        ):
            ServiceConfig.from_env()


class TestServiceConfigValidation:
    """Fail-fast validation rejects out-of-range values."""

    @pytest.mark.parametrize(
        ("env", "key"),
        [
            ({"REQUEST_STORE": "sql"}, "REQUEST_STORE"),
            ({"REQUESTS_CONTAINER": ""}, "REQUESTS_CONTAINER"),
            ({"LIST_MAX_LIMIT": "0"}, "LIST_MAX_LIMIT"),
            ({"LIST_MAX_LIMIT": "101"}, "LIST_MAX_LIMIT"),
            ({"LIST_DEFAULT_LIMIT": "0"}, "LIST_DEFAULT_LIMIT"),
            ({"LIST_MAX_LIMIT": "10", "LIST_DEFAULT_LIMIT": "20"}, "LIST_DEFAULT_LIMIT"),
            (
                {"LIST_MAX_LIMIT": "10", "LIST_DEFAULT_LIMIT": "5"},
                "ADMIN_LIST_DEFAULT_LIMIT",
            ),
            ({"NOTIFICATION_BACKEND": "smtp"}, "NOTIFICATION_BACKEND"),
            ({"NOTIFICATION_BACKEND": "http", "EMAIL_API_URL": ""}, "EMAIL_API_URL"),
            ({"NOTIFICATION_MAX_ATTEMPTS": "0"}, "NOTIFICATION_MAX_ATTEMPTS"),
            ({"NOTIFICATION_RETRY_SECONDS": "0"}, "NOTIFICATION_RETRY_SECONDS"),
            ({"NOTIFICATION_TIMEOUT_SECONDS": "0"}, "NOTIFICATION_TIMEOUT_SECONDS"),
        ],
    )
    def test_rejects(self, env: dict[str, str], key: str) -> None:
        with patch.dict(os.environ, env, clear=True), pytest.raises(ConfigValidationError) as exc:
            ServiceConfig.from_env()
        assert exc.value.key == key

    def test_error_is_config_operation(self) -> None:
        with (
            patch.dict(os.environ, {"REQUEST_STORE": "sql"}, clear=True),
            pytest.raises(ConfigValidationError) as exc,
        ):
            ServiceConfig.from_env()
        assert exc.value.operation == "config"
        assert exc.value.value == "sql"
