from __future__ import annotations

import pytest
from pydantic import ValidationError

from lingobook.core.config import Settings


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="change-me")


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="prod", secret_key="change-me-in-production")


def test_custom_secret_key_allowed_in_production() -> None:
    settings = Settings(_env_file=None, app_env="production", secret_key="super-secure-value")
    assert settings.secret_key == "super-secure-value"


def test_payment_provider_is_normalized() -> None:
    settings = Settings(_env_file=None, payment_provider="  WOMPI ")
    assert settings.payment_provider == "wompi"


def test_job_settings_reject_non_positive_values() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, job_max_attempts=0)
