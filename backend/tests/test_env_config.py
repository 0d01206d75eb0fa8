import os
import sys

import pytest
import pytz
from pydantic import ValidationError

# 将 backend 目录添加到 sys.path 中，便于按项目方式导入
backend_path = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if backend_path not in sys.path:
    sys.path.insert(0, backend_path)
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"

from app.core.config import Settings, settings


def test_settings_are_loaded_correctly():
    """
    测试关键配置项是否从 .env 或环境变量中正确加载到 settings 对象
    """
    required_attributes = [
        "JWT_SECRET",
        "DATABASE_URL",
        "TIMEZONE",
    ]

    missing_or_empty_settings = []
    for attr in required_attributes:
        value = getattr(settings, attr, None)
        if not value:
            missing_or_empty_settings.append(attr)

    assert not missing_or_empty_settings, (
        f"The following required settings are missing or empty in your configuration "
        f"(check .env file or environment variables): {missing_or_empty_settings}"
    )


def test_timezone_is_known():
    assert pytz.timezone(settings.TIMEZONE) is not None


def test_progress_retry_attempts_positive():
    assert settings.PROGRESS_SAVE_MAX_ATTEMPTS >= 1


def test_is_production(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    assert Settings().is_production
    monkeypatch.setenv("APP_ENV", "testing")
    assert not Settings().is_production


def test_jwt_secret_is_required(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize("value", ["0", "-2"])
def test_progress_retry_attempts_must_be_positive(monkeypatch, value):
    monkeypatch.setenv("PROGRESS_SAVE_MAX_ATTEMPTS", value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
