import calendar
import logging

import pytest

from dairy_dashboard import config

ENV_NAMES = [
    "DASHBOARD_API_BASE_URL",
    "DASHBOARD_API_TOKEN",
    "DASHBOARD_API_USERNAME",
    "DASHBOARD_API_PASSWORD",
    "DASHBOARD_API_TIMEOUT_S",
    "DASHBOARD_SEARCH_DEBOUNCE_MS",
    "DASHBOARD_PAGE_SIZE",
    "DASHBOARD_WEEK_START",
    "DASHBOARD_SOURCE_TIMEOUT_S",
    "DASHBOARD_CURRENCY",
    "DASHBOARD_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "is_frozen_build", lambda: False)


def test_defaults():
    api = config.get_api_settings()
    settings = config.get_dashboard_settings()

    assert api.base_url == config.DEFAULT_API_BASE_URL
    assert api.timeout_s == 30.0
    assert api.token == ""
    assert settings.search_debounce_ms == 300
    assert settings.search_debounce_s == pytest.approx(0.3)
    assert settings.page_size == 10
    assert settings.first_weekday == calendar.SUNDAY
    assert settings.source_timeout_s == 20.0
    assert settings.currency == "₹"
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DASHBOARD_API_BASE_URL", "https://dairy.example.com/api/")
    monkeypatch.setenv("DASHBOARD_API_USERNAME", " admin ")
    monkeypatch.setenv("DASHBOARD_API_TIMEOUT_S", "12.5")
    monkeypatch.setenv("DASHBOARD_SEARCH_DEBOUNCE_MS", "0")
    monkeypatch.setenv("DASHBOARD_PAGE_SIZE", "50")
    monkeypatch.setenv("DASHBOARD_WEEK_START", "Monday")
    monkeypatch.setenv("DASHBOARD_LOG_LEVEL", "debug")

    api = config.get_api_settings()
    settings = config.get_dashboard_settings()

    assert api.base_url == "https://dairy.example.com/api"
    assert api.username == "admin"
    assert api.timeout_s == 12.5
    assert settings.search_debounce_ms == 0
    assert settings.page_size == 50
    assert settings.first_weekday == calendar.MONDAY
    assert settings.log_level == "DEBUG"


def test_frozen_build_uses_shorter_timeout(monkeypatch):
    monkeypatch.setattr(config, "is_frozen_build", lambda: True)
    assert config.get_api_settings().timeout_s == 10.0


@pytest.mark.parametrize(
    "name, value",
    [
        ("DASHBOARD_PAGE_SIZE", "15"),
        ("DASHBOARD_PAGE_SIZE", "ten"),
        ("DASHBOARD_SEARCH_DEBOUNCE_MS", "-1"),
        ("DASHBOARD_WEEK_START", "wednesday"),
        ("DASHBOARD_SOURCE_TIMEOUT_S", "0"),
    ],
)
def test_invalid_dashboard_settings(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        config.get_dashboard_settings()


def test_invalid_api_timeout(monkeypatch):
    monkeypatch.setenv("DASHBOARD_API_TIMEOUT_S", "-3")
    with pytest.raises(ValueError, match="DASHBOARD_API_TIMEOUT_S"):
        config.get_api_settings()


def test_configure_logging_attaches_one_handler():
    logger = config.configure_logging("debug")
    config.configure_logging("warning")

    handlers = [h for h in logger.handlers if getattr(h, "_dairy_dashboard", False)]
    assert len(handlers) == 1
    assert logger.level == logging.WARNING
