import calendar
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent
load_dotenv(ROOT.parent / ".env")
if getattr(sys, "frozen", False):
    load_dotenv(Path(sys.executable).resolve().parent / ".env")

DEFAULT_API_BASE_URL = "http://localhost:8000/api"
PAGE_SIZE_OPTIONS = (10, 20, 50, 100)

WEEKDAY_NAMES = {
    "sunday": calendar.SUNDAY,
    "monday": calendar.MONDAY,
}


@dataclass
class DashboardAPISettings:
    base_url: str
    token: str = ""
    username: str = ""
    password: str = ""
    timeout_s: float = 30.0


@dataclass
class DashboardSettings:
    search_debounce_ms: int = 300
    page_size: int = 10
    first_weekday: int = calendar.SUNDAY
    source_timeout_s: float = 20.0
    currency: str = "₹"
    log_level: str = "INFO"

    @property
    def search_debounce_s(self) -> float:
        return self.search_debounce_ms / 1000.0


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, "").strip() or default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


def get_api_settings() -> DashboardAPISettings:
    base_url = (os.getenv("DASHBOARD_API_BASE_URL", "").strip() or DEFAULT_API_BASE_URL).rstrip("/")
    default_timeout = "10" if is_frozen_build() else "30"
    timeout_s = _env_number("DASHBOARD_API_TIMEOUT_S", default_timeout, float)
    if timeout_s <= 0:
        raise ValueError("DASHBOARD_API_TIMEOUT_S must be positive.")
    return DashboardAPISettings(
        base_url=base_url,
        token=os.getenv("DASHBOARD_API_TOKEN", "").strip(),
        username=os.getenv("DASHBOARD_API_USERNAME", "").strip(),
        password=os.getenv("DASHBOARD_API_PASSWORD", ""),
        timeout_s=timeout_s,
    )


def get_dashboard_settings() -> DashboardSettings:
    debounce_ms = _env_number("DASHBOARD_SEARCH_DEBOUNCE_MS", "300", int)
    if debounce_ms < 0:
        raise ValueError("DASHBOARD_SEARCH_DEBOUNCE_MS cannot be negative.")

    page_size = _env_number("DASHBOARD_PAGE_SIZE", "10", int)
    if page_size not in PAGE_SIZE_OPTIONS:
        options = ", ".join(str(value) for value in PAGE_SIZE_OPTIONS)
        raise ValueError(f"DASHBOARD_PAGE_SIZE must be one of {options}.")

    week_start = os.getenv("DASHBOARD_WEEK_START", "sunday").strip().lower()
    if week_start not in WEEKDAY_NAMES:
        raise ValueError("DASHBOARD_WEEK_START must be 'sunday' or 'monday'.")

    source_timeout_s = _env_number("DASHBOARD_SOURCE_TIMEOUT_S", "20", float)
    if source_timeout_s <= 0:
        raise ValueError("DASHBOARD_SOURCE_TIMEOUT_S must be positive.")

    return DashboardSettings(
        search_debounce_ms=debounce_ms,
        page_size=page_size,
        first_weekday=WEEKDAY_NAMES[week_start],
        source_timeout_s=source_timeout_s,
        currency=os.getenv("DASHBOARD_CURRENCY", "").strip() or "₹",
        log_level=(os.getenv("DASHBOARD_LOG_LEVEL", "").strip() or "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("dairy_dashboard")
    logger.setLevel((level or "INFO").upper())
    if not any(getattr(handler, "_dairy_dashboard", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handler._dairy_dashboard = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


def is_frozen_build() -> bool:
    """True when running from a PyInstaller/standalone bundle."""
    return bool(getattr(sys, "frozen", False))
