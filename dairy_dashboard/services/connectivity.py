from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "DairyDashboard/1.0"


class ConnectivityError(RuntimeError):
    """Raised when the dashboard cannot reach the backend API."""


def ensure_online_connectivity(base_url: str, *, timeout: float = 3.0) -> int:
    """Probe the backend before the window opens and return the HTTP status it answered with.

    Any HTTP answer counts as reachable, including 4xx and 5xx; only transport
    failures are fatal.
    """
    target = base_url.strip() if base_url else ""
    if not target:
        raise ConnectivityError("Backend endpoint is not configured. Set DASHBOARD_API_BASE_URL.")

    session = requests.Session()
    session.headers.setdefault("User-Agent", USER_AGENT)
    response: Optional[requests.Response] = None
    try:
        try:
            response = session.get(target, timeout=timeout, allow_redirects=True, stream=True)
        except requests.RequestException as exc:
            logger.error("Backend %s is unreachable: %s", target, exc)
            raise ConnectivityError(
                f"Could not connect to the dashboard backend at {target}. "
                "Check your network access and try again."
            ) from exc
        logger.info("Backend %s answered with HTTP %s", target, response.status_code)
        return response.status_code
    finally:
        if response is not None:
            response.close()
        session.close()
