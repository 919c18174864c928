import logging
import time
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import jwt
import requests

from dairy_dashboard.config import (
    DashboardAPISettings,
    get_api_settings,
    is_frozen_build,
)
from dairy_dashboard.services.client_interface import DashboardClientInterface

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "No response received from server. Please check your connection."


class DashboardAPIError(RuntimeError):
    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if message:
            return str(message)
    return "Server error occurred"


def _retry_after_seconds(value: Optional[str], default: float) -> float:
    """Seconds to wait from a Retry-After header given as seconds or as an HTTP date."""
    if not value:
        return default
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        moment = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max(0.0, (moment - datetime.now(timezone.utc)).total_seconds())

class DashboardAPIClient(DashboardClientInterface):
    def __init__(self, settings: Optional[DashboardAPISettings] = None) -> None:
        self.settings = settings or get_api_settings()
        self.session = requests.Session()
        self._token = ""
        self._token_exp = 0.0
        if self.settings.token:
            self._set_token(self.settings.token)

    @property
    def _has_credentials(self) -> bool:
        return bool(self.settings.username and self.settings.password)

    def _set_token(self, token: str) -> None:
        self._token = token
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            claims = {}
        exp = claims.get("exp")
        self._token_exp = float(exp) if isinstance(exp, (int, float)) else float("inf")

    def _is_token_expired(self) -> bool:
        return not self._token or time.time() >= self._token_exp

    def _authenticate(self) -> None:
        url = f"{self.settings.base_url}/auth/login"
        data = {"username": self.settings.username, "password": self.settings.password}
        try:
            response = self.session.post(url, json=data, timeout=self.settings.timeout_s)
        except requests.RequestException as exc:
            self._token = ""
            self._token_exp = 0.0
            raise DashboardAPIError(NO_RESPONSE_MESSAGE) from exc
        if response.status_code >= 400:
            self._token = ""
            self._token_exp = 0.0
            raise DashboardAPIError(f"Login failed: {_error_message(response)}", status=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DashboardAPIError("Login response is not JSON") from exc
        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            self._token = ""
            self._token_exp = 0.0
            raise DashboardAPIError("Login response did not include a token")
        self._set_token(token)
        logger.info("Authenticated against %s", self.settings.base_url)

    def _request(
        self,
        method,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.settings.base_url}/{path.lstrip('/')}"
        frozen = is_frozen_build()
        delay = 0.5 if frozen else 1.0
        max_attempts = 2 if frozen else 5
        for _ in range(max_attempts):
            if self._has_credentials and self._is_token_expired():
                self._authenticate()
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            try:
                resp = method(url, params=params, json=json, headers=headers, timeout=self.settings.timeout_s)
            except requests.Timeout:
                logger.debug("Timeout on %s, retrying in %.1fs", url, delay)
                time.sleep(delay)
                delay = min(delay * 2, 4 if frozen else 16)
                continue
            except requests.RequestException as exc:
                raise DashboardAPIError(NO_RESPONSE_MESSAGE) from exc

            if resp.status_code == 401 and self._has_credentials:
                self._token = ""
                self._token_exp = 0.0
                continue
            if resp.status_code == 429:
                wait_s = _retry_after_seconds(resp.headers.get("Retry-After"), delay)
                time.sleep(wait_s)
                delay = min(delay * 2, 4 if frozen else 16)
                continue

            if resp.status_code >= 400:
                raise DashboardAPIError(_error_message(resp), status=resp.status_code)

            if not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError as exc:
                raise DashboardAPIError("Response is not JSON", status=resp.status_code) from exc

        raise DashboardAPIError(f"Failed request after retries: {url}")

    def list_customers(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request(self.session.get, "customers", params=dict(params or {}))

    def fetch_invoice_dashboard(self) -> Dict[str, Any]:
        return self._request(self.session.get, "invoices/dashboard")

    def fetch_stock_summary(self, start_date: date, end_date: date) -> Dict[str, Any]:
        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        return self._request(self.session.get, "stock/summary", params=params)

    def fetch_records(
        self,
        start_date: date,
        end_date: date,
        *,
        page: int = 1,
        limit: int = 1000,
    ) -> Dict[str, Any]:
        params = {
            "page": page,
            "limit": limit,
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
        }
        return self._request(self.session.get, "records", params=params)

    def fetch_quantity_updates(self, start_date: date, end_date: date) -> Dict[str, Any]:
        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        return self._request(self.session.get, "updates/quantity", params=params)

    def accept_quantity_update(self, request_id: str, last_updated: Any) -> Dict[str, Any]:
        body = {"id": request_id, "lastUpdated": last_updated}
        return self._request(self.session.patch, "updates/quantity/accept", json=body)

    def reject_quantity_update(self, request_id: str, reason: str) -> Dict[str, Any]:
        return self._request(
            self.session.patch,
            f"updates/quantity/{request_id}/reject",
            json={"reason": reason},
        )

    def delete_customer(self, customer_id: str) -> Dict[str, Any]:
        return self._request(self.session.delete, f"customers/{customer_id}")

    def fetch_milk_types(self) -> List[Dict[str, Any]]:
        payload = self._request(self.session.get, "categories")
        return [item for item in payload if isinstance(item, dict)] if isinstance(payload, list) else []

    def fetch_subcategories(self, milk_type_id: str) -> List[Dict[str, Any]]:
        payload = self._request(self.session.get, "subcategories", params={"category": milk_type_id})
        return [item for item in payload if isinstance(item, dict)] if isinstance(payload, list) else []
