"""Shared fakes for the dashboard core tests."""

from __future__ import annotations

import threading
import time
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

import pytest

from dairy_dashboard.services.client_interface import DashboardClientInterface


class FakeClient(DashboardClientInterface):
    """In-memory backend. ``failures`` maps a method name to the exception it raises."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self._lock = threading.Lock()
        self.failures: Dict[str, BaseException] = {}
        self.delays: Dict[str, float] = {}
        self.customers_payload: Any = {"customers": [], "totalCustomers": 0, "totalPages": 0}
        self.customers_for: Optional[Callable[[Dict[str, Any]], Any]] = None
        self.customer_delay_for: Optional[Callable[[Dict[str, Any]], float]] = None
        self.invoice_payload: Any = {"summary": {"totalAmount": 0, "totalDue": 0}}
        self.stock_payload: Any = {"totals": {"stockIn": 0, "currentStock": 0}}
        self.records_payload: Any = {"data": []}
        self.updates_payload: Any = {"data": []}
        self.milk_types: List[Dict[str, Any]] = [{"_id": "A", "name": "Cow"}, {"_id": "B", "name": "Buffalo"}]
        self.subcategories: Dict[str, List[Dict[str, Any]]] = {
            "A": [{"_id": "A1", "name": "Full cream"}],
            "B": [{"_id": "B1", "name": "Toned"}],
        }
        self.delete_failures: Dict[str, BaseException] = {}

    def _record(self, name: str, *args: Any) -> None:
        with self._lock:
            self.calls.append((name, *args))
        delay = self.delays.get(name)
        if delay:
            time.sleep(delay)
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def calls_to(self, name: str) -> List[tuple]:
        with self._lock:
            return [call for call in self.calls if call[0] == name]

    def list_customers(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = dict(params or {})
        if self.customer_delay_for is not None:
            time.sleep(self.customer_delay_for(params))
        self._record("list_customers", params)
        if self.customers_for is not None:
            return self.customers_for(params)
        return self.customers_payload

    def fetch_invoice_dashboard(self) -> Dict[str, Any]:
        self._record("fetch_invoice_dashboard")
        return self.invoice_payload

    def fetch_stock_summary(self, start_date: date, end_date: date) -> Dict[str, Any]:
        self._record("fetch_stock_summary", start_date, end_date)
        return self.stock_payload

    def fetch_records(self, start_date: date, end_date: date, *, page: int = 1, limit: int = 1000) -> Dict[str, Any]:
        self._record("fetch_records", start_date, end_date, page, limit)
        return self.records_payload

    def fetch_quantity_updates(self, start_date: date, end_date: date) -> Dict[str, Any]:
        self._record("fetch_quantity_updates", start_date, end_date)
        return self.updates_payload

    def accept_quantity_update(self, request_id: str, last_updated: Any) -> Dict[str, Any]:
        self._record("accept_quantity_update", request_id, last_updated)
        return {"success": True}

    def reject_quantity_update(self, request_id: str, reason: str) -> Dict[str, Any]:
        self._record("reject_quantity_update", request_id, reason)
        return {"success": True}

    def delete_customer(self, customer_id: str) -> Dict[str, Any]:
        self._record("delete_customer", customer_id)
        failure = self.delete_failures.get(customer_id)
        if failure is not None:
            raise failure
        return {"success": True}

    def fetch_milk_types(self) -> List[Dict[str, Any]]:
        self._record("fetch_milk_types")
        return self.milk_types

    def fetch_subcategories(self, milk_type_id: str) -> List[Dict[str, Any]]:
        self._record("fetch_subcategories", milk_type_id)
        return self.subcategories.get(milk_type_id, [])


@pytest.fixture()
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture()
def fixed_now() -> datetime:
    # Friday
    return datetime(2024, 5, 10, 9, 30)
