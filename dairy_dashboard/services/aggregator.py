from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from dairy_dashboard.services.client_interface import DashboardClientInterface
from dairy_dashboard.services.models import QuantityUpdateRequest, TimeWindow, to_number

logger = logging.getLogger(__name__)

Number = Union[int, float]

SOURCES = ("customers", "invoices", "stock", "records", "quantityUpdates")


def _nested_number(payload: Dict[str, Any], section: str, key: str) -> Number:
    inner = payload.get(section) if isinstance(payload, dict) else None
    if not isinstance(inner, dict):
        return 0
    value = inner.get(key)
    if not value:
        return 0
    return to_number(value)


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the dashboard shows for one time window.

    Any source that failed is present with its empty default; ``errors`` maps
    the failed source names to what went wrong.
    """

    window: TimeWindow
    invoices: Dict[str, Any] = field(default_factory=dict)
    stock: Dict[str, Any] = field(default_factory=dict)
    customers: List[Dict[str, Any]] = field(default_factory=list)
    records: List[Dict[str, Any]] = field(default_factory=list)
    quantity_updates: List[QuantityUpdateRequest] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def total_milk_stock(self) -> Number:
        return _nested_number(self.stock, "totals", "stockIn")

    @property
    def remaining_milk_stock(self) -> Number:
        return _nested_number(self.stock, "totals", "currentStock")

    @property
    def total_revenue(self) -> Number:
        return _nested_number(self.invoices, "summary", "totalAmount")

    @property
    def pending_payments(self) -> Number:
        return _nested_number(self.invoices, "summary", "totalDue")

    @property
    def active_customers(self) -> int:
        return sum(1 for customer in self.customers if customer.get("isActive"))

    @property
    def pending_requests(self) -> List[QuantityUpdateRequest]:
        return [request for request in self.quantity_updates if request.is_pending]


def _dict_payload(payload: Any) -> Dict[str, Any]:
    return payload if isinstance(payload, dict) else {}


def _discard_result(worker: asyncio.Future) -> None:
    if not worker.cancelled() and worker.exception() is not None:
        logger.debug("Late failure from a timed-out source: %s", worker.exception())


def _list_field(payload: Any, key: str) -> List[Dict[str, Any]]:
    values = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(values, list):
        return []
    return [item for item in values if isinstance(item, dict)]


class MetricAggregator:
    def __init__(
        self,
        client: DashboardClientInterface,
        *,
        source_timeout_s: float = 20.0,
        records_limit: int = 1000,
        on_snapshot: Optional[Callable[[DashboardSnapshot], None]] = None,
    ) -> None:
        self._client = client
        self._source_timeout_s = source_timeout_s
        self._records_limit = records_limit
        self._on_snapshot = on_snapshot
        self._generation = 0
        # Worker threads left running after their source timed out, by source.
        self._abandoned: Dict[str, asyncio.Future] = {}
        self.window: Optional[TimeWindow] = None
        self.snapshot: Optional[DashboardSnapshot] = None

    async def _fetch(self, source: str, call: Callable[..., Any], *args: Any, **kwargs: Any) -> Tuple[Any, Optional[str]]:
        """Run one blocking source call, bounded by the source timeout.

        A timed-out call cannot be interrupted: its thread keeps running until
        the HTTP client gives up on its own. While it does, the source is
        reported unavailable instead of starting another thread, so a hung
        backend ties up at most one worker per source.
        """
        abandoned = self._abandoned.get(source)
        if abandoned is not None:
            if not abandoned.done():
                message = "previous request has not finished yet"
                logger.warning("Dashboard source %s unavailable: %s", source, message)
                return None, message
            del self._abandoned[source]

        worker = asyncio.ensure_future(asyncio.to_thread(call, *args, **kwargs))
        try:
            payload = await asyncio.wait_for(asyncio.shield(worker), timeout=self._source_timeout_s)
        except asyncio.TimeoutError:
            self._abandoned[source] = worker
            worker.add_done_callback(_discard_result)
            message = f"timed out after {self._source_timeout_s:g}s"
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
        else:
            return payload, None
        logger.warning("Dashboard source %s unavailable: %s", source, message)
        return None, message

    async def aggregate(self, window: TimeWindow) -> DashboardSnapshot:
        """Fetch every source for ``window`` and combine whatever succeeded."""
        start, end = window.start_date, window.end_date
        results = await asyncio.gather(
            self._fetch("customers", self._client.list_customers),
            self._fetch("invoices", self._client.fetch_invoice_dashboard),
            self._fetch("stock", self._client.fetch_stock_summary, start, end),
            self._fetch("records", self._client.fetch_records, start, end, page=1, limit=self._records_limit),
            self._fetch("quantityUpdates", self._client.fetch_quantity_updates, start, end),
        )
        customers, invoices, stock, records, updates = [payload for payload, _ in results]
        errors = {
            source: message
            for source, (_, message) in zip(SOURCES, results)
            if message is not None
        }

        return DashboardSnapshot(
            window=window,
            invoices=_dict_payload(invoices),
            stock=_dict_payload(stock),
            customers=_list_field(customers, "customers"),
            records=_list_field(records, "data"),
            quantity_updates=[
                QuantityUpdateRequest.from_payload(item) for item in _list_field(updates, "data")
            ],
            errors=errors,
        )

    async def refresh(self, window: TimeWindow) -> Optional[DashboardSnapshot]:
        """Aggregate ``window`` and publish it unless a newer refresh was issued meanwhile."""
        self._generation += 1
        generation = self._generation
        self.window = window
        snapshot = await self.aggregate(window)
        if generation != self._generation:
            logger.debug("Dropping snapshot for %s; a newer refresh is in flight", window.label)
            return None
        self.snapshot = snapshot
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)
        return snapshot

    async def refresh_current(self) -> Optional[DashboardSnapshot]:
        if self.window is None:
            return None
        return await self.refresh(self.window)
