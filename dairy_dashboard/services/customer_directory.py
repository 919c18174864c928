from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Coroutine, Dict, List, Optional, Set, Union

from dairy_dashboard.config import PAGE_SIZE_OPTIONS
from dairy_dashboard.services.client_interface import DashboardClientInterface
from dairy_dashboard.services.models import (
    CustomerQuery,
    QueryResult,
    SortOrder,
    StatusFilter,
    customer_id,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = ("customerNo", "name", "phoneNo", "isActive")

PageEntry = Union[int, str]


class CustomerDeleteError(RuntimeError):
    pass


class BulkDeleteError(CustomerDeleteError):
    def __init__(self, message: str, *, attempted: int, failed: int) -> None:
        super().__init__(message)
        self.attempted = attempted
        self.failed = failed


def page_window(current: int, total: int, show: int = 5) -> List[PageEntry]:
    """Page numbers to offer in a pager, with ``"..."`` marking skipped runs."""
    if total <= 0:
        return []
    half = show // 2
    start = max(1, current - half)
    end = min(total, current + half)
    if current <= half:
        end = min(total, show)
    if current > total - half:
        start = max(1, total - show + 1)

    pages: List[PageEntry] = []
    if start > 1:
        pages.append(1)
        if start > 2:
            pages.append("...")
    pages.extend(range(start, end + 1))
    if end < total:
        if end < total - 1:
            pages.append("...")
        pages.append(total)
    return pages


def _error_text(exc: BaseException, fallback: str) -> str:
    return str(exc).strip() or fallback


class CustomerDirectoryQueryController:
    """Turns directory interactions into customer queries and applies their results.

    Every public method must be called from the event loop that owns the
    controller. Each issued query gets a sequence number and only the result of
    the latest one is applied; older results are dropped when they arrive.
    """

    def __init__(
        self,
        client: DashboardClientInterface,
        *,
        debounce_s: float = 0.3,
        page_size: int = 10,
        on_result: Optional[Callable[[QueryResult], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_loading: Optional[Callable[[bool], None]] = None,
        on_options: Optional[Callable[[List[Dict[str, Any]], List[Dict[str, Any]]], None]] = None,
    ) -> None:
        if page_size not in PAGE_SIZE_OPTIONS:
            raise ValueError(f"Unsupported page size: {page_size}")
        self._client = client
        self._debounce_s = debounce_s
        self._on_result = on_result
        self._on_error = on_error
        self._on_loading = on_loading
        self._on_options = on_options

        self.query = CustomerQuery(page_size=page_size)
        self.search_text = ""
        self.result = QueryResult()
        self.error: Optional[str] = None
        self.loading = False
        self.milk_types: List[Dict[str, Any]] = []
        self.subcategories: List[Dict[str, Any]] = []
        self.selection_mode = False
        self.selected: Set[str] = set()

        self._sequence = 0
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    async def start(self) -> None:
        self._issue()
        await self.load_milk_types()

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # search

    def set_search_text(self, text: str) -> None:
        self.search_text = text or ""
        self.error = None
        self._cancel_debounce()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self._debounce_s, self._on_search_quiet)

    def clear_search(self) -> None:
        self._cancel_debounce()
        self.search_text = ""
        self._update(search="", page=1)

    def _on_search_quiet(self) -> None:
        self._debounce_handle = None
        self._update(search=self.search_text, page=1)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    @property
    def search_pending(self) -> bool:
        return self._debounce_handle is not None

    # filters

    def set_milk_type(self, milk_type: Optional[str]) -> None:
        milk_type = milk_type or ""
        if milk_type == self.query.milk_type:
            return
        self.subcategories = []
        self._update(milk_type=milk_type, subcategory="", page=1)
        if milk_type:
            self._spawn(self._load_subcategories(milk_type))
        else:
            self._notify_options()

    def set_subcategory(self, subcategory: Optional[str]) -> None:
        subcategory = subcategory or ""
        if subcategory and not self.query.milk_type:
            raise ValueError("Select a milk type before choosing a subcategory.")
        if subcategory == self.query.subcategory:
            return
        self._update(subcategory=subcategory, page=1)

    def set_status_filter(self, status: Union[StatusFilter, str]) -> None:
        status = StatusFilter(status)
        if status is self.query.status:
            return
        self._update(status=status, page=1)

    def reset_filters(self) -> None:
        self._cancel_debounce()
        self.search_text = ""
        self.subcategories = []
        self._notify_options()
        self._update(search="", milk_type="", subcategory="", status=StatusFilter.ALL, page=1)

    # sorting and paging

    def toggle_sort(self, field: str) -> None:
        if field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {field}")
        if field == self.query.sort_field:
            order = SortOrder.DESC if self.query.sort_order is SortOrder.ASC else SortOrder.ASC
            self._update(sort_order=order, page=1)
        else:
            self._update(sort_field=field, sort_order=SortOrder.ASC, page=1)

    def set_page(self, page: int) -> None:
        if page < 1:
            raise ValueError("Page numbers start at 1.")
        if self.result.total_pages and page > self.result.total_pages:
            raise ValueError(f"Page {page} is past the last page ({self.result.total_pages}).")
        if page == self.query.page:
            return
        self._update(page=page)

    def set_page_size(self, page_size: int) -> None:
        if page_size not in PAGE_SIZE_OPTIONS:
            raise ValueError(f"Unsupported page size: {page_size}")
        if page_size == self.query.page_size:
            return
        self._update(page_size=page_size, page=1)

    def refresh(self) -> asyncio.Task:
        return self._issue()

    # fetching

    def _update(self, **changes: Any) -> asyncio.Task:
        self.error = None
        self.query = replace(self.query, **changes)
        return self._issue()

    def _issue(self) -> asyncio.Task:
        self._sequence += 1
        self._set_loading(True)
        return self._spawn(self._fetch(self._sequence, self.query))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, sequence: int, query: CustomerQuery) -> None:
        try:
            payload = await asyncio.to_thread(self._client.list_customers, query.to_params())
        except Exception as exc:
            if sequence != self._sequence:
                logger.debug("Ignoring failure of superseded customer query #%s", sequence)
                return
            message = _error_text(exc, "Failed to fetch customers")
            logger.error("Customer query #%s failed: %s", sequence, message)
            self._apply(QueryResult(page=query.page), message)
            return

        if sequence != self._sequence:
            logger.debug("Discarding stale customer result #%s (latest #%s)", sequence, self._sequence)
            return
        self._apply(QueryResult.from_payload(payload, page=query.page), None)

    def _apply(self, result: QueryResult, error: Optional[str]) -> None:
        self.result = result
        self.error = error
        self._set_loading(False)
        if error is not None:
            if self._on_error is not None:
                self._on_error(error)
        if self._on_result is not None:
            self._on_result(result)

    def _set_loading(self, loading: bool) -> None:
        self.loading = loading
        if self._on_loading is not None:
            self._on_loading(loading)

    def _surface_error(self, message: str) -> None:
        self.error = self.error or message
        if self._on_error is not None:
            self._on_error(message)

    # filter options

    async def load_milk_types(self) -> None:
        try:
            milk_types = await asyncio.to_thread(self._client.fetch_milk_types)
        except Exception as exc:
            logger.error("Failed to fetch milk types: %s", exc)
            self.milk_types = []
            self._surface_error(_error_text(exc, "Failed to fetch milk types"))
        else:
            self.milk_types = list(milk_types or [])
        self._notify_options()

    async def _load_subcategories(self, milk_type: str) -> None:
        try:
            subcategories = await asyncio.to_thread(self._client.fetch_subcategories, milk_type)
        except Exception as exc:
            if milk_type != self.query.milk_type:
                return
            logger.error("Failed to fetch subcategories for %s: %s", milk_type, exc)
            self.subcategories = []
            self._surface_error(_error_text(exc, "Failed to fetch subcategories"))
        else:
            if milk_type != self.query.milk_type:
                logger.debug("Discarding subcategories for deselected milk type %s", milk_type)
                return
            self.subcategories = list(subcategories or [])
        self._notify_options()

    def _notify_options(self) -> None:
        if self._on_options is not None:
            self._on_options(self.milk_types, self.subcategories)

    # selection

    def set_selection_mode(self, enabled: bool) -> None:
        self.selection_mode = bool(enabled)
        if not self.selection_mode:
            self.selected.clear()

    def toggle_selection_mode(self) -> None:
        self.set_selection_mode(not self.selection_mode)

    def toggle_selected(self, customer: str) -> bool:
        if not self.selection_mode:
            raise ValueError("Turn on selection mode to select customers.")
        if customer in self.selected:
            self.selected.discard(customer)
            return False
        self.selected.add(customer)
        return True

    def select_all(self, checked: bool = True) -> None:
        if not self.selection_mode:
            raise ValueError("Turn on selection mode to select customers.")
        if checked:
            self.selected = {cid for cid in (customer_id(item) for item in self.result.items) if cid}
        else:
            self.selected.clear()

    # deletion

    async def delete_customer(self, customer: str) -> None:
        self.error = None
        try:
            await asyncio.to_thread(self._client.delete_customer, customer)
        except Exception as exc:
            message = _error_text(exc, "Failed to deactivate customer")
            logger.error("Failed to deactivate customer %s: %s", customer, message)
            self._surface_error(message)
            raise CustomerDeleteError(message) from exc
        self.selected.discard(customer)
        self._issue()

    async def bulk_delete(self) -> int:
        """Deactivate every selected customer, one call per id.

        Success or failure is reported for the batch as a whole; when some
        calls fail the caller is not told which ids went through.
        """
        ids = sorted(self.selected)
        if not ids:
            return 0
        self.error = None
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self._client.delete_customer, cid) for cid in ids),
            return_exceptions=True,
        )
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        for cid, outcome in zip(ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Failed to deactivate customer %s: %s", cid, outcome)

        # Some deletes may have gone through even when others failed.
        self._issue()
        if failures:
            message = _error_text(failures[0], "Failed to deactivate customers")
            self._surface_error(message)
            raise BulkDeleteError(message, attempted=len(ids), failed=len(failures))
        self.selected.clear()
        logger.info("%s customers deactivated", len(ids))
        return len(ids)
