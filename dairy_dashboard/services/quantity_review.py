from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, Set

from dairy_dashboard.services.client_interface import DashboardClientInterface
from dairy_dashboard.services.models import QuantityUpdateRequest

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[Any]]


class ReviewError(RuntimeError):
    pass


class RequestNotPendingError(ReviewError):
    pass


class RejectionReasonRequiredError(ReviewError, ValueError):
    pass


class ReviewInProgressError(ReviewError):
    pass


class NoRejectionDraftError(ReviewError):
    pass


class ReviewActionFailedError(ReviewError):
    pass


@dataclass(frozen=True)
class RejectionDraft:
    request: QuantityUpdateRequest
    reason: str = ""


class QuantityUpdateReviewEngine:
    """Accepts or rejects pending quantity-update requests.

    The engine never changes a request locally. After every successful write it
    awaits ``refresh`` so the new status comes from the backend.
    """

    def __init__(
        self,
        client: DashboardClientInterface,
        *,
        refresh: Optional[RefreshCallback] = None,
    ) -> None:
        self._client = client
        self._refresh = refresh
        self._in_flight: Set[str] = set()
        # Ids whose accept or reject the backend has acknowledged.
        self._settled: Set[str] = set()
        self._draft: Optional[RejectionDraft] = None

    @property
    def draft(self) -> Optional[RejectionDraft]:
        return self._draft

    def is_busy(self, request: QuantityUpdateRequest) -> bool:
        return request.id in self._in_flight

    def is_settled(self, request: QuantityUpdateRequest) -> bool:
        return request.id in self._settled

    def _ensure_pending(self, request: QuantityUpdateRequest) -> None:
        if not request.is_pending:
            raise RequestNotPendingError(
                f"Request {request.id} is already {request.status.value}; only pending requests can be reviewed."
            )
        if request.id in self._settled:
            raise RequestNotPendingError(f"Request {request.id} has already been reviewed.")

    async def accept(self, request: QuantityUpdateRequest) -> None:
        self._ensure_pending(request)
        await self._perform(
            request,
            "accept",
            self._client.accept_quantity_update,
            request.id,
            request.last_updated,
        )

    async def reject(self, request: QuantityUpdateRequest, reason: Optional[str]) -> None:
        self._ensure_pending(request)
        cleaned = (reason or "").strip()
        if not cleaned:
            raise RejectionReasonRequiredError("Please enter a reason for rejection.")
        await self._perform(
            request,
            "reject",
            self._client.reject_quantity_update,
            request.id,
            cleaned,
        )

    def begin_rejection(self, request: QuantityUpdateRequest) -> RejectionDraft:
        """Open the reason entry for ``request``, discarding any other unsent reason."""
        self._ensure_pending(request)
        self._draft = RejectionDraft(request=request)
        return self._draft

    def update_rejection_reason(self, reason: str) -> RejectionDraft:
        if self._draft is None:
            raise NoRejectionDraftError("No rejection is being entered.")
        self._draft = replace(self._draft, reason=reason)
        return self._draft

    def cancel_rejection(self) -> None:
        self._draft = None

    async def submit_rejection(self) -> None:
        draft = self._draft
        if draft is None:
            raise NoRejectionDraftError("No rejection is being entered.")
        await self.reject(draft.request, draft.reason)
        # Another rejection may have been started while this one was in flight.
        if self._draft is not None and self._draft.request.id == draft.request.id:
            self._draft = None

    async def _perform(
        self,
        request: QuantityUpdateRequest,
        action: str,
        call: Callable[..., Any],
        *args: Any,
    ) -> None:
        if request.id in self._in_flight:
            raise ReviewInProgressError(f"Request {request.id} is already being processed.")
        self._in_flight.add(request.id)
        try:
            await asyncio.to_thread(call, *args)
        except Exception as exc:
            logger.error("Failed to %s quantity update %s: %s", action, request.id, exc)
            raise ReviewActionFailedError(f"Failed to {action} the order. {exc}".strip()) from exc
        else:
            # The caller may still hold a pending copy until the refresh lands.
            self._settled.add(request.id)
        finally:
            self._in_flight.discard(request.id)

        logger.info("Quantity update %s: %sed", request.id, action)
        if self._refresh is not None:
            await self._refresh()
