from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class WindowMode(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "thisWeek"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
    CUSTOM = "custom"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class StatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class TimeWindow:
    mode: WindowMode
    start_date: date
    end_date: date
    label: str

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before or equal to end date.")

    def as_params(self) -> Dict[str, str]:
        return {
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }

    def display_range(self) -> str:
        if self.start_date == self.end_date:
            return self.start_date.strftime("%d %b, %Y")
        return f"{self.start_date.strftime('%d %b')} - {self.end_date.strftime('%d %b, %Y')}"


def to_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        return int(text)
    except (TypeError, ValueError):
        try:
            return float(str(value).strip())
        except (TypeError, ValueError):
            return 0


def _ref_name(value: Any, key: str = "name") -> str:
    if isinstance(value, dict):
        return str(value.get(key) or "")
    if value is None:
        return ""
    return str(value)


def _parse_day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None


@dataclass(frozen=True)
class QuantityUpdateRequest:
    id: str
    customer_no: str = ""
    customer_name: str = ""
    date: Optional[date] = None
    time_of_day: str = "morning"
    milk_type: str = ""
    subcategory: str = ""
    old_quantity: Union[int, float] = 0
    new_quantity: Union[int, float] = 0
    reason: str = ""
    status: ReviewStatus = ReviewStatus.PENDING
    rejection_reason: Optional[str] = None
    last_updated: Any = None

    @property
    def difference(self) -> Union[int, float]:
        return self.new_quantity - self.old_quantity

    @property
    def is_pending(self) -> bool:
        return self.status is ReviewStatus.PENDING

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "QuantityUpdateRequest":
        """Build a request from a backend record, substituting defaults for absent fields.

        The backend reports acceptance either through ``status`` or through the
        legacy ``isAccept`` flag. When it sends no ``lastUpdated`` token the new
        quantity is forwarded in its place, which is what the accept endpoint
        has always received.
        """
        raw_status = str(payload.get("status") or "").strip().lower()
        if payload.get("isAccept") or raw_status == ReviewStatus.ACCEPTED.value:
            status = ReviewStatus.ACCEPTED
        elif raw_status == ReviewStatus.REJECTED.value:
            status = ReviewStatus.REJECTED
        else:
            status = ReviewStatus.PENDING

        customer = payload.get("customer")
        new_quantity = to_number(payload.get("newQuantity"))
        time_of_day = str(payload.get("time") or payload.get("updateType") or "morning").lower()
        rejection_reason = payload.get("rejectionReason")
        last_updated = payload.get("lastUpdated")
        if last_updated is None:
            last_updated = new_quantity

        return cls(
            id=str(payload.get("_id") or payload.get("id") or ""),
            customer_no=_ref_name(customer, "customerNo"),
            customer_name=_ref_name(customer, "name"),
            date=_parse_day(payload.get("date")),
            time_of_day=time_of_day,
            milk_type=_ref_name(payload.get("milkType")),
            subcategory=_ref_name(payload.get("subcategory")),
            old_quantity=to_number(payload.get("oldQuantity")),
            new_quantity=new_quantity,
            reason=str(payload.get("reason") or ""),
            status=status,
            rejection_reason=str(rejection_reason) if rejection_reason else None,
            last_updated=last_updated,
        )


@dataclass(frozen=True)
class CustomerQuery:
    page: int = 1
    page_size: int = 10
    search: str = ""
    sort_field: str = "customerNo"
    sort_order: SortOrder = SortOrder.ASC
    milk_type: str = ""
    subcategory: str = ""
    status: StatusFilter = StatusFilter.ALL

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "page": self.page,
            "limit": self.page_size,
            "search": self.search,
            "sortField": self.sort_field,
            "sortOrder": self.sort_order.value,
        }
        if self.milk_type:
            params["milkType"] = self.milk_type
        if self.milk_type and self.subcategory:
            params["subcategory"] = self.subcategory
        if self.status is not StatusFilter.ALL:
            params["isActive"] = "true" if self.status is StatusFilter.ACTIVE else "false"
        return params


@dataclass(frozen=True)
class QueryResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    total_items: int = 0
    total_pages: int = 0
    page: int = 1

    @classmethod
    def from_payload(cls, payload: Any, *, page: int) -> "QueryResult":
        if not isinstance(payload, dict) or not isinstance(payload.get("customers"), list):
            return cls(page=page)

        def _count(value: Any) -> int:
            try:
                return max(0, int(value))
            except (TypeError, ValueError):
                return 0

        items = [item for item in payload["customers"] if isinstance(item, dict)]
        return cls(
            items=items,
            total_items=_count(payload.get("totalCustomers")),
            total_pages=_count(payload.get("totalPages")),
            page=page,
        )


def customer_id(customer: Dict[str, Any]) -> str:
    return str(customer.get("_id") or customer.get("id") or "")
