from typing import Any, Dict, List, Union

from dairy_dashboard.services.aggregator import DashboardSnapshot

Number = Union[int, float]


def format_number(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def format_difference(value: Number) -> str:
    text = format_number(value)
    return f"+{text}" if value > 0 else text


def build_summary(snapshot: DashboardSnapshot, *, currency: str = "₹") -> Dict[str, object]:
    rows: List[Dict[str, Any]] = []
    for request in snapshot.quantity_updates:
        rows.append({
            "id": request.id,
            "date": request.date.strftime("%d %b %Y") if request.date else "",
            "customer_no": request.customer_no,
            "customer_name": request.customer_name,
            "time": request.time_of_day.capitalize(),
            "milk_type": request.milk_type,
            "subcategory": request.subcategory,
            "old_quantity": format_number(request.old_quantity),
            "new_quantity": format_number(request.new_quantity),
            "difference": request.difference,
            "difference_text": format_difference(request.difference),
            "reason": request.reason,
            "status": request.status.value,
            "rejection_reason": request.rejection_reason or "",
            "actionable": request.is_pending,
        })

    return {
        "active_customers": snapshot.active_customers,
        "total_stock": f"{format_number(snapshot.total_milk_stock)}L",
        "remaining_stock": f"{format_number(snapshot.remaining_milk_stock)}L",
        "total_revenue": f"{currency}{format_number(snapshot.total_revenue)}",
        "pending_payments": f"{currency}{format_number(snapshot.pending_payments)}",
        "window_label": snapshot.window.label,
        "window_range": snapshot.window.display_range(),
        "quantity_updates": rows,
        "failed_sources": sorted(snapshot.errors),
    }
