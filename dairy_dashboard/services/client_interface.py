from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional


class DashboardClientInterface(ABC):
    """Abstract interface for the backend calls the dashboard consumes."""

    @abstractmethod
    def list_customers(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """List customers, optionally filtered, sorted and paginated."""
        pass

    @abstractmethod
    def fetch_invoice_dashboard(self) -> Dict[str, Any]:
        """Fetch the invoice summary (total amount and total due)."""
        pass

    @abstractmethod
    def fetch_stock_summary(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """Fetch stock totals for the given date range."""
        pass

    @abstractmethod
    def fetch_records(
        self,
        start_date: date,
        end_date: date,
        *,
        page: int = 1,
        limit: int = 1000,
    ) -> Dict[str, Any]:
        """Fetch delivery records for the given date range."""
        pass

    @abstractmethod
    def fetch_quantity_updates(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """Fetch quantity-update requests for the given date range."""
        pass

    @abstractmethod
    def accept_quantity_update(self, request_id: str, last_updated: Any) -> Dict[str, Any]:
        """Accept a pending quantity-update request."""
        pass

    @abstractmethod
    def reject_quantity_update(self, request_id: str, reason: str) -> Dict[str, Any]:
        """Reject a pending quantity-update request with a reason."""
        pass

    @abstractmethod
    def delete_customer(self, customer_id: str) -> Dict[str, Any]:
        """Deactivate a customer."""
        pass

    @abstractmethod
    def fetch_milk_types(self) -> List[Dict[str, Any]]:
        """Fetch the milk types used as the first customer filter."""
        pass

    @abstractmethod
    def fetch_subcategories(self, milk_type_id: str) -> List[Dict[str, Any]]:
        """Fetch the subcategories that belong to a milk type."""
        pass
