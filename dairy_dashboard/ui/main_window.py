from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from typing import Any, Coroutine, Dict, List, Optional, Tuple

from PySide6.QtCore import QDate, QObject, Qt, QThread, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QCheckBox,
    QComboBox,
    QDateEdit,
    QFrame,
    QHBoxLayout,
    QHeaderView,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from dairy_dashboard.config import PAGE_SIZE_OPTIONS, DashboardSettings
from dairy_dashboard.services.aggregator import DashboardSnapshot, MetricAggregator
from dairy_dashboard.services.client_interface import DashboardClientInterface
from dairy_dashboard.services.customer_directory import (
    SORT_FIELDS,
    CustomerDirectoryQueryController,
    page_window,
)
from dairy_dashboard.services.date_range import DateRangeResolver
from dairy_dashboard.services.models import QueryResult, QuantityUpdateRequest, WindowMode, customer_id
from dairy_dashboard.services.quantity_review import QuantityUpdateReviewEngine
from dairy_dashboard.services.summary import build_summary

logger = logging.getLogger(__name__)

WINDOW_OPTIONS = (
    ("Today", WindowMode.TODAY),
    ("Yesterday", WindowMode.YESTERDAY),
    ("This Week", WindowMode.THIS_WEEK),
    ("This Month", WindowMode.THIS_MONTH),
    ("Last Month", WindowMode.LAST_MONTH),
)

UPDATE_HEADERS = [
    "Date", "Customer No", "Customer Name", "Time", "Milk Type", "Subcategory",
    "Old Quantity", "New Quantity", "Difference", "Reason", "Status/Action",
]

CUSTOMER_HEADERS = ["", "Customer No", "Name", "Phone", "Milk Type / Subcategory", "Status"]
# Table column -> sort field; the selection column and the plan column are not sortable.
CUSTOMER_SORT_COLUMNS = {1: "customerNo", 2: "name", 3: "phoneNo", 5: "isActive"}


class LoopThread(QThread):
    """Runs the asyncio loop that owns every dashboard controller."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn, *args: Any) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self) -> None:
        if self.isRunning():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self.wait()


class CoreSignals(QObject):
    snapshot_ready = Signal(object)
    customers_ready = Signal(object)
    customers_error = Signal(str)
    customers_loading = Signal(bool)
    options_ready = Signal(object, object)
    action_done = Signal(str)
    action_failed = Signal(str)


class MainWindow(QMainWindow):
    def __init__(self, client: DashboardClientInterface, settings: DashboardSettings) -> None:
        super().__init__()
        self._settings = settings
        self._signals = CoreSignals()
        self._loop_thread = LoopThread(self)
        self._resolver = DateRangeResolver(first_weekday=settings.first_weekday)
        self._aggregator = MetricAggregator(
            client,
            source_timeout_s=settings.source_timeout_s,
            on_snapshot=self._signals.snapshot_ready.emit,
        )
        self._review = QuantityUpdateReviewEngine(client, refresh=self._aggregator.refresh_current)
        self._directory = CustomerDirectoryQueryController(
            client,
            debounce_s=settings.search_debounce_s,
            page_size=settings.page_size,
            on_result=self._signals.customers_ready.emit,
            on_error=self._signals.customers_error.emit,
            on_loading=self._signals.customers_loading.emit,
            on_options=self._signals.options_ready.emit,
        )
        self._requests: List[QuantityUpdateRequest] = []
        self._customer_rows: List[str] = []

        self._signals.snapshot_ready.connect(self._apply_snapshot)
        self._signals.customers_ready.connect(self._apply_customers)
        self._signals.customers_error.connect(self._show_customers_error)
        self._signals.customers_loading.connect(self._set_customers_loading)
        self._signals.options_ready.connect(self._apply_filter_options)
        self._signals.action_done.connect(self._update_status)
        self._signals.action_failed.connect(self._show_error)

        self.setWindowTitle("Dairy Dashboard")
        self.resize(1280, 760)

        self.status_label = QLabel("Ready")
        self.status_label.setAlignment(Qt.AlignCenter)

        self.tabs = QTabWidget()
        self.tabs.setDocumentMode(True)
        self.tabs.addTab(self._build_dashboard_tab(), "Dashboard")
        self.tabs.addTab(self._build_customers_tab(), "Customers")

        container = QWidget()
        layout = QVBoxLayout(container)
        layout.addWidget(self.tabs)
        layout.addWidget(self.status_label)
        self.setCentralWidget(container)

        self._loop_thread.start()

    # layout

    def _build_dashboard_tab(self) -> QWidget:
        self._window_combo = QComboBox()
        for label, mode in WINDOW_OPTIONS:
            self._window_combo.addItem(label, mode.value)
        self._window_combo.currentIndexChanged.connect(self._on_window_changed)

        self.refresh_button = QPushButton("Refresh")
        self.refresh_button.clicked.connect(self.refresh_data)

        today = QDate.currentDate()
        self.start_date_edit = self._create_date_edit("yyyy-MM-dd", today)
        self.end_date_edit = self._create_date_edit("yyyy-MM-dd", today)
        apply_range = QPushButton("Apply range")
        apply_range.clicked.connect(self._on_range_selected)
        self.month_edit = self._create_date_edit("MMMM yyyy", today)
        apply_month = QPushButton("Apply month")
        apply_month.clicked.connect(self._on_month_selected)

        controls = QHBoxLayout()
        controls.addWidget(QLabel("Period"))
        controls.addWidget(self._window_combo)
        controls.addWidget(self.refresh_button)
        controls.addStretch()
        controls.addWidget(QLabel("From"))
        controls.addWidget(self.start_date_edit)
        controls.addWidget(QLabel("To"))
        controls.addWidget(self.end_date_edit)
        controls.addWidget(apply_range)
        controls.addWidget(self.month_edit)
        controls.addWidget(apply_month)

        cards = QHBoxLayout()
        self.customers_card, self.customers_value, _ = self._create_metric_card("Total Customers", "Active customers")
        self.stock_card, self.stock_value, _ = self._create_metric_card("Total Milk Stock", "Stock received")
        self.remaining_card, self.remaining_value, _ = self._create_metric_card("Remaining Milk Stock", "Available stock")
        self.revenue_card, self.revenue_value, self.pending_value = self._create_metric_card("Total Revenue", "Pending: --")
        for card in (self.customers_card, self.stock_card, self.remaining_card, self.revenue_card):
            cards.addWidget(card, 1)

        self.updates_title = QLabel("Quantity Updates")
        self.updates_title.setStyleSheet("font-weight: 600; font-size: 15px;")
        self.updates_table = self._create_table_widget(UPDATE_HEADERS)

        tab = QWidget()
        layout = QVBoxLayout(tab)
        layout.addLayout(controls)
        layout.addLayout(cards)
        layout.addWidget(self.updates_title)
        layout.addWidget(self.updates_table, 1)
        return tab

    def _build_customers_tab(self) -> QWidget:
        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText("Search by name, phone, or address...")
        self.search_edit.textEdited.connect(lambda text: self._directory_call(self._directory.set_search_text, text))
        clear_button = QPushButton("Clear")
        clear_button.clicked.connect(self._on_clear_search)

        self.milk_type_combo = QComboBox()
        self.milk_type_combo.addItem("All milk types", "")
        self.milk_type_combo.activated.connect(self._on_milk_type_changed)
        self.subcategory_combo = QComboBox()
        self.subcategory_combo.addItem("All subcategories", "")
        self.subcategory_combo.setEnabled(False)
        self.subcategory_combo.activated.connect(self._on_subcategory_changed)
        self.status_combo = QComboBox()
        for label, value in (("All", "all"), ("Active", "active"), ("Inactive", "inactive")):
            self.status_combo.addItem(label, value)
        self.status_combo.activated.connect(
            lambda index: self._directory_call(self._directory.set_status_filter, self.status_combo.itemData(index))
        )
        reset_button = QPushButton("Reset filters")
        reset_button.clicked.connect(self._on_reset_filters)

        filters = QHBoxLayout()
        filters.addWidget(self.search_edit, 2)
        filters.addWidget(clear_button)
        filters.addWidget(self.milk_type_combo)
        filters.addWidget(self.subcategory_combo)
        filters.addWidget(self.status_combo)
        filters.addWidget(reset_button)

        self.selection_checkbox = QCheckBox("Selection mode")
        self.selection_checkbox.toggled.connect(self._on_selection_mode_toggled)
        self.select_all_checkbox = QCheckBox("Select page")
        self.select_all_checkbox.setEnabled(False)
        self.select_all_checkbox.toggled.connect(self._on_select_all)
        self.bulk_delete_button = QPushButton("Deactivate selected")
        self.bulk_delete_button.setEnabled(False)
        self.bulk_delete_button.clicked.connect(self._on_bulk_delete)

        selection = QHBoxLayout()
        selection.addWidget(self.selection_checkbox)
        selection.addWidget(self.select_all_checkbox)
        selection.addWidget(self.bulk_delete_button)
        selection.addStretch()

        self.customers_table = self._create_table_widget(CUSTOMER_HEADERS)
        self.customers_table.setColumnHidden(0, True)
        header = self.customers_table.horizontalHeader()
        header.setSectionsClickable(True)
        header.sectionClicked.connect(self._on_sort_clicked)
        self.customers_table.itemChanged.connect(self._on_customer_item_changed)

        self.prev_button = QPushButton("Previous")
        self.prev_button.clicked.connect(lambda: self._go_to_page(self._directory.query.page - 1))
        self.next_button = QPushButton("Next")
        self.next_button.clicked.connect(lambda: self._go_to_page(self._directory.query.page + 1))
        self.pages_label = QLabel("")
        self.page_size_combo = QComboBox()
        for size in PAGE_SIZE_OPTIONS:
            self.page_size_combo.addItem(f"{size} / page", size)
        self.page_size_combo.setCurrentIndex(PAGE_SIZE_OPTIONS.index(self._settings.page_size))
        self.page_size_combo.activated.connect(
            lambda index: self._directory_call(self._directory.set_page_size, self.page_size_combo.itemData(index))
        )

        pager = QHBoxLayout()
        pager.addWidget(self.prev_button)
        pager.addWidget(self.pages_label, 1)
        pager.addWidget(self.next_button)
        pager.addWidget(self.page_size_combo)

        tab = QWidget()
        layout = QVBoxLayout(tab)
        layout.addLayout(filters)
        layout.addLayout(selection)
        layout.addWidget(self.customers_table, 1)
        layout.addLayout(pager)
        return tab

    def _create_metric_card(self, title: str, subtitle: str) -> Tuple[QFrame, QLabel, QLabel]:
        frame = QFrame()
        frame.setFrameShape(QFrame.StyledPanel)
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(16, 16, 16, 16)

        title_label = QLabel(title)
        title_label.setStyleSheet("font-size: 13px; font-weight: 500;")
        value_label = QLabel("--")
        value_label.setStyleSheet("font-size: 28px; font-weight: 600;")
        subtitle_label = QLabel(subtitle)

        layout.addWidget(title_label)
        layout.addWidget(value_label)
        layout.addWidget(subtitle_label)
        return frame, value_label, subtitle_label

    def _create_table_widget(self, headers: List[str]) -> QTableWidget:
        table = QTableWidget()
        table.setColumnCount(len(headers))
        table.setHorizontalHeaderLabels(headers)
        header = table.horizontalHeader()
        header.setSectionResizeMode(QHeaderView.ResizeToContents)
        header.setStretchLastSection(True)
        header.setSectionsClickable(False)
        table.verticalHeader().setVisible(False)
        table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        table.setSelectionMode(QAbstractItemView.NoSelection)
        table.setAlternatingRowColors(True)
        return table

    def _create_date_edit(self, display_format: str, value: QDate) -> QDateEdit:
        date_edit = QDateEdit()
        date_edit.setCalendarPopup(True)
        date_edit.setDisplayFormat(display_format)
        date_edit.setMaximumDate(value)
        date_edit.setDate(value)
        return date_edit

    # dashboard

    def _submit(self, coro: Coroutine[Any, Any, Any], success_message: Optional[str] = None) -> None:
        future = self._loop_thread.submit(coro)

        def _done(result: Future) -> None:
            exc = result.exception()
            if exc is not None:
                logger.error("Dashboard action failed: %s", exc)
                self._signals.action_failed.emit(str(exc))
            elif success_message:
                self._signals.action_done.emit(success_message)

        future.add_done_callback(_done)

    def load_selected_period(self) -> None:
        window = self._resolver.resolve(self._window_combo.currentData())
        self._update_status(f"Updating... {window.label}")
        self._submit(self._aggregator.refresh(window))

    def refresh_data(self) -> None:
        """Re-aggregate the window on display, custom ranges and month picks included."""
        mode = self._window_combo.currentData()

        async def _refresh() -> None:
            if self._aggregator.window is None:
                await self._aggregator.refresh(self._resolver.resolve(mode))
            else:
                await self._aggregator.refresh_current()

        self._update_status("Updating...")
        self._submit(_refresh())

    def _on_window_changed(self, index: int) -> None:
        self.load_selected_period()

    def _on_range_selected(self) -> None:
        try:
            window = self._resolver.custom(
                (self.start_date_edit.date().toPython(), self.end_date_edit.date().toPython())
            )
        except ValueError as exc:
            self._show_error(str(exc))
            return
        self._update_status(f"Updating... {window.display_range()}")
        self._submit(self._aggregator.refresh(window))

    def _on_month_selected(self) -> None:
        window = self._resolver.month(self.month_edit.date().toPython())
        self._update_status(f"Updating... {window.label}")
        self._submit(self._aggregator.refresh(window))

    def _apply_snapshot(self, snapshot: DashboardSnapshot) -> None:
        summary: Dict[str, Any] = build_summary(snapshot, currency=self._settings.currency)
        self.customers_value.setText(str(summary["active_customers"]))
        self.stock_value.setText(str(summary["total_stock"]))
        self.remaining_value.setText(str(summary["remaining_stock"]))
        self.revenue_value.setText(str(summary["total_revenue"]))
        self.pending_value.setText(f"Pending: {summary['pending_payments']}")
        self.updates_title.setText(
            f"Quantity Updates for {summary['window_label']} ({summary['window_range']})"
        )

        self._requests = list(snapshot.quantity_updates)
        rows = summary["quantity_updates"]
        table = self.updates_table
        table.setRowCount(len(rows))
        for row_index, (row, request) in enumerate(zip(rows, self._requests)):
            values = [
                row["date"], row["customer_no"], row["customer_name"], row["time"],
                row["milk_type"], row["subcategory"], row["old_quantity"],
                row["new_quantity"], row["difference_text"], row["reason"],
            ]
            for column, value in enumerate(values):
                table.setItem(row_index, column, QTableWidgetItem(str(value)))
            if row["actionable"]:
                table.setCellWidget(row_index, len(values), self._review_buttons(request))
            else:
                table.removeCellWidget(row_index, len(values))
                table.setItem(row_index, len(values), QTableWidgetItem(row["status"].title()))

        failed = summary["failed_sources"]
        if failed:
            self._update_status(f"Updated with missing data from: {', '.join(failed)}")
        elif not rows:
            self._update_status("No quantity updates found for the selected period.")
        else:
            self._update_status(f"Updated: {summary['window_range']}")

    def _review_buttons(self, request: QuantityUpdateRequest) -> QWidget:
        widget = QWidget()
        layout = QHBoxLayout(widget)
        layout.setContentsMargins(0, 0, 0, 0)
        accept = QPushButton("Accept")
        accept.clicked.connect(lambda: self._submit(self._review.accept(request), "Order accepted!"))
        reject = QPushButton("Reject")
        reject.clicked.connect(lambda: self._on_reject_clicked(request))
        layout.addWidget(accept)
        layout.addWidget(reject)
        return widget

    def _on_reject_clicked(self, request: QuantityUpdateRequest) -> None:
        reason, ok = QInputDialog.getMultiLineText(
            self,
            "Enter Rejection Reason",
            "Please provide a reason for rejecting this order:",
        )
        if not ok:
            self._loop_thread.call(self._review.cancel_rejection)
            return

        async def _reject() -> None:
            self._review.begin_rejection(request)
            self._review.update_rejection_reason(reason)
            await self._review.submit_rejection()

        self._submit(_reject(), "Order rejected successfully!")

    # customers

    def start_directory(self) -> None:
        self._submit(self._directory.start())

    def _directory_call(self, fn, *args: Any) -> None:
        def _invoke() -> None:
            try:
                fn(*args)
            except ValueError as exc:
                self._signals.customers_error.emit(str(exc))

        self._loop_thread.call(_invoke)

    def _on_clear_search(self) -> None:
        self.search_edit.clear()
        self._directory_call(self._directory.clear_search)

    def _on_reset_filters(self) -> None:
        self.search_edit.clear()
        self.milk_type_combo.setCurrentIndex(0)
        self.subcategory_combo.setCurrentIndex(0)
        self.subcategory_combo.setEnabled(False)
        self.status_combo.setCurrentIndex(0)
        self._directory_call(self._directory.reset_filters)

    def _on_milk_type_changed(self, index: int) -> None:
        milk_type = self.milk_type_combo.itemData(index) or ""
        self.subcategory_combo.setCurrentIndex(0)
        self.subcategory_combo.setEnabled(bool(milk_type))
        self._directory_call(self._directory.set_milk_type, milk_type)

    def _on_subcategory_changed(self, index: int) -> None:
        self._directory_call(self._directory.set_subcategory, self.subcategory_combo.itemData(index) or "")

    def _on_sort_clicked(self, column: int) -> None:
        field = CUSTOMER_SORT_COLUMNS.get(column)
        if field in SORT_FIELDS:
            self._directory_call(self._directory.toggle_sort, field)

    def _go_to_page(self, page: int) -> None:
        self._directory_call(self._directory.set_page, page)

    def _on_selection_mode_toggled(self, checked: bool) -> None:
        self.customers_table.setColumnHidden(0, not checked)
        self.select_all_checkbox.setEnabled(checked)
        self.bulk_delete_button.setEnabled(checked)
        if not checked:
            self.select_all_checkbox.blockSignals(True)
            self.select_all_checkbox.setChecked(False)
            self.select_all_checkbox.blockSignals(False)
        self._directory_call(self._directory.set_selection_mode, checked)

    def _on_select_all(self, checked: bool) -> None:
        def _select() -> None:
            self._directory.select_all(checked)
            # Redraw the check boxes from the new selection.
            self._signals.customers_ready.emit(self._directory.result)

        self._directory_call(_select)

    def _on_customer_item_changed(self, item: QTableWidgetItem) -> None:
        if item.column() != 0 or item.row() >= len(self._customer_rows):
            return
        self._directory_call(self._directory.toggle_selected, self._customer_rows[item.row()])

    def _on_bulk_delete(self) -> None:
        answer = QMessageBox.question(
            self,
            "Deactivate customers",
            "Deactivate all selected customers? They will be marked inactive.",
        )
        if answer != QMessageBox.Yes:
            return

        async def _delete() -> None:
            count = await self._directory.bulk_delete()
            self._signals.action_done.emit(f"{count} customers deactivated successfully")

        self._submit(_delete())

    def _apply_customers(self, result: QueryResult) -> None:
        table = self.customers_table
        table.blockSignals(True)
        self._customer_rows = [customer_id(item) for item in result.items]
        table.setRowCount(len(result.items))
        for row_index, customer in enumerate(result.items):
            check_item = QTableWidgetItem()
            check_item.setFlags(Qt.ItemIsUserCheckable | Qt.ItemIsEnabled)
            selected = self._customer_rows[row_index] in self._directory.selected
            check_item.setCheckState(Qt.Checked if selected else Qt.Unchecked)
            table.setItem(row_index, 0, check_item)
            plans = customer.get("milkItems") or []
            plan_text = ", ".join(
                f"{(plan.get('milkType') or {}).get('name', 'N/A')} / {(plan.get('subcategory') or {}).get('name', 'N/A')}"
                for plan in plans
                if isinstance(plan, dict)
            )
            values = [
                customer.get("customerNo", ""),
                customer.get("name", ""),
                customer.get("phoneNo", ""),
                plan_text,
                "Active" if customer.get("isActive") else "Inactive",
            ]
            for column, value in enumerate(values, start=1):
                table.setItem(row_index, column, QTableWidgetItem(str(value)))
        table.blockSignals(False)

        pages = page_window(result.page, result.total_pages)
        page_text = " ".join(str(page) if page != result.page else f"[{page}]" for page in pages)
        self.pages_label.setText(f"{page_text}   ({result.total_items} customers)")
        self.prev_button.setEnabled(result.page > 1)
        self.next_button.setEnabled(result.page < result.total_pages)

    def _apply_filter_options(self, milk_types: List[Dict[str, Any]], subcategories: List[Dict[str, Any]]) -> None:
        for combo, options, placeholder in (
            (self.milk_type_combo, milk_types, "All milk types"),
            (self.subcategory_combo, subcategories, "All subcategories"),
        ):
            current = combo.currentData()
            combo.blockSignals(True)
            combo.clear()
            combo.addItem(placeholder, "")
            for option in options:
                combo.addItem(str(option.get("name", "")), str(option.get("_id") or option.get("id") or ""))
            index = combo.findData(current)
            combo.setCurrentIndex(index if index >= 0 else 0)
            combo.blockSignals(False)

    def _set_customers_loading(self, loading: bool) -> None:
        self._update_status("Loading customers..." if loading else "Customers updated")

    def _show_customers_error(self, message: str) -> None:
        self._update_status(message)

    # shared

    def _update_status(self, message: str) -> None:
        self.status_label.setText(message)

    def _show_error(self, message: str) -> None:
        self._update_status("Action failed")
        box = QMessageBox(self)
        box.setIcon(QMessageBox.Critical)
        box.setWindowTitle("Error")
        box.setText(message)
        box.exec()

    def closeEvent(self, event) -> None:  # noqa: N802
        self._loop_thread.stop()
        super().closeEvent(event)


def launch_app(client: DashboardClientInterface, settings: DashboardSettings) -> None:
    app = QApplication.instance() or QApplication([])
    window = MainWindow(client, settings)
    window.show()
    window.load_selected_period()
    window.start_directory()
    app.exec()
