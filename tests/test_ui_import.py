import pytest

pytest.importorskip("PySide6.QtWidgets")


def test_main_window_module_exposes_launcher():
    from dairy_dashboard.ui import main_window

    assert callable(main_window.launch_app)
    assert set(main_window.CUSTOMER_SORT_COLUMNS.values()) <= {"customerNo", "name", "phoneNo", "isActive"}


def test_app_entry_point_imports():
    import app

    assert callable(app.main)
