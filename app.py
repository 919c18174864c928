import sys

from PySide6.QtWidgets import QApplication, QMessageBox

from dairy_dashboard.config import (
    configure_logging,
    get_api_settings,
    get_dashboard_settings,
    is_frozen_build,
)
from dairy_dashboard.services.api_client import DashboardAPIClient, DashboardAPIError
from dairy_dashboard.services.connectivity import ConnectivityError, ensure_online_connectivity
from dairy_dashboard.ui.main_window import launch_app


def main() -> None:
    try:
        settings = get_dashboard_settings()
        configure_logging(settings.log_level)
        api_settings = get_api_settings()
        timeout = 3.0 if is_frozen_build() else 5.0
        ensure_online_connectivity(api_settings.base_url, timeout=timeout)
        client = DashboardAPIClient(api_settings)
    except (RuntimeError, DashboardAPIError, ValueError, ConnectivityError) as exc:
        app = QApplication.instance() or QApplication([])
        QMessageBox.critical(None, "Invalid configuration", str(exc))
        sys.exit(1)
    launch_app(client, settings)


if __name__ == "__main__":
    main()
