import asyncio
import sys
from pathlib import Path

from loguru import logger
from PySide6.QtCore import Qt, QTimer, Signal, Slot
from PySide6.QtGui import QAction, QCloseEvent, QMouseEvent
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from holdingchart.config import Settings, set_api_key
from holdingchart.errors import MarketDataError
from holdingchart.logging_config import setup_logging
from holdingchart.provider.client import CoinGeckoClient, create_http_client
from holdingchart.provider.history import TimeSeriesFetcher
from holdingchart.provider.quotes import PriceQuoteFetcher
from holdingchart.provider.resolver import IdentifierResolver
from holdingchart.tracker import HoldingTracker
from holdingchart.ui.formatting import format_money, format_price
from holdingchart.ui.qt_asyncio_integration import run_with_asyncio
from holdingchart.ui.views.chart_view import ChartView

# (label, horizon in days)
RANGE_CHOICES = [("24h", 1), ("7 days", 7), ("30 days", 30)]


class StatusLabel(QLabel):
    """A status line that reports Ctrl+clicks."""

    ctrl_clicked = Signal()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if (
            event.button() == Qt.MouseButton.LeftButton
            and event.modifiers() & Qt.KeyboardModifier.ControlModifier
        ):
            self.ctrl_clicked.emit()
        super().mouseReleaseEvent(event)


class MainWindow(QMainWindow):
    """The widget window: a summary of the holding's value and its chart."""

    def __init__(self, settings: Settings) -> None:
        super().__init__()
        self._settings = settings
        self._summary_task: asyncio.Task[None] | None = None
        self._chart_task: asyncio.Task[None] | None = None
        self._ping_task: asyncio.Task[None] | None = None
        self.closed = asyncio.Event()

        # --- Initialize Core Components ---
        provider_config = settings.provider_config()
        self._summary_http = create_http_client(
            provider_config, settings.api.request_timeout_s
        )
        self._chart_http = create_http_client(
            provider_config, settings.api.chart_timeout_s
        )
        self._client = CoinGeckoClient(provider_config, self._summary_http)
        chart_client = CoinGeckoClient(provider_config, self._chart_http)
        resolver = IdentifierResolver(
            self._client, settings.asset, forced_id=settings.forced_coin_id
        )
        self._tracker = HoldingTracker(
            resolver,
            PriceQuoteFetcher(self._client),
            TimeSeriesFetcher(chart_client),
            settings.holding,
            settings.asset.currency,
        )

        self._refresh_timer = QTimer(self)
        self._refresh_timer.setInterval(settings.ui.refresh_interval_s * 1000)
        self._refresh_timer.timeout.connect(self._schedule_summary_refresh)

        self._setup_ui()

    def _setup_ui(self) -> None:
        asset = self._settings.asset.symbol.upper()
        currency = self._settings.asset.currency.upper()
        self.setWindowTitle(f"{asset} → {currency}")
        self.resize(520, 560)

        central = QWidget(self)
        layout = QVBoxLayout(central)

        # --- Summary ---
        holding = self._settings.holding
        summary_group = QGroupBox(
            f"{holding.quantity} {asset} (fee {holding.fee_percent}%)"
        )
        form = QFormLayout(summary_group)
        self._price_label = QLabel("—")
        self._gross_label = QLabel("—")
        self._net_label = QLabel("—")
        self._updated_label = QLabel("")
        form.addRow("Price:", self._price_label)
        form.addRow("Value (gross):", self._gross_label)
        form.addRow("Value (net):", self._net_label)
        form.addRow("Updated:", self._updated_label)

        summary_buttons = QHBoxLayout()
        self._status_label = StatusLabel("Ready.")
        self._status_label.setWordWrap(True)
        self._status_label.ctrl_clicked.connect(self._schedule_ping)
        refresh_button = QPushButton("Refresh")
        refresh_button.clicked.connect(self._schedule_summary_refresh)
        summary_buttons.addWidget(self._status_label, 1)
        summary_buttons.addWidget(refresh_button)
        form.addRow(summary_buttons)
        layout.addWidget(summary_group)

        # --- Chart ---
        chart_controls = QHBoxLayout()
        self._range_combo = QComboBox()
        for label, days in RANGE_CHOICES:
            self._range_combo.addItem(label, days)
        default_index = self._range_combo.findData(self._settings.ui.default_range_days)
        self._range_combo.setCurrentIndex(max(default_index, 0))
        self._range_combo.currentIndexChanged.connect(
            lambda _index: self._schedule_chart_load()
        )
        chart_refresh_button = QPushButton("Reload chart")
        chart_refresh_button.clicked.connect(self._schedule_chart_load)
        self._chart_status_label = QLabel("")
        chart_controls.addWidget(self._range_combo)
        chart_controls.addWidget(chart_refresh_button)
        chart_controls.addWidget(self._chart_status_label, 1)
        layout.addLayout(chart_controls)

        self._chart_view = ChartView(self._settings.asset.currency, self)
        layout.addWidget(self._chart_view, 1)

        self.setCentralWidget(central)

        file_menu = self.menuBar().addMenu("&File")
        key_action = QAction("Set CoinGecko API &key...", self)
        key_action.triggered.connect(self._prompt_api_key)
        file_menu.addAction(key_action)
        file_menu.addSeparator()
        exit_action = QAction("E&xit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

    def start(self) -> None:
        """Loads the first summary and chart and starts the periodic refresh."""
        self._schedule_summary_refresh()
        self._schedule_chart_load()
        self._refresh_timer.start()

    # --- Summary ---

    @Slot()
    def _schedule_summary_refresh(self) -> None:
        self._summary_task = asyncio.create_task(self._refresh_summary())

    async def _refresh_summary(self) -> None:
        currency = self._tracker.currency
        self._status_label.setText("Loading price…")
        try:
            snapshot = await self._tracker.current_value()
        except MarketDataError as e:
            logger.error(f"Summary refresh failed: {e}")
            self._status_label.setText(f"Error: {e}")
            return

        self._price_label.setText(
            format_price(snapshot.price, currency, self._settings.ui.price_decimals)
        )
        self._gross_label.setText(format_money(snapshot.gross, currency))
        self._net_label.setText(format_money(snapshot.net, currency))
        self._updated_label.setText(snapshot.fetched_at.strftime("%H:%M:%S"))
        self._status_label.setText("OK (Ctrl+click for ping)")

    # --- Chart ---

    @Slot()
    def _schedule_chart_load(self) -> None:
        # A newer request supersedes one still in flight.
        if self._chart_task is not None and not self._chart_task.done():
            self._chart_task.cancel()
        self._chart_task = asyncio.create_task(
            self._load_chart(int(self._range_combo.currentData()))
        )

    async def _load_chart(self, horizon_days: int) -> None:
        self._chart_status_label.setText("Loading data…")
        try:
            series = await self._tracker.value_history(horizon_days)
        except MarketDataError as e:
            logger.error(f"Chart load failed: {e}")
            self._chart_status_label.setText(f"Error: {e}")
            return

        title = (
            f"{self._settings.asset.symbol.upper()} value in "
            f"{self._tracker.currency.upper()}"
        )
        self._chart_view.set_series(series, horizon_days, title)
        self._chart_status_label.setText(f"OK • points: {len(series):,}")

    # --- Diagnostics and settings ---

    @Slot()
    def _schedule_ping(self) -> None:
        self._ping_task = asyncio.create_task(self._ping())

    async def _ping(self) -> None:
        try:
            self._status_label.setText(await self._client.ping())
        except MarketDataError as e:
            self._status_label.setText(f"Ping error: {e}")

    @Slot()
    def _prompt_api_key(self) -> None:
        api_key, ok = QInputDialog.getText(
            self,
            "CoinGecko API key",
            f"API key for the '{self._settings.api.mode}' API:",
            QLineEdit.EchoMode.Password,
        )
        if ok and api_key.strip():
            set_api_key(api_key.strip())
            QMessageBox.information(
                self, "API key stored", "Restart the application to use the new key."
            )

    async def _shutdown(self) -> None:
        logger.info("Initiating graceful shutdown...")
        self._refresh_timer.stop()
        for task in (self._summary_task, self._chart_task, self._ping_task):
            if task is not None and not task.done():
                task.cancel()
        await self._summary_http.aclose()
        await self._chart_http.aclose()
        logger.success("Shutdown complete.")
        self.closed.set()

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        logger.info("Close event triggered.")
        event.accept()
        asyncio.create_task(self._shutdown()).add_done_callback(
            lambda _: QApplication.instance().quit()
        )


async def main_async() -> int:
    """The main async entry point for the application."""
    settings = Settings.get_instance()
    log_dir = (
        Path(settings.general.log_directory)
        if settings.general.log_directory
        else None
    )
    setup_logging(
        console_level=settings.general.log_level_console,
        file_level=settings.general.log_level_file,
        log_dir=log_dir,
    )

    main_window = MainWindow(settings)
    main_window.show()
    main_window.start()
    await main_window.closed.wait()
    return 0


def main() -> None:
    """The synchronous entry point for the application."""
    try:
        exit_code = run_with_asyncio(main_async())
        sys.exit(exit_code)
    except Exception:
        logger.exception("An unhandled exception reached the top-level entry point.")
        sys.exit(1)


if __name__ == "__main__":
    main()
