from collections.abc import Sequence
from datetime import datetime

import pyqtgraph as pg
from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QResizeEvent
from PySide6.QtWidgets import QLabel, QVBoxLayout, QWidget

from holdingchart.hover import (
    AxisRole,
    HoverEngine,
    HoverRenderState,
    LinearAxis,
    Rect,
    Size,
    Viewport,
)
from holdingchart.models import ValuePoint
from holdingchart.ui.formatting import format_money, format_sample_time, horizon_label

pg.setConfigOptions(antialias=True, useOpenGL=False)
pg.setConfigOption("background", "#1B1E24")
pg.setConfigOption("foreground", "#EDEDED")

GROSS_PEN_COLOR = "#4FC3F7"
NET_PEN_COLOR = "#81C784"
CURSOR_COLOR = "#87CEEB"


class DateAxis(pg.AxisItem):
    """A bottom axis showing Unix timestamps as local clock time or day/month."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._horizon_days = 1

    def set_horizon(self, horizon_days: int) -> None:
        self._horizon_days = horizon_days
        self.picture = None
        self.update()

    def tickStrings(  # noqa: N802
        self, values: list[float], _scale: float, _spacing: float
    ) -> list[str]:
        string_format = "%H:%M" if self._horizon_days <= 1 else "%d/%m"
        return [datetime.fromtimestamp(v).strftime(string_format) for v in values]


class ChartView(QWidget):
    """Plots the gross and net value series and draws the hover cursor.

    All hover geometry is delegated to `HoverEngine`; this widget only
    translates Qt events into engine calls and applies the returned
    `HoverRenderState` to the guide line, the point marker and the overlay.
    """

    def __init__(self, currency: str, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._currency = currency
        self._hover = HoverEngine(self._measure_overlay)
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self._date_axis = DateAxis(orientation="bottom")
        self._plot = pg.PlotWidget(axisItems={"bottom": self._date_axis})
        self._plot.showGrid(x=True, y=True, alpha=0.3)
        self._plot.setMouseEnabled(x=False, y=False)
        self._plot.hideButtons()
        self._plot.addLegend(offset=(10, 10))

        self._gross_item = self._plot.plot(
            name="Value (gross)", pen=pg.mkPen(GROSS_PEN_COLOR, width=2)
        )
        self._net_item = self._plot.plot(
            name="Value after fees (net)", pen=pg.mkPen(NET_PEN_COLOR, width=2)
        )

        self._guide_line = pg.InfiniteLine(
            angle=90, movable=False, pen=pg.mkPen(CURSOR_COLOR, width=1.5)
        )
        self._point_marker = pg.ScatterPlotItem(
            size=7, brush=pg.mkBrush("w"), pen=pg.mkPen(CURSOR_COLOR, width=1.5)
        )
        self._plot.addItem(self._guide_line, ignoreBounds=True)
        self._plot.addItem(self._point_marker, ignoreBounds=True)

        self._overlay = QLabel(self._plot)
        self._overlay.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)
        self._overlay.setTextFormat(Qt.TextFormat.RichText)
        self._overlay.setStyleSheet(
            "QLabel { background: rgba(27, 30, 36, 230); color: #EDEDED;"
            " border: 1px solid #3A4150; border-radius: 4px; padding: 6px; }"
        )

        layout.addWidget(self._plot)

        self._plot.scene().sigMouseMoved.connect(self._on_mouse_moved)
        self._apply(self._hover.set_series([]))

    def set_series(self, series: Sequence[ValuePoint], horizon_days: int, title: str) -> None:
        """Replaces the plotted series."""
        xs = [p.time.timestamp() for p in series]
        self._gross_item.setData(xs, [float(p.gross) for p in series])
        self._net_item.setData(xs, [float(p.net) for p in series])
        self._date_axis.set_horizon(horizon_days)
        self._plot.setTitle(f"{title} ({horizon_label(horizon_days)})")
        self._plot.autoRange()
        self._apply(self._hover.set_series(series))

    def clear(self) -> None:
        self._gross_item.setData([], [])
        self._net_item.setData([], [])
        self._apply(self._hover.set_series([]))

    # --- Hover handling ---

    def _viewport(self) -> Viewport:
        """Describes the current plot geometry in the plot widget's pixel space."""
        view_box = self._plot.getPlotItem().getViewBox()
        area = view_box.sceneBoundingRect()
        (x_min, x_max), (y_min, y_max) = view_box.viewRange()

        axes = []
        try:
            axes.append(LinearAxis(AxisRole.TIME, x_min, x_max, area.left(), area.right()))
            axes.append(LinearAxis(AxisRole.VALUE, y_min, y_max, area.bottom(), area.top()))
        except ValueError:
            pass  # A collapsed range leaves the axis unresolved; the engine goes idle.

        return Viewport(
            canvas=Size(self._plot.width(), self._plot.height()),
            plot_area=Rect(area.left(), area.top(), area.width(), area.height()),
            axes=axes,
        )

    def _on_mouse_moved(self, pos: QPointF) -> None:
        self._apply(self._hover.pointer_moved(pos.x(), pos.y(), self._viewport()))

    def leaveEvent(self, event) -> None:  # noqa: N802
        self._apply(self._hover.pointer_left())
        super().leaveEvent(event)

    def resizeEvent(self, event: QResizeEvent) -> None:  # noqa: N802
        self._apply(self._hover.resized())
        super().resizeEvent(event)

    def _measure_overlay(self, sample: ValuePoint) -> Size:
        self._overlay.setText(
            f"<b>{format_sample_time(sample.time)}</b><br>"
            f"Gross: {format_money(sample.gross, self._currency)}<br>"
            f"Net: {format_money(sample.net, self._currency)}"
        )
        self._overlay.adjustSize()
        return Size(self._overlay.width(), self._overlay.height())

    def _apply(self, render: HoverRenderState) -> None:
        if not render.visible or render.overlay is None:
            self._guide_line.hide()
            self._point_marker.setData([], [])
            self._overlay.hide()
            return

        self._guide_line.setPos(render.data_x)
        self._guide_line.show()
        self._point_marker.setData([render.data_x], [render.data_y])
        self._overlay.move(int(render.overlay.left), int(render.overlay.top))
        self._overlay.show()
        self._overlay.raise_()
