"""Chart-cursor engine.

Turns pointer positions into a highlighted sample of the rendered value
series and decides where the info overlay goes. Nothing here touches Qt:
the chart view describes its geometry with a `Viewport`, feeds pointer events
to `HoverEngine` and applies the returned `HoverRenderState`.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final, Protocol

import numpy as np
from loguru import logger

from holdingchart.models import ValuePoint

OVERLAY_OFFSET_PX: Final[float] = 12.0


class AxisRole(Enum):
    """What an axis is bound to."""

    TIME = "time"  # horizontal
    VALUE = "value"  # vertical


class Axis(Protocol):
    """An axis that can map data-space values to screen coordinates."""

    role: AxisRole

    def transform(self, value: np.ndarray) -> np.ndarray: ...


@dataclass(frozen=True, slots=True)
class LinearAxis:
    """A linear data-to-screen mapping.

    `data_min` maps to `screen_min` and `data_max` to `screen_max`. For a
    vertical axis `screen_min` is usually the bottom edge, i.e. the larger
    pixel coordinate.
    """

    role: AxisRole
    data_min: float
    data_max: float
    screen_min: float
    screen_max: float

    def __post_init__(self) -> None:
        if self.data_max == self.data_min:
            err_msg = f"{self.role.value} axis has an empty data range."
            raise ValueError(err_msg)

    def transform(self, value: np.ndarray) -> np.ndarray:
        scale = (self.screen_max - self.screen_min) / (self.data_max - self.data_min)
        return self.screen_min + (np.asarray(value, dtype=float) - self.data_min) * scale


@dataclass(frozen=True, slots=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        return (
            self.left <= x <= self.left + self.width
            and self.top <= y <= self.top + self.height
        )


@dataclass(frozen=True, slots=True)
class Viewport:
    """Geometry of the rendered chart at the time of a pointer event.

    `canvas` is the whole area the overlay may occupy; `plot_area` is the
    rectangle holding the plotted series. All coordinates share one pixel
    space with its origin at the canvas' top-left corner.
    """

    canvas: Size
    plot_area: Rect
    axes: Sequence[Axis]


@dataclass(frozen=True, slots=True)
class HoverIdle:
    pass


@dataclass(frozen=True, slots=True)
class HoverActive:
    index: int
    screen_x: float
    screen_y: float


HoverState = HoverIdle | HoverActive

IDLE: Final[HoverIdle] = HoverIdle()


@dataclass(frozen=True, slots=True)
class OverlayPlacement:
    left: float
    top: float


@dataclass(frozen=True, slots=True)
class HoverRenderState:
    """What the chart view has to show after a pointer event.

    When `visible` is False the guide line, the point marker and the overlay
    are all hidden and the remaining fields are None.
    """

    visible: bool
    sample: ValuePoint | None = None
    data_x: float | None = None
    data_y: float | None = None
    overlay: OverlayPlacement | None = None


HIDDEN: Final[HoverRenderState] = HoverRenderState(visible=False)


def place_overlay(
    x: float,
    y: float,
    overlay: Size,
    canvas: Size,
    offset: float = OVERLAY_OFFSET_PX,
) -> OverlayPlacement:
    """Places an overlay of size `overlay` next to the point (x, y).

    The overlay goes below and to the right of the point. It flips to the
    left if it would cross the right canvas edge, and above the point if it
    would cross the bottom edge. The result is clamped to non-negative
    coordinates, so an overlay no larger than the canvas stays fully inside.
    """
    left = x + offset
    top = y + offset

    if left + overlay.width > canvas.width:
        left = x - overlay.width - offset
    if top + overlay.height > canvas.height:
        top = y - overlay.height - offset

    return OverlayPlacement(left=max(left, 0.0), top=max(top, 0.0))


def find_axis(axes: Sequence[Axis], role: AxisRole) -> Axis | None:
    return next((axis for axis in axes if axis.role is role), None)


class HoverEngine:
    """State machine mapping pointer movement to a highlighted sample.

    The engine is Idle until a pointer move lands inside the plot area of a
    non-empty series whose time and value axes can both be found. It then
    becomes Active on the sample nearest to the pointer in screen space and
    follows subsequent moves. Leaving the plot area, resizing, replacing the
    series or losing an axis returns it to Idle.
    """

    def __init__(
        self,
        measure_overlay: Callable[[ValuePoint], Size],
        offset: float = OVERLAY_OFFSET_PX,
    ) -> None:
        """Initializes the engine.

        Args:
            measure_overlay: Returns the size the overlay needs to show a sample.
            offset: Distance in pixels between the point and the overlay corner.
        """
        self._measure_overlay = measure_overlay
        self._offset = offset
        self._series: list[ValuePoint] = []
        self._xs = np.empty(0)
        self._ys = np.empty(0)
        self._state: HoverState = IDLE

    @property
    def state(self) -> HoverState:
        return self._state

    @property
    def series(self) -> Sequence[ValuePoint]:
        return self._series

    def set_series(self, series: Sequence[ValuePoint]) -> HoverRenderState:
        """Replaces the rendered series and drops any highlight on the old one."""
        self._series = list(series)
        self._xs = np.array([p.time.timestamp() for p in self._series], dtype=float)
        self._ys = np.array([float(p.gross) for p in self._series], dtype=float)
        return self._go_idle()

    def pointer_moved(self, x: float, y: float, viewport: Viewport) -> HoverRenderState:
        """Handles a pointer move at screen position (x, y)."""
        if not self._series or not viewport.plot_area.contains(x, y):
            return self._go_idle()

        x_axis = find_axis(viewport.axes, AxisRole.TIME)
        y_axis = find_axis(viewport.axes, AxisRole.VALUE)
        if x_axis is None or y_axis is None:
            logger.debug("Hover disabled: chart axes could not be resolved.")
            return self._go_idle()

        screen_xs = x_axis.transform(self._xs)
        screen_ys = y_axis.transform(self._ys)
        distances = np.hypot(screen_xs - x, screen_ys - y)
        distances[~np.isfinite(distances)] = np.inf
        index = int(np.argmin(distances))
        if not np.isfinite(distances[index]):
            return self._go_idle()

        sample_x = float(screen_xs[index])
        sample_y = float(screen_ys[index])
        self._state = HoverActive(index=index, screen_x=sample_x, screen_y=sample_y)

        sample = self._series[index]
        overlay = place_overlay(
            sample_x,
            sample_y,
            self._measure_overlay(sample),
            viewport.canvas,
            self._offset,
        )
        return HoverRenderState(
            visible=True,
            sample=sample,
            data_x=float(self._xs[index]),
            data_y=float(self._ys[index]),
            overlay=overlay,
        )

    def pointer_left(self) -> HoverRenderState:
        return self._go_idle()

    def resized(self) -> HoverRenderState:
        return self._go_idle()

    def _go_idle(self) -> HoverRenderState:
        self._state = IDLE
        return HIDDEN
