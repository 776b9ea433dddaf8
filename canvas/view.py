"""
View Transform Controller
=========================

Pan / zoom state applied to the rendered scene, independent of layout
coordinates.

GUARANTEES:
===========
1. scale always within [scale_min, scale_max] (default [0.1, 4])
2. fit_to_view never produces a NaN / infinite transform; degenerate
   bounds (0 or 1 node, zero width or height) leave the view untouched
3. Direct manipulation (pan_to, pan_by, zoom_at) cancels any in-flight
   programmatic animation
4. Data changes never touch the transform
5. Double-click zoom is disabled
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import math
import time
from typing import Callable, Iterable, Optional

from .contracts import Error, ErrorCode, Result
from .store.contracts import Point


@dataclass(frozen=True)
class ViewportSize:
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.width / 2, self.height / 2)


@dataclass(frozen=True)
class ViewTransform:
    """screen = world * scale + translate"""
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0

    @staticmethod
    def identity() -> ViewTransform:
        return ViewTransform()

    def apply(self, point: Point) -> Point:
        return Point(
            point.x * self.scale + self.translate_x,
            point.y * self.scale + self.translate_y
        )

    def invert(self, point: Point) -> Point:
        return Point(
            (point.x - self.translate_x) / self.scale,
            (point.y - self.translate_y) / self.scale
        )

    def translated(self, dx: float, dy: float) -> ViewTransform:
        return replace(self, translate_x=self.translate_x + dx, translate_y=self.translate_y + dy)

    def scaled_about(self, scale: float, anchor: Point) -> ViewTransform:
        """New transform at `scale` keeping the screen `anchor` fixed."""
        world = self.invert(anchor)
        return ViewTransform(
            translate_x=anchor.x - world.x * scale,
            translate_y=anchor.y - world.y * scale,
            scale=scale
        )

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.translate_x, self.translate_y, self.scale))

    def to_svg(self) -> str:
        return f"translate({self.translate_x},{self.translate_y}) scale({self.scale})"


@dataclass
class ViewConfig:
    scale_min: float = 0.1
    scale_max: float = 4.0
    zoom_step: float = 1.2
    zoom_duration: float = 0.25
    fit_duration: float = 0.75
    fit_padding: float = 100.0
    fit_max_scale: float = 1.5

    def __post_init__(self):
        if not 0 < self.scale_min <= self.scale_max:
            raise ValueError("scale extent must satisfy 0 < scale_min <= scale_max")
        if self.zoom_step <= 1:
            raise ValueError("zoom_step must be greater than 1")


def _ease_cubic_in_out(t: float) -> float:
    t *= 2
    if t <= 1:
        return t * t * t / 2
    t -= 2
    return (t * t * t + 2) / 2


@dataclass(frozen=True)
class _Transition:
    start: ViewTransform
    end: ViewTransform
    started_at: float
    duration: float

    def at(self, now: float, viewport: ViewportSize) -> ViewTransform:
        if self.duration <= 0 or now >= self.started_at + self.duration:
            return self.end
        t = _ease_cubic_in_out(max(0.0, (now - self.started_at) / self.duration))
        # Interpolate the world point under the viewport center and the
        # log of the scale, so zooms do not swing sideways.
        center = viewport.center
        c0 = self.start.invert(center)
        c1 = self.end.invert(center)
        cx = c0.x + (c1.x - c0.x) * t
        cy = c0.y + (c1.y - c0.y) * t
        k = math.exp(math.log(self.start.scale) + (math.log(self.end.scale) - math.log(self.start.scale)) * t)
        return ViewTransform(center.x - cx * k, center.y - cy * k, k)

    def done(self, now: float) -> bool:
        return now >= self.started_at + self.duration


class ViewTransformController:
    """
    Owns the ViewTransform of one mounted canvas.

    Animations progress only through `advance()`, which the frame loop
    calls; `clock` is injectable for deterministic tests.
    """

    def __init__(
        self,
        viewport: ViewportSize,
        config: Optional[ViewConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._viewport = viewport
        self._config = config or ViewConfig()
        self._clock = clock
        self._transform = ViewTransform.identity()
        self._transition: Optional[_Transition] = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def transform(self) -> ViewTransform:
        return self._transform

    @property
    def target(self) -> ViewTransform:
        """Where the view ends up once any animation completes."""
        return self._transition.end if self._transition else self._transform

    @property
    def is_animating(self) -> bool:
        return self._transition is not None

    @property
    def viewport(self) -> ViewportSize:
        return self._viewport

    def mount(self):
        """Center the origin in the viewport at scale 1."""
        center = self._viewport.center
        self._set(ViewTransform(center.x, center.y, 1.0))

    def resize(self, viewport: ViewportSize):
        self._viewport = viewport

    def advance(self, now: Optional[float] = None) -> bool:
        """Progress the running animation. Returns True while animating."""
        if self._transition is None:
            return False
        now = self._clock() if now is None else now
        self._transform = self._transition.at(now, self._viewport)
        if self._transition.done(now):
            self._transition = None
        return self._transition is not None

    # =========================================================================
    # PROGRAMMATIC COMMANDS (animated)
    # =========================================================================

    def zoom_in(self) -> ViewTransform:
        return self._zoom_by(self._config.zoom_step)

    def zoom_out(self) -> ViewTransform:
        return self._zoom_by(1 / self._config.zoom_step)

    def _zoom_by(self, factor: float) -> ViewTransform:
        base = self.target
        scale = self._clamp(base.scale * factor)
        end = base.scaled_about(scale, self._viewport.center)
        self._animate(end, self._config.zoom_duration)
        return end

    def fit_to_view(
        self,
        positions: Iterable[Point],
        viewport: Optional[ViewportSize] = None,
        padding: Optional[float] = None,
        max_scale: Optional[float] = None
    ) -> Result:
        """
        Scale and center the bounding box of `positions` in the viewport.

        No-op (failure result, view untouched) when the box has zero
        width or zero height.
        """
        viewport = viewport or self._viewport
        padding = self._config.fit_padding if padding is None else padding
        max_scale = self._config.fit_max_scale if max_scale is None else max_scale

        points = [p for p in positions if math.isfinite(p.x) and math.isfinite(p.y)]
        if not points:
            return self._degenerate(0.0, 0.0)
        x_min = min(p.x for p in points)
        x_max = max(p.x for p in points)
        y_min = min(p.y for p in points)
        y_max = max(p.y for p in points)
        width = x_max - x_min
        height = y_max - y_min
        if width <= 0 or height <= 0:
            return self._degenerate(width, height)

        scale = min(
            (viewport.width - padding) / width,
            (viewport.height - padding) / height,
            max_scale
        )
        scale = self._clamp(scale)
        mid_x = (x_min + x_max) / 2
        mid_y = (y_min + y_max) / 2
        end = ViewTransform(
            translate_x=viewport.width / 2 - mid_x * scale,
            translate_y=viewport.height / 2 - mid_y * scale,
            scale=scale
        )
        self._animate(end, self._config.fit_duration)
        return Result.success(end)

    def _degenerate(self, width: float, height: float) -> Result:
        return Result.failure(Error.create(
            ErrorCode.DEGENERATE_BOUNDS,
            "Bounding box has zero width or height",
            width=str(width),
            height=str(height)
        ))

    # =========================================================================
    # DIRECT MANIPULATION (immediate, cancels animation)
    # =========================================================================

    def pan_to(self, transform: ViewTransform) -> ViewTransform:
        if not transform.is_finite:
            return self._transform
        self._set(replace(transform, scale=self._clamp(transform.scale)))
        return self._transform

    def pan_by(self, dx: float, dy: float) -> ViewTransform:
        return self.pan_to(self._transform.translated(dx, dy))

    def zoom_at(self, factor: float, anchor: Point) -> ViewTransform:
        """Wheel / pinch zoom about a screen point."""
        if factor <= 0 or not math.isfinite(factor):
            return self._transform
        scale = self._clamp(self._transform.scale * factor)
        return self.pan_to(self._transform.scaled_about(scale, anchor))

    def double_click(self, anchor: Point) -> ViewTransform:
        """Double-click zoom is disabled; reserved for node interactions."""
        return self._transform

    # =========================================================================
    # COORDINATES
    # =========================================================================

    def screen_to_world(self, point: Point) -> Point:
        return self._transform.invert(point)

    def world_to_screen(self, point: Point) -> Point:
        return self._transform.apply(point)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _clamp(self, scale: float) -> float:
        return min(self._config.scale_max, max(self._config.scale_min, scale))

    def _set(self, transform: ViewTransform):
        self._transition = None
        self._transform = transform

    def _animate(self, end: ViewTransform, duration: float):
        self._transition = _Transition(
            start=self._transform,
            end=end,
            started_at=self._clock(),
            duration=duration
        )
