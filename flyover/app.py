"""The route animator: one map surface, one scheduler, one recorder.

This is the object a UI binds to. It exposes read-only observables
(``is_animating``, ``progress_fraction``, ``speed_kmh``, ``download_handle``,
``error_message``, ``capture_status``) and the commands ``select_path``,
``set_speed``, ``toggle`` and ``reset``.
"""

import asyncio
from collections.abc import Callable, Sequence

from flyover.animation.camera import CameraFollowController
from flyover.animation.frames import FrameSource, IntervalSource
from flyover.animation.geometry import Coordinate, PositionSample
from flyover.animation.scheduler import AnimationScheduler, AnimationState, AnimationStatus
from flyover.capture.encoder import EncoderFactory, OpenCVEncoder
from flyover.capture.recorder import Artifact, CaptureRecorder, CaptureStatus
from flyover.config import (
    ROUTE_LINE_WIDTH,
    TRAIL_COLOR,
    TRAIL_LINE_WIDTH,
    AnimationSettings,
    CaptureSettings,
)
from flyover.logging import get_logger
from flyover.map.routes import Route
from flyover.map.surface import RenderSurface


class RouteAnimator:
    def __init__(
        self,
        routes: Sequence[Route],
        surface: RenderSurface,
        frames: FrameSource,
        timers: IntervalSource,
        animation_settings: AnimationSettings | None = None,
        capture_settings: CaptureSettings | None = None,
        encoder_factory: EncoderFactory = OpenCVEncoder,
    ):
        self.routes = list(routes)
        self.surface = surface
        self.logger = get_logger(f"{__name__}.RouteAnimator")

        settings = animation_settings or AnimationSettings()
        self.camera = CameraFollowController(surface, settings)
        self.recorder = CaptureRecorder(surface, timers, capture_settings, encoder_factory)
        self.scheduler = AnimationScheduler(frames, capture=self.recorder, on_render=self._render, settings=settings)

        self._route_line: int | None = None
        self._trail_line: int | None = None
        self._error_message: str | None = None
        self._listeners: list[Callable[[], None]] = []

        self.scheduler.subscribe(lambda _state: self._notify())
        self.recorder.on_artifact(lambda _artifact: self._notify())

        if self.routes:
            self.select_path(0)

    # -- observables -------------------------------------------------------

    @property
    def state(self) -> AnimationState:
        return self.scheduler.state

    @property
    def is_animating(self) -> bool:
        return self.scheduler.is_animating

    @property
    def progress_fraction(self) -> float:
        return self.scheduler.progress_fraction

    @property
    def speed_kmh(self) -> float:
        return self.scheduler.speed_kmh

    @property
    def download_handle(self) -> Artifact | None:
        return self.recorder.artifact

    @property
    def capture_status(self) -> CaptureStatus:
        return self.recorder.status

    @property
    def error_message(self) -> str | None:
        return self._error_message or self.scheduler.error_message

    @property
    def selected_index(self) -> int | None:
        return self.scheduler.state.selected_path_index

    @property
    def selected_route(self) -> Route | None:
        index = self.selected_index
        return self.routes[index] if index is not None else None

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call ``listener`` after every state change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # -- commands ----------------------------------------------------------

    def select_path(self, index: int) -> bool:
        if not 0 <= index < len(self.routes):
            self._error_message = f"Route {index} is not available"
            self.logger.warning("Invalid route selection", index=index, routes_count=len(self.routes))
            self._notify()
            return False

        route = self.routes[index]
        self._error_message = None
        # Reset against the old drawing before it is torn down
        self.scheduler.select_path(route.path, index)

        self.surface.clear()
        self._route_line = self.surface.draw_polyline(route.path, route.color, ROUTE_LINE_WIDTH)
        self._trail_line = self.surface.draw_polyline([], TRAIL_COLOR, TRAIL_LINE_WIDTH)
        if route.path:
            self.surface.place_marker(route.path[0])
        self.camera.fit(route.path)

        self.logger.info("Route selected", index=index, name=route.name, points=len(route.path))
        self._notify()
        return True

    def set_speed(self, speed_kmh: float) -> float:
        return self.scheduler.set_speed(speed_kmh)

    def toggle(self) -> bool:
        """Play or pause. Returns whether the animation is running afterwards."""
        if self.scheduler.is_animating:
            self.scheduler.pause()
        elif self.scheduler.status is AnimationStatus.PAUSED:
            self.scheduler.resume()
        else:
            if self.selected_route is None:
                self._error_message = "No route selected"
                self._notify()
                return False
            self.scheduler.start()
        return self.scheduler.is_animating

    def reset(self) -> None:
        self.scheduler.reset()

    async def play(self) -> Artifact | None:
        """Run the selected route to completion on the current event loop.

        Returns:
            The recording, if capture was available
        """
        finished = asyncio.Event()

        def on_change() -> None:
            if not self.scheduler.is_animating:
                finished.set()

        unsubscribe = self.subscribe(on_change)
        try:
            if not self.toggle():
                return None
            await finished.wait()
        finally:
            unsubscribe()
        return self.download_handle

    # -- rendering ---------------------------------------------------------

    def _render(self, sample: PositionSample, trail: list[Coordinate], speed_kmh: float) -> None:
        if self._trail_line is not None:
            self.surface.set_polyline_coords(self._trail_line, trail)
        self.surface.move_marker(sample.coordinate)
        self.camera.follow(sample.coordinate, speed_kmh)
