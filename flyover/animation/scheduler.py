"""Frame-by-frame animation of a marker along a path.

States: IDLE -> RUNNING -> COMPLETED, or back to IDLE on reset. PAUSED is an
idle state that keeps its progress. Every frame recomputes position and trail
from the elapsed time, so frames are idempotent and a pause/resume only needs
to re-anchor the start timestamp.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from flyover.animation.frames import Cancellable, FrameSource
from flyover.animation.geometry import (
    Coordinate,
    Path,
    PositionSample,
    cumulative_distances,
    prefix_at_distance,
    sample_at_distance,
)
from flyover.config import AnimationSettings
from flyover.logging import get_logger

MIN_ANIMATABLE_POINTS = 2


class AnimationStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class AnimationState:
    selected_path_index: int | None = None
    progress_fraction: float = 0.0
    speed_kmh: float = AnimationSettings().default_speed_kmh
    running: bool = False
    start_timestamp: float | None = None
    status: AnimationStatus = AnimationStatus.IDLE


class CaptureControl(Protocol):
    def open_session(self) -> object: ...

    def close_session(self) -> object: ...


FrameRenderer = Callable[[PositionSample, list[Coordinate], float], None]
StateListener = Callable[[AnimationState], None]


class AnimationScheduler:
    """Owns AnimationState; all mutation goes through the transition methods."""

    def __init__(
        self,
        frames: FrameSource,
        capture: CaptureControl | None = None,
        on_render: FrameRenderer | None = None,
        settings: AnimationSettings | None = None,
    ):
        self.frames = frames
        self.capture = capture
        self.on_render = on_render
        self.settings = settings or AnimationSettings()
        self.logger = get_logger(f"{__name__}.AnimationScheduler")

        self.state = AnimationState(speed_kmh=self.settings.default_speed_kmh)
        self.error_message: str | None = None

        self._path: tuple[Coordinate, ...] = ()
        self._cumulative: list[float] = []
        self._frame_handle: Cancellable | None = None
        self._elapsed_ms = 0.0
        self._anchored_duration_ms: float | None = None
        self._listeners: list[StateListener] = []

    # -- observables -------------------------------------------------------

    @property
    def path(self) -> tuple[Coordinate, ...]:
        return self._path

    @property
    def total_distance(self) -> float:
        return self._cumulative[-1] if self._cumulative else 0.0

    @property
    def is_animating(self) -> bool:
        return self.state.running

    @property
    def progress_fraction(self) -> float:
        return self.state.progress_fraction

    @property
    def speed_kmh(self) -> float:
        return self.state.speed_kmh

    @property
    def status(self) -> AnimationStatus:
        return self.state.status

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    # -- pacing ------------------------------------------------------------

    def paced_rate(self, speed_kmh: float | None = None) -> float:
        """Distance covered per millisecond of animation at the given speed.

        A stylised pace, not a physical one: the real speed is scaled by the
        pacing multiplier.
        """
        speed = self.state.speed_kmh if speed_kmh is None else speed_kmh
        return speed * 1000 / 3600 * self.settings.pacing_multiplier

    def estimated_duration_ms(self, speed_kmh: float | None = None) -> float:
        return self.total_distance / self.paced_rate(speed_kmh)

    # -- transitions -------------------------------------------------------

    def select_path(self, path: Path, index: int | None = None) -> None:
        """Install a new path; any run in progress is reset first."""
        if self.state.running:
            self.reset()
        self._halt(AnimationStatus.IDLE)
        self._path = tuple((float(lat), float(lng)) for lat, lng in path)
        self._cumulative = cumulative_distances(self._path)
        self.state.selected_path_index = index
        self.error_message = None
        self.logger.info(
            "Path selected",
            index=index,
            points=len(self._path),
            total_distance_m=round(self.total_distance, 1),
        )
        self._notify()

    def start(self) -> bool:
        """Begin (or restart after completion) animating the selected path.

        Returns:
            True if the scheduler entered RUNNING
        """
        if self.state.running:
            return False
        if self.state.status is AnimationStatus.PAUSED:
            return self.resume()
        if len(self._path) < MIN_ANIMATABLE_POINTS:
            self.error_message = "Selected route needs at least two points to animate"
            self.logger.warning("Refusing to start animation", points=len(self._path))
            self._notify()
            return False

        if self.state.status is AnimationStatus.COMPLETED:
            self.state.progress_fraction = 0.0
            self._elapsed_ms = 0.0
            self._anchored_duration_ms = None

        self.logger.info(
            "Animation started",
            speed_kmh=self.state.speed_kmh,
            estimated_duration_ms=round(self.estimated_duration_ms(), 1),
        )
        self._begin_run()
        return True

    def pause(self) -> bool:
        if not self.state.running:
            return False
        self._cancel_frame()
        duration = self._anchored_duration_ms or self.estimated_duration_ms()
        self._elapsed_ms = self.state.progress_fraction * duration
        self.state.running = False
        self.state.start_timestamp = None
        self.state.status = AnimationStatus.PAUSED
        self._close_capture()
        self.logger.info("Animation paused", progress=round(self.state.progress_fraction, 4))
        self._notify()
        return True

    def resume(self) -> bool:
        """Continue a paused run; the start timestamp is re-anchored on the next tick."""
        if self.state.status is not AnimationStatus.PAUSED:
            return False
        self.logger.info("Animation resumed", progress=round(self.state.progress_fraction, 4))
        self._begin_run()
        return True

    def reset(self) -> None:
        """Stop, rewind to the first coordinate and close any capture. Safe to repeat."""
        self._halt(AnimationStatus.IDLE)
        start = sample_at_distance(self._path, 0.0, cumulative=self._cumulative)
        if start is not None and self.on_render is not None:
            self.on_render(start, [start.coordinate], self.state.speed_kmh)
        self._notify()

    def set_speed(self, speed_kmh: float) -> float:
        """Change speed; a running animation picks it up on the next tick without a jump."""
        self.state.speed_kmh = self.settings.clamp_speed(speed_kmh)
        self._notify()
        return self.state.speed_kmh

    # -- frame loop --------------------------------------------------------

    def on_frame(self, now: float) -> None:
        """Advance to ``now`` (milliseconds); does nothing unless RUNNING."""
        if not self.state.running:
            return
        self._frame_handle = None

        duration = self.estimated_duration_ms()
        if self.state.start_timestamp is None:
            self.state.start_timestamp = now - self._elapsed_ms
        if self._anchored_duration_ms and duration != self._anchored_duration_ms:
            # Keep the current progress and continue at the new pace from here
            so_far = min((now - self.state.start_timestamp) / self._anchored_duration_ms, 1.0)
            self.state.start_timestamp = now - so_far * duration
        self._anchored_duration_ms = duration

        elapsed = now - self.state.start_timestamp
        progress = min(max(elapsed / duration, 0.0), 1.0) if duration > 0 else 1.0
        self.state.progress_fraction = progress
        self._render(progress)

        if progress >= 1.0:
            self._complete()
            return
        self._notify()
        self._frame_handle = self.frames.request_frame(self.on_frame)

    def _render(self, progress: float) -> None:
        if self.on_render is None:
            return
        distance = progress * self.total_distance
        sample = sample_at_distance(self._path, distance, cumulative=self._cumulative)
        trail = prefix_at_distance(self._path, distance, cumulative=self._cumulative)
        self.on_render(sample, trail, self.state.speed_kmh)  # pyright: ignore[reportArgumentType]

    # -- internals ---------------------------------------------------------

    def _begin_run(self) -> None:
        # Nothing is marked RUNNING until capture and the first frame are in place
        if self.capture is not None:
            self.capture.open_session()
        try:
            self._frame_handle = self.frames.request_frame(self.on_frame)
        except Exception:
            self._close_capture()
            raise
        self.error_message = None
        self.state.running = True
        self.state.status = AnimationStatus.RUNNING
        self.state.start_timestamp = None
        self._notify()

    def _complete(self) -> None:
        self.state.running = False
        self.state.status = AnimationStatus.COMPLETED
        self._elapsed_ms = 0.0
        self._close_capture()
        self.logger.info("Animation completed", total_distance_m=round(self.total_distance, 1))
        self._notify()

    def _halt(self, status: AnimationStatus) -> None:
        self._cancel_frame()
        self._close_capture()
        self.state.running = False
        self.state.status = status
        self.state.progress_fraction = 0.0
        self.state.start_timestamp = None
        self._elapsed_ms = 0.0
        self._anchored_duration_ms = None

    def _cancel_frame(self) -> None:
        if self._frame_handle is not None:
            self._frame_handle.cancel()
            self._frame_handle = None

    def _close_capture(self) -> None:
        if self.capture is not None:
            self.capture.close_session()
