from collections.abc import Callable

import numpy as np
import pytest

from flyover.config import CaptureSettings
from flyover.logging import configure_logging


def pytest_configure(config: pytest.Config) -> None:
    """Route test logs through the structlog console renderer."""
    configure_logging(level="INFO", format_json=False)
    config.option.log_cli_format = "%(message)s"


# -- deterministic stand-ins for the host event loop, the map and the codec --


class ManualHandle:
    def __init__(self, callback: Callable, interval_ms: float | None = None):
        self.callback = callback
        self.interval_ms = interval_ms
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualFrameSource:
    """Frame requests that only fire when a test calls ``tick``."""

    def __init__(self) -> None:
        self.clock = 0.0
        self.requests: list[ManualHandle] = []

    def now(self) -> float:
        return self.clock

    def request_frame(self, callback: Callable[[float], None]) -> ManualHandle:
        handle = ManualHandle(callback)
        self.requests.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [handle for handle in self.requests if not handle.cancelled]

    def tick(self, now: float) -> None:
        """Fire every outstanding frame request at time ``now`` (ms)."""
        self.clock = now
        due = self.pending
        self.requests = []
        for handle in due:
            handle.callback(now)


class ManualIntervalSource:
    """Interval timers that tick only when a test calls ``fire``; ``error`` makes starting fail."""

    def __init__(self) -> None:
        self.handles: list[ManualHandle] = []
        self.error: Exception | None = None

    def start_interval(self, interval_ms: float, callback: Callable[[int], None]) -> ManualHandle:
        if self.error is not None:
            raise self.error
        handle = ManualHandle(callback, interval_ms)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[ManualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire(self, times: int = 1, slots: int = 1) -> None:
        """Tick every active timer ``times`` times, each tick covering ``slots`` periods."""
        for _ in range(times):
            for handle in self.active:
                handle.callback(slots)


class FakeSurface:
    """Records drawing commands and returns a solid-colour snapshot."""

    def __init__(self, width: int = 64, height: int = 48) -> None:
        self.width = width
        self.height = height
        self.polylines: dict[int, list] = {}
        self.styles: dict[int, tuple] = {}
        self.views: list[tuple] = []
        self.fitted: list[tuple] = []
        self.marker: tuple[float, float] | None = None
        self.clear_count = 0
        self.snapshot_count = 0
        self.fail_snapshot = False

    def draw_polyline(self, coordinates, color, width) -> int:
        handle = len(self.styles) + 1
        self.polylines[handle] = list(coordinates)
        self.styles[handle] = (color, width)
        return handle

    def set_polyline_coords(self, handle, coordinates) -> None:
        self.polylines[handle] = list(coordinates)

    def set_polyline_style(self, handle, color=None, width=None) -> None:
        self.styles[handle] = (color, width)

    def fit_bounds(self, bounds) -> None:
        self.fitted.append(bounds)

    def set_view(self, center, zoom) -> None:
        self.views.append((center, zoom))

    def place_marker(self, coordinate) -> None:
        self.marker = coordinate

    def move_marker(self, coordinate) -> None:
        self.marker = coordinate

    def clear(self) -> None:
        self.polylines.clear()
        self.marker = None
        self.clear_count += 1

    def snapshot(self) -> np.ndarray:
        if self.fail_snapshot:
            raise OSError("surface lost")
        self.snapshot_count += 1
        return np.full((self.height, self.width, 4), 200, dtype=np.uint8)


class FakeEncoder:
    def __init__(self, settings: CaptureSettings) -> None:
        self.settings = settings
        self.frames: list[np.ndarray] = []
        self.finished = False
        self.aborted = False

    def write(self, frame: np.ndarray) -> None:
        self.frames.append(frame.copy())

    def finish(self) -> list[bytes]:
        self.finished = True
        return [b"head", b"-".join(b"f" for _ in self.frames), b"tail"]

    def abort(self) -> None:
        self.aborted = True


class EncoderFactory:
    """Builds FakeEncoders and remembers them; ``error`` makes construction fail."""

    def __init__(self) -> None:
        self.encoders: list[FakeEncoder] = []
        self.error: Exception | None = None

    def __call__(self, settings: CaptureSettings) -> FakeEncoder:
        if self.error is not None:
            raise self.error
        encoder = FakeEncoder(settings)
        self.encoders.append(encoder)
        return encoder

    @property
    def last(self) -> FakeEncoder:
        return self.encoders[-1]


@pytest.fixture()
def frames() -> ManualFrameSource:
    return ManualFrameSource()


@pytest.fixture()
def timers() -> ManualIntervalSource:
    return ManualIntervalSource()


@pytest.fixture()
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture()
def encoder_factory() -> EncoderFactory:
    return EncoderFactory()


@pytest.fixture()
def capture_settings() -> CaptureSettings:
    return CaptureSettings(fps=30.0, width=32, height=24)
