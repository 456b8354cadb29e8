"""Tuning constants for path animation and capture.

The pacing multiplier and the speed-to-zoom map are product-tuning values, not
physical conversions. Override them per instance with ``dataclasses.replace``.
"""

from dataclasses import dataclass

# Speed slider
MIN_SPEED_KMH = 10.0
MAX_SPEED_KMH = 300.0
DEFAULT_SPEED_KMH = 60.0

# Fraction of real speed used to pace the animation on screen
PACING_MULTIPLIER = 0.2

# Camera zoom (web map zoom levels, higher is closer)
MIN_ZOOM = 10.0
MAX_ZOOM = 16.0

# Host display refresh used by the asyncio frame source
REFRESH_RATE_HZ = 60.0

# Recording
CAPTURE_FPS = 30.0
CAPTURE_WIDTH = 1280
CAPTURE_HEIGHT = 720
CAPTURE_CODEC = "mp4v"
CAPTURE_CONTAINER = "mp4"
CAPTURE_MIME_TYPE = "video/mp4"

# Route styling
DEFAULT_ROUTE_COLOR = "#3388ff"
TRAIL_COLOR = "#e4572e"
ROUTE_LINE_WIDTH = 3.0
TRAIL_LINE_WIDTH = 5.0


@dataclass(frozen=True)
class AnimationSettings:
    """Speed bounds, pacing and camera zoom used by the scheduler and camera."""

    min_speed_kmh: float = MIN_SPEED_KMH
    max_speed_kmh: float = MAX_SPEED_KMH
    default_speed_kmh: float = DEFAULT_SPEED_KMH
    pacing_multiplier: float = PACING_MULTIPLIER
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM
    refresh_rate_hz: float = REFRESH_RATE_HZ

    def __post_init__(self) -> None:
        if self.min_speed_kmh <= 0 or self.max_speed_kmh <= self.min_speed_kmh:
            raise ValueError(f"Invalid speed bounds: [{self.min_speed_kmh}, {self.max_speed_kmh}]")
        if self.min_zoom > self.max_zoom:
            raise ValueError(f"Invalid zoom bounds: [{self.min_zoom}, {self.max_zoom}]")
        if self.pacing_multiplier <= 0:
            raise ValueError(f"Pacing multiplier must be positive, got {self.pacing_multiplier}")

    def clamp_speed(self, speed_kmh: float) -> float:
        return min(max(float(speed_kmh), self.min_speed_kmh), self.max_speed_kmh)


@dataclass(frozen=True)
class CaptureSettings:
    """Recording cadence, output resolution and container."""

    fps: float = CAPTURE_FPS
    width: int = CAPTURE_WIDTH
    height: int = CAPTURE_HEIGHT
    codec: str = CAPTURE_CODEC
    container: str = CAPTURE_CONTAINER
    mime_type: str = CAPTURE_MIME_TYPE

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError(f"Capture fps must be positive, got {self.fps}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Capture size must be positive, got {self.width}x{self.height}")
        if len(self.codec) != 4:
            raise ValueError(f"Codec must be a four-character code, got {self.codec!r}")

    @property
    def interval_ms(self) -> float:
        return 1000.0 / self.fps
