"""Best-effort screen recording of the rendered map while an animation runs.

A session samples the surface on its own fixed-rate timer, independent of the
animation frame rate, scales every snapshot into a fixed-size frame buffer and
feeds it to an encoder. Closing the session finalizes the encoder into an
in-memory artifact. When capture cannot be set up the recorder reports
UNAVAILABLE and the animation carries on without it.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np

from flyover.animation.frames import Cancellable, IntervalSource
from flyover.capture.encoder import EncoderFactory, FrameEncoder, OpenCVEncoder
from flyover.config import CaptureSettings
from flyover.errors import CaptureSessionError, CaptureUnavailableError
from flyover.logging import get_logger

# Failures that mean "this platform cannot record", as opposed to bugs
CAPTURE_FAILURES = (CaptureUnavailableError, cv2.error, OSError, MemoryError, ValueError, TypeError, RuntimeError)


class CaptureStatus(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    FINALIZING = "finalizing"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class SnapshotSource(Protocol):
    def snapshot(self) -> np.ndarray: ...


@dataclass(frozen=True)
class Artifact:
    """A finished recording held in memory until the consumer saves it."""

    data: bytes
    mime_type: str
    filename: str
    frame_count: int
    created_at: datetime

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def save(self, directory: Path | str, filename: str | None = None) -> Path:
        output_dir = Path(directory)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / (filename or self.filename)
        output_file.write_bytes(self.data)
        return output_file


@dataclass
class RecordingSession:
    status: CaptureStatus = CaptureStatus.CAPTURING
    chunks: list[bytes] = field(default_factory=list)
    frame_count: int = 0
    artifact: Artifact | None = None
    started_at: datetime = field(default_factory=datetime.now)


def fit_frame(snapshot: np.ndarray, buffer: np.ndarray) -> np.ndarray:
    """Scale an RGB or RGBA snapshot into ``buffer`` in place and return it."""
    if snapshot.ndim != 3 or snapshot.shape[2] not in (3, 4):
        raise ValueError(f"Expected an RGB(A) image, got shape {snapshot.shape}")
    rgb = snapshot[..., :3]
    height, width = buffer.shape[:2]
    if rgb.shape[:2] == (height, width):
        np.copyto(buffer, rgb)
    else:
        interpolation = cv2.INTER_AREA if rgb.shape[1] > width else cv2.INTER_LINEAR
        np.copyto(buffer, cv2.resize(np.ascontiguousarray(rgb), (width, height), interpolation=interpolation))
    return buffer


class CaptureRecorder:
    """Opens and closes one recording session at a time."""

    def __init__(
        self,
        surface: SnapshotSource,
        timers: IntervalSource,
        settings: CaptureSettings | None = None,
        encoder_factory: EncoderFactory = OpenCVEncoder,
    ):
        self.surface = surface
        self.timers = timers
        self.settings = settings or CaptureSettings()
        self.encoder_factory = encoder_factory
        self.logger = get_logger(f"{__name__}.CaptureRecorder")

        self.status = CaptureStatus.IDLE
        self.session: RecordingSession | None = None
        self.artifact: Artifact | None = None
        self._encoder: FrameEncoder | None = None
        self._buffer: np.ndarray | None = None
        self._timer: Cancellable | None = None
        self._artifact_listeners: list[Callable[[Artifact], None]] = []

    @property
    def is_active(self) -> bool:
        return self.session is not None

    def on_artifact(self, listener: Callable[[Artifact], None]) -> None:
        self._artifact_listeners.append(listener)

    def open_session(self) -> RecordingSession | None:
        """Start sampling the surface into a new recording.

        Returns:
            The new session, or None when capture is unavailable

        Raises:
            CaptureSessionError: If a session is already open
        """
        if self.session is not None:
            raise CaptureSessionError("A capture session is already active")

        self.artifact = None
        try:
            self._buffer = np.zeros((self.settings.height, self.settings.width, 3), dtype=np.uint8)
            self._encoder = self.encoder_factory(self.settings)
            self._timer = self.timers.start_interval(self.settings.interval_ms, self._sample)
        except CAPTURE_FAILURES as e:
            self._teardown(abort=True)
            self.status = CaptureStatus.UNAVAILABLE
            self.logger.warning(
                "Capture unavailable, animation continues without recording",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        self.session = RecordingSession()
        self.status = CaptureStatus.CAPTURING
        self.logger.info(
            "Capture session opened",
            width=self.settings.width,
            height=self.settings.height,
            fps=self.settings.fps,
        )
        return self.session

    def _sample(self, slots: int = 1) -> None:
        """Write the current view once per elapsed capture period.

        A late tick repeats the frame for every period it missed so the video
        keeps the animation's real duration.
        """
        session = self.session
        if session is None or session.status is not CaptureStatus.CAPTURING:
            return
        slots = max(int(slots), 1)
        try:
            frame = fit_frame(self.surface.snapshot(), self._buffer)  # pyright: ignore[reportArgumentType]
            for _ in range(slots):
                self._encoder.write(frame)  # pyright: ignore[reportOptionalMemberAccess]
        except CAPTURE_FAILURES as e:
            self.logger.warning("Capture sample failed, dropping recording", error=str(e), error_type=type(e).__name__)
            self._teardown(abort=True)
            self.status = CaptureStatus.UNAVAILABLE
            return
        session.frame_count += slots

    def close_session(self) -> Artifact | None:
        """Stop sampling and finalize the recording. No-op without an open session.

        Returns:
            The finished artifact, or None if nothing was recorded
        """
        session = self.session
        if session is None:
            return None

        self._cancel_timer()
        if session.frame_count == 0:
            self._teardown(abort=True)
            self.status = CaptureStatus.IDLE
            self.logger.info("Capture session closed without frames, no recording produced")
            return None

        session.status = CaptureStatus.FINALIZING
        self.status = CaptureStatus.FINALIZING
        try:
            session.chunks.extend(self._encoder.finish())  # pyright: ignore[reportOptionalMemberAccess]
        except CAPTURE_FAILURES as e:
            self.logger.warning("Capture finalization failed", error=str(e), error_type=type(e).__name__)
            self._teardown(abort=False)
            self.status = CaptureStatus.UNAVAILABLE
            return None

        created_at = datetime.now()
        stamp = f"{created_at:%Y%m%d-%H%M%S}-{created_at.microsecond // 1000:03d}"
        artifact = Artifact(
            data=b"".join(session.chunks),
            mime_type=self.settings.mime_type,
            filename=f"flyover-{stamp}.{self.settings.container}",
            frame_count=session.frame_count,
            created_at=created_at,
        )
        session.artifact = artifact
        session.status = CaptureStatus.READY
        self._teardown(abort=False)
        self.artifact = artifact
        self.status = CaptureStatus.READY
        self.logger.info(
            "Capture session finalized",
            frames=artifact.frame_count,
            size_bytes=artifact.size_bytes,
            filename=artifact.filename,
        )
        for listener in list(self._artifact_listeners):
            listener(artifact)
        return artifact

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _teardown(self, abort: bool) -> None:
        self._cancel_timer()
        if abort and self._encoder is not None:
            self._encoder.abort()
        self._encoder = None
        self._buffer = None
        self.session = None
