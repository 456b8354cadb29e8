"""Video encoding backed by OpenCV's VideoWriter."""

from collections.abc import Callable
from pathlib import Path
import tempfile
from typing import Protocol

import cv2
import numpy as np

from flyover.config import CaptureSettings
from flyover.errors import CaptureUnavailableError
from flyover.logging import get_logger

READ_CHUNK_SIZE = 1 << 16


class FrameEncoder(Protocol):
    """Accepts RGB frames of the configured size and emits the encoded stream."""

    def write(self, frame: np.ndarray) -> None: ...

    def finish(self) -> list[bytes]: ...

    def abort(self) -> None: ...


EncoderFactory = Callable[[CaptureSettings], FrameEncoder]


class OpenCVEncoder:
    """Writes frames into a temporary container file and returns its bytes on finish.

    Raises:
        CaptureUnavailableError: If OpenCV cannot open a writer for the codec/container
    """

    def __init__(self, settings: CaptureSettings):
        self.settings = settings
        self.logger = get_logger(f"{__name__}.OpenCVEncoder")
        self._workdir = tempfile.TemporaryDirectory(prefix="flyover-capture-")
        self.path = Path(self._workdir.name) / f"capture.{settings.container}"

        try:
            fourcc = cv2.VideoWriter_fourcc(*settings.codec)
            self._writer = cv2.VideoWriter(
                str(self.path), fourcc, float(settings.fps), (settings.width, settings.height)
            )
        except (cv2.error, TypeError) as e:
            self._workdir.cleanup()
            raise CaptureUnavailableError(f"OpenCV cannot create a {settings.codec!r} writer: {e}") from e
        if not self._writer.isOpened():
            self._workdir.cleanup()
            raise CaptureUnavailableError(
                f"OpenCV cannot encode {settings.codec!r} into a .{settings.container} container"
            )
        self.frames_written = 0

    def write(self, frame: np.ndarray) -> None:
        if frame.shape[:2] != (self.settings.height, self.settings.width):
            raise ValueError(f"Frame shape {frame.shape} does not match {self.settings.width}x{self.settings.height}")
        # OpenCV expects BGR channel order
        self._writer.write(cv2.cvtColor(frame, cv2.COLOR_RGB2BGR))
        self.frames_written += 1

    def finish(self) -> list[bytes]:
        self._writer.release()
        try:
            chunks: list[bytes] = []
            with self.path.open("rb") as f:
                while chunk := f.read(READ_CHUNK_SIZE):
                    chunks.append(chunk)
            self.logger.debug(
                "Encoder finished",
                frames=self.frames_written,
                size_bytes=sum(len(c) for c in chunks),
            )
            return chunks
        finally:
            self._workdir.cleanup()

    def abort(self) -> None:
        self._writer.release()
        self._workdir.cleanup()
