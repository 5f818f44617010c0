"""
Frame source for the PPG pipeline.

Wraps OpenCV ``VideoCapture`` so the same loop can read a live camera (by
index) or a recorded video file.
"""

from __future__ import annotations

import logging
from typing import Generator, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class VideoSource:
    """
    Camera or video-file reader.

    Parameters
    ----------
    source:
        Camera index (``int`` or a digit string) or a path to a video file.
    fps:
        Requested frame rate for live cameras.  Ignored for files.
    resolution:
        Requested (width, height) for live cameras.  Ignored for files.
    """

    MAX_NULL_STREAK = 10

    def __init__(
        self,
        source: Union[int, str] = 0,
        fps: int = 30,
        resolution: Tuple[int, int] = (640, 480),
    ) -> None:
        if isinstance(source, str) and source.isdigit():
            source = int(source)
        self.source = source
        self.fps = fps
        self.resolution = resolution
        self._cap: "cv2.VideoCapture | None" = None

    @property
    def is_live(self) -> bool:
        return isinstance(self.source, int)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open video source {self.source!r}")
        if self.is_live:
            w, h = self.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            cap.set(cv2.CAP_PROP_FPS, self.fps)
        self._cap = cap
        logger.info(
            "Video source opened – source=%r live=%s fps=%.1f",
            self.source, self.is_live, self.actual_fps,
        )

    def close(self) -> None:
        if self._cap is None:
            return
        self._cap.release()
        self._cap = None
        logger.info("Video source closed.")

    def __enter__(self) -> "VideoSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    @property
    def actual_fps(self) -> float:
        """Frame rate reported by the backend, falling back to the request."""
        if self._cap is None:
            return float(self.fps)
        reported = self._cap.get(cv2.CAP_PROP_FPS)
        return float(reported) if reported and reported > 0 else float(self.fps)

    # ------------------------------------------------------------------
    # Frame acquisition
    # ------------------------------------------------------------------

    def read_frame(self) -> np.ndarray | None:
        """Return one BGR frame, or *None* on failure / end of file."""
        if self._cap is None:
            raise RuntimeError("Video source is not open.  Call open() first.")
        ok, frame = self._cap.read()
        if not ok:
            return None
        return frame

    def frames(self) -> Generator[np.ndarray, None, None]:
        """
        Yield frames until the source ends or fails repeatedly.

        Files stop at the first failed read; live cameras give up after
        ``MAX_NULL_STREAK`` consecutive failures.
        """
        null_streak = 0
        while self._cap is not None:
            frame = self.read_frame()
            if frame is None:
                if not self.is_live:
                    logger.info("End of video file.")
                    break
                null_streak += 1
                if null_streak >= self.MAX_NULL_STREAK:
                    logger.error(
                        "Camera returned %d consecutive empty frames – aborting.",
                        null_streak,
                    )
                    break
                continue
            null_streak = 0
            yield frame
