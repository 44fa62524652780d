"""Frame source abstraction for camera input.

Provides a unified interface for different frame sources:
- Device cameras (USB, V4L2 device paths)
- Recorded video files
- Synthetic blank frames for dry runs
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from .errors import FrameSourceError
from .tag_types import Frame

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Abstract base class for frame sources."""

    @abstractmethod
    def start(self) -> None:
        """Open the source. Raises FrameSourceError if it cannot be opened."""
        ...

    @abstractmethod
    def read(self) -> Frame | None:
        """Read the next frame, or None if the read failed."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Release resources. Safe to call more than once."""
        ...

    @property
    def exhausted(self) -> bool:
        """True once a finite source has no more frames."""
        return False

    def __enter__(self) -> "FrameSource":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


def _apply_capture_props(cap: Any, fps: Optional[int], width: Optional[int], height: Optional[int]) -> None:
    if width:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    if height:
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    if fps:
        cap.set(cv2.CAP_PROP_FPS, fps)


class DeviceCameraSource(FrameSource):
    """Camera source wrapping cv2.VideoCapture."""

    def __init__(
        self,
        device: int | str = 0,
        fps: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.frame_id = 0

    def start(self) -> None:
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                self.cap = cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
            elif dev_str.isdigit():
                self.cap = cv2.VideoCapture(int(dev_str))
            else:
                self.cap = cv2.VideoCapture(dev_str)

        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise FrameSourceError(f"Couldn't open video capture device: {self.device}")

        _apply_capture_props(self.cap, self.fps, self.width, self.height)
        self.frame_id = 0
        logger.info(
            "camera opened device=%s %dx%d",
            self.device,
            int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def read(self) -> Frame | None:
        if self.cap is None:
            return None

        ok, img = self.cap.read()
        if not ok or img is None:
            return None

        self.frame_id += 1
        return Frame(self.frame_id, time.time_ns(), img)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class VideoFileSource(FrameSource):
    """Replays a recorded video file; becomes exhausted at end of stream."""

    def __init__(self, path: str):
        self.path = path
        self.cap: Any = None
        self.frame_id = 0
        self._exhausted = False

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def start(self) -> None:
        self.cap = cv2.VideoCapture(str(self.path))
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise FrameSourceError(f"Couldn't open video file: {self.path}")
        self.frame_id = 0
        self._exhausted = False
        logger.info("video opened path=%s", self.path)

    def read(self) -> Frame | None:
        if self.cap is None:
            return None
        ok, img = self.cap.read()
        if not ok or img is None:
            self._exhausted = True
            return None
        self.frame_id += 1
        return Frame(self.frame_id, time.time_ns(), img)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticSource(FrameSource):
    """Blank BGR frames paced at ``fps``; useful without a camera."""

    def __init__(self, fps: int = 30, width: int = 640, height: int = 480):
        self.fps = fps
        self.width = width
        self.height = height
        self.frame_id = 0
        self._last = 0.0

    def start(self) -> None:
        self._last = time.time()
        self.frame_id = 0

    def read(self) -> Frame | None:
        now = time.time()
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (now - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.frame_id += 1
        img = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        return Frame(self.frame_id, time.time_ns(), img)

    def stop(self) -> None:
        return None
