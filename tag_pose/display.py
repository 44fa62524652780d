from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class Display(ABC):
    @abstractmethod
    def show(self, frame: np.ndarray) -> None: ...

    @abstractmethod
    def quit_requested(self) -> bool:
        """Poll for user input; True when the quit key was pressed."""
        ...

    def close(self) -> None:
        return None


class WindowDisplay(Display):
    """A single named OpenCV window."""

    def __init__(self, window_name: str = "Tag Detections", quit_key: str = "q", wait_ms: int = 30):
        self.window_name = window_name
        self.quit_key = quit_key
        self.wait_ms = wait_ms
        self._opened = False

    def show(self, frame: np.ndarray) -> None:
        cv2.imshow(self.window_name, frame)
        self._opened = True

    def quit_requested(self) -> bool:
        key = cv2.waitKey(self.wait_ms)
        if key != -1 and (key & 0xFF) == ord(self.quit_key):
            logger.info("quit key pressed")
            return True
        return False

    def close(self) -> None:
        if self._opened:
            cv2.destroyWindow(self.window_name)
            self._opened = False


class NullDisplay(Display):
    """Headless display; never requests quit."""

    def show(self, frame: np.ndarray) -> None:
        return None

    def quit_requested(self) -> bool:
        return False
