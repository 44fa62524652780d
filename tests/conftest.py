import numpy as np
import pytest

from tag_pose.tag_types import Detection, Frame, PoseEstimate


class FakeSource:
    """Queue deterministic frames to emulate a camera."""

    def __init__(self, frames, exhaust_when_empty=True):
        self.frames = list(frames)
        self.exhaust_when_empty = exhaust_when_empty
        self.started = False
        self.stopped = False
        self._exhausted = False

    @property
    def exhausted(self):
        return self._exhausted

    def start(self):
        self.started = True

    def read(self):
        if self.frames:
            return self.frames.pop(0)
        if self.exhaust_when_empty:
            self._exhausted = True
        return None

    def stop(self):
        self.stopped = True


class FakeDetector:
    """Return canned detection batches, one per call."""

    def __init__(self, batches):
        self.batches = list(batches)
        self.images = []
        self.closed = False

    def detect(self, gray):
        self.images.append(gray)
        if self.batches:
            return self.batches.pop(0)
        return []

    def close(self):
        self.closed = True


class RecordingDisplay:
    def __init__(self, quit_after=None):
        self.shown = []
        self.quit_after = quit_after
        self.closed = False

    def show(self, frame):
        self.shown.append(frame.copy())

    def quit_requested(self):
        return self.quit_after is not None and len(self.shown) >= self.quit_after

    def close(self):
        self.closed = True


def make_detection(tag_id=0, R=None, t=(0.0, 0.0, 1.0), error=0.0, corners=None, center=None):
    if corners is None:
        corners = np.array([[20, 80], [80, 80], [80, 20], [20, 20]], dtype=np.float64)
    if center is None:
        center = np.asarray(corners).mean(axis=0)
    pose = PoseEstimate(
        R=np.eye(3) if R is None else np.asarray(R, dtype=np.float64),
        t=np.asarray(t, dtype=np.float64),
        error=error,
    )
    return Detection(
        tag_id=tag_id,
        corners=np.asarray(corners, dtype=np.float64),
        center=np.asarray(center, dtype=np.float64),
        family="tag36h11",
        library_pose=pose,
    )


def make_frame(idx=1, width=100, height=100, channels=3):
    shape = (height, width, channels) if channels > 1 else (height, width)
    return Frame(idx, 0, np.zeros(shape, dtype=np.uint8))


@pytest.fixture
def detection_factory():
    return make_detection


@pytest.fixture
def frame_factory():
    return make_frame
