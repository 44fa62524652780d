import io

import numpy as np
import pytest

from conftest import FakeDetector, FakeSource, RecordingDisplay, make_detection, make_frame
from tag_pose import worker as worker_mod
from tag_pose.errors import FrameSourceError, PoseEstimationError
from tag_pose.output import ConsoleOutput
from tag_pose.pose import LibraryPoseEstimator
from tag_pose.transforms import euler_to_rotation
from tag_pose.worker import TagPoseWorker, to_gray


class RecordingOutput:
    def __init__(self):
        self.events = []

    def open(self):
        self.events.append(("open",))

    def frame_started(self, frame_idx, count):
        self.events.append(("start", frame_idx, count))

    def write_observation(self, frame_idx, obs):
        self.events.append(("obs", frame_idx, obs.detection.tag_id))

    def frame_finished(self, result):
        self.events.append(("done", result.frame_idx, result.tag_count))

    def close(self):
        self.events.append(("close",))


def _worker(frames, batches, **kwargs):
    source = FakeSource(frames)
    detector = FakeDetector(batches)
    display = kwargs.pop("display", RecordingDisplay())
    return TagPoseWorker(source, detector, LibraryPoseEstimator(), display=display, **kwargs)


def test_to_gray_converts_bgr_and_passes_gray_through():
    bgr = np.zeros((4, 5, 3), dtype=np.uint8)
    bgr[..., 2] = 255
    gray = to_gray(bgr)
    assert gray.shape == (4, 5)
    assert gray.dtype == np.uint8
    single = np.zeros((4, 5), dtype=np.uint8)
    assert to_gray(single) is single


def test_identity_pose_scenario():
    """tag36h11, identity rotation, t=(0,0,1) -> camera at (0,0,-1)."""
    det = make_detection(tag_id=0, R=np.eye(3), t=(0.0, 0.0, 1.0))
    w = _worker([make_frame()], [[det]])

    result = w.process_frame(make_frame())

    assert result.tag_count == 1
    obs = result.observations[0]
    assert np.allclose(obs.report.camera_position, [0.0, 0.0, -1.0])
    assert (obs.report.roll, obs.report.pitch, obs.report.yaw) == pytest.approx((0.0, 0.0, 0.0))


def test_detector_receives_grayscale():
    w = _worker([], [[]])
    w.process_frame(make_frame(width=30, height=20))
    gray = w.detector.images[0]
    assert gray.shape == (20, 30)


def test_annotation_count_matches_detection_count(monkeypatch):
    drawn = []
    monkeypatch.setattr(worker_mod, "draw_detection", lambda img, det: drawn.append(det.tag_id))
    dets = [make_detection(tag_id=i) for i in (3, 1, 2)]
    w = _worker([], [dets])

    result = w.process_frame(make_frame())

    assert result.tag_count == len(dets)
    assert drawn == [1, 2, 3]


def test_detections_processed_in_id_order():
    out = RecordingOutput()
    dets = [make_detection(tag_id=i) for i in (9, 2, 5)]
    w = _worker([], [dets], outputs=[out])

    result = w.process_frame(make_frame(idx=4))

    assert [o.detection.tag_id for o in result.observations] == [2, 5, 9]
    assert out.events == [
        ("start", 4, 3),
        ("obs", 4, 2),
        ("obs", 4, 5),
        ("obs", 4, 9),
        ("done", 4, 3),
    ]


def test_zero_detections_loop_continues():
    display = RecordingDisplay()
    w = _worker([make_frame(1), make_frame(2), make_frame(3)], [[], [], []], display=display)

    summary = w.run()

    assert summary.frames_processed == 3
    assert summary.detections == 0
    assert summary.read_errors == 0
    assert len(display.shown) == 3
    assert all(not img.any() for img in display.shown)


def test_frame_is_annotated_before_display():
    display = RecordingDisplay()
    w = _worker([make_frame(1)], [[make_detection(tag_id=1)]], display=display)
    w.run()
    assert display.shown[0].any()


def test_run_counts_detections_and_stops_on_quit_key():
    display = RecordingDisplay(quit_after=2)
    frames = [make_frame(i) for i in range(1, 6)]
    batches = [[make_detection(1)], [make_detection(1), make_detection(2)], [make_detection(3)]]
    w = _worker(frames, batches, display=display)

    summary = w.run()

    assert summary.frames_processed == 2
    assert summary.detections == 3
    assert w.source.frames  # unread frames remain
    assert w.detector.closed and w.source.stopped and display.closed


def test_max_frames_limit():
    w = _worker([make_frame(i) for i in range(1, 10)], [], max_frames=4)
    assert w.run().frames_processed == 4


def test_stop_before_run_processes_nothing():
    w = _worker([make_frame(1)], [])
    w.stop()
    summary = w.run()
    assert summary.frames_processed == 0
    assert w.source.started and w.source.stopped


def test_read_failures_are_counted_and_skipped():
    frames = [None, make_frame(1), None, None, make_frame(2)]
    source = FakeSource(frames)
    w = TagPoseWorker(source, FakeDetector([]), LibraryPoseEstimator(), display=RecordingDisplay())

    summary = w.run()

    assert summary.frames_processed == 2
    assert summary.read_errors == 3


def test_consecutive_read_failures_stop_the_loop():
    source = FakeSource([], exhaust_when_empty=False)
    w = TagPoseWorker(
        source, FakeDetector([]), LibraryPoseEstimator(), max_read_failures=5
    )

    summary = w.run()

    assert summary.frames_processed == 0
    assert summary.read_errors == 5
    assert source.stopped


def test_exhausted_source_ends_without_error():
    w = _worker([make_frame(1)], [])
    summary = w.run()
    assert summary.frames_processed == 1
    assert summary.read_errors == 0


def test_pose_failure_propagates_after_cleanup():
    out = RecordingOutput()
    bad = make_detection(tag_id=1)
    bad.library_pose = None
    w = _worker([make_frame(1)], [[bad]], outputs=[out])

    with pytest.raises(PoseEstimationError):
        w.run()

    assert w.detector.closed
    assert w.source.stopped
    assert out.events[-1] == ("close",)


def test_source_open_failure_propagates():
    class BrokenSource(FakeSource):
        def start(self):
            raise FrameSourceError("no camera")

    out = RecordingOutput()
    w = TagPoseWorker(BrokenSource([]), FakeDetector([]), LibraryPoseEstimator(), outputs=[out])
    with pytest.raises(FrameSourceError):
        w.run()

    assert w.detector.closed
    assert ("open",) not in out.events
    assert out.events == [("close",)]


def test_output_open_failure_releases_source_and_detector():
    class UnwritableOutput(RecordingOutput):
        def open(self):
            raise OSError("no such directory")

    display = RecordingDisplay()
    w = _worker([make_frame(1)], [[]], display=display, outputs=[UnwritableOutput()])

    with pytest.raises(OSError):
        w.run()

    assert w.source.started
    assert w.source.stopped
    assert w.detector.closed
    assert display.closed
    assert display.shown == []


def test_console_output_through_worker():
    stream = io.StringIO()
    R = euler_to_rotation(5.0, 10.0, 30.0)
    det = make_detection(tag_id=4, R=R, t=(0.0, 0.0, 2.0))
    w = _worker([make_frame(1)], [[det]], outputs=[ConsoleOutput(stream=stream)])

    w.run()

    text = stream.getvalue()
    assert text.startswith("1 tags detected\n")
    assert "theta_x is 5\ttheta_y is 10\ttheta_z is 30" in text
    assert "Time spent:" in text
