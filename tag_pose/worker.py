from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import cv2

from .annotate import draw_detection
from .detect import TagDetector, sort_detections
from .display import Display, NullDisplay
from .frame_source import FrameSource
from .output import OutputSink
from .pose import PoseEstimator
from .tag_types import Frame, FrameResult, TagObservation
from .transforms import summarize_pose

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    frames_processed: int
    detections: int
    read_errors: int
    avg_fps: float


def to_gray(image):
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class TagPoseWorker:
    """Capture -> detect -> pose -> annotate -> display, one frame at a time."""

    def __init__(
        self,
        source: FrameSource,
        detector: TagDetector,
        estimator: PoseEstimator,
        display: Optional[Display] = None,
        outputs: Optional[list[OutputSink]] = None,
        max_frames: Optional[int] = None,
        max_read_failures: int = 30,
    ):
        self.source = source
        self.detector = detector
        self.estimator = estimator
        self.display = display or NullDisplay()
        self.outputs = outputs or []
        self.max_frames = max_frames
        self.max_read_failures = max_read_failures
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def process_frame(self, frame: Frame, started: Optional[float] = None) -> FrameResult:
        """Run one frame through the pipeline, drawing onto ``frame.image``.

        ``started`` is the ``time.perf_counter()`` value at which the
        iteration began (before capture); defaults to now.
        """
        if started is None:
            started = time.perf_counter()

        gray = to_gray(frame.image)
        detections = sort_detections(self.detector.detect(gray))
        for out in self.outputs:
            out.frame_started(frame.idx, len(detections))

        result = FrameResult(frame.idx)
        for det in detections:
            pose = self.estimator.estimate(det)
            report = summarize_pose(pose)
            draw_detection(frame.image, det)
            obs = TagObservation(det, pose, report)
            result.observations.append(obs)
            for out in self.outputs:
                out.write_observation(frame.idx, obs)

        self.display.show(frame.image)
        result.latency_ms = (time.perf_counter() - started) * 1000.0
        for out in self.outputs:
            out.frame_finished(result)
        logger.debug(
            "frame=%d tags=%d latency_ms=%.1f",
            frame.idx,
            result.tag_count,
            result.latency_ms,
        )
        return result

    def run(self) -> RunSummary:
        """Loop until quit, stop(), max_frames, or the source gives out.

        Raises FrameSourceError if the source cannot be opened. That error,
        a failing output, and errors raised while processing a frame all
        propagate after every resource has been released.
        """
        t0 = time.time()
        frames = 0
        detections = 0
        errors = 0
        consecutive_failures = 0

        try:
            self.source.start()
            for out in self.outputs:
                out.open()

            while not self._stop_event.is_set():
                if self.max_frames is not None and frames >= self.max_frames:
                    break

                started = time.perf_counter()
                frame = self.source.read()
                if frame is None:
                    if self.source.exhausted:
                        logger.info("frame source exhausted")
                        break
                    errors += 1
                    consecutive_failures += 1
                    logger.warning("frame read failed (%d in a row)", consecutive_failures)
                    if consecutive_failures >= self.max_read_failures:
                        logger.error(
                            "giving up after %d consecutive read failures",
                            consecutive_failures,
                        )
                        break
                    continue
                consecutive_failures = 0

                result = self.process_frame(frame, started)
                frames += 1
                detections += result.tag_count

                if self.display.quit_requested():
                    break
        finally:
            self._release()

        avg = frames / max(1e-6, (time.time() - t0))
        logger.info(
            "summary frames=%d tags=%d avg_fps=%.2f read_errors=%d",
            frames,
            detections,
            avg,
            errors,
        )
        return RunSummary(frames, detections, errors, avg)

    def _release(self) -> None:
        for name, closer in (
            ("detector", self.detector.close),
            ("source", self.source.stop),
            ("display", self.display.close),
        ):
            try:
                closer()
            except Exception as exc:
                logger.warning("failed to release %s: %s", name, exc)

        for out in self.outputs:
            try:
                out.close()
            except Exception as exc:
                logger.warning("failed to close output %s: %s", type(out).__name__, exc)
