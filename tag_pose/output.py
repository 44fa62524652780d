from __future__ import annotations

import sys
import time
from abc import ABC, abstractmethod
from typing import Optional, TextIO

import numpy as np

from .csv_writer import CsvWriter
from .tag_types import FrameResult, TagObservation


def _fmt(values) -> str:
    return "  ".join(f"{float(v):g}" for v in np.asarray(values).reshape(-1))


class OutputSink(ABC):
    def open(self) -> None:
        return None

    def frame_started(self, frame_idx: int, detection_count: int) -> None:
        return None

    @abstractmethod
    def write_observation(self, frame_idx: int, obs: TagObservation) -> None: ...

    def frame_finished(self, result: FrameResult) -> None:
        return None

    def close(self) -> None:
        return None


class ConsoleOutput(OutputSink):
    """Human-readable per-frame report: tag count, raw pose, angles, latency."""

    def __init__(self, stream: Optional[TextIO] = None, quiet: bool = False):
        self.stream = stream
        self.quiet = quiet

    def _print(self, line: str) -> None:
        if not self.quiet:
            print(line, file=self.stream or sys.stdout)

    def frame_started(self, frame_idx: int, detection_count: int) -> None:
        self._print(f"{detection_count} tags detected")

    def write_observation(self, frame_idx: int, obs: TagObservation) -> None:
        R = np.asarray(obs.pose.R).reshape(3, 3)
        rep = obs.report
        self._print(f"T is {_fmt(obs.pose.t)}")
        self._print(f"R is {_fmt(R[0])}")
        self._print(_fmt(R[1]))
        self._print(_fmt(R[2]))
        self._print(f"result is {_fmt(rep.camera_position)}")
        self._print(
            f"theta_x is {rep.roll:g}\ttheta_y is {rep.pitch:g}\ttheta_z is {rep.yaw:g}"
        )

    def frame_finished(self, result: FrameResult) -> None:
        self._print(f"Time spent: {int(result.latency_ms)}ms")


class CsvOutput(OutputSink):
    def __init__(self, path: str):
        self.path = path
        self._writer: Optional[CsvWriter] = None

    def open(self) -> None:
        self._writer = CsvWriter(self.path)
        self._writer.open()

    def write_observation(self, frame_idx: int, obs: TagObservation) -> None:
        if self._writer is None:
            return
        rep = obs.report
        self._writer.append(
            time.time(),
            frame_idx,
            obs.detection.tag_id,
            obs.pose.t,
            (rep.roll, rep.pitch, rep.yaw),
            rep.camera_position,
            obs.pose.error,
        )

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class NullOutput(OutputSink):
    def write_observation(self, frame_idx: int, obs: TagObservation) -> None:
        return None
