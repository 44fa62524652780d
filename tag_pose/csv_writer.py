import csv

import numpy as np


class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "tag_id",
        "tx", "ty", "tz",
        "roll_deg", "pitch_deg", "yaw_deg",
        "cam_x", "cam_y", "cam_z",
        "pose_error",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _vec3(vec):
        if vec is None:
            return [float("nan")] * 3
        a = np.asarray(vec, dtype=np.float64).reshape(-1).tolist()
        if len(a) < 3:
            a += [float("nan")] * (3 - len(a))
        return a[:3]

    def append(self, ts_unix, frame_idx, tag_id, tvec, euler_deg, cam_pos, pose_error):
        if not self._opened:
            raise RuntimeError("CsvWriter.append called before open()")
        self._w.writerow([
            f"{ts_unix:.6f}",
            frame_idx, tag_id,
            *self._vec3(tvec),
            *self._vec3(euler_deg),
            *self._vec3(cam_pos),
            pose_error,
        ])

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
