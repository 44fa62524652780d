"""Draw tag outlines and ids onto BGR frames (in place)."""

from __future__ import annotations

import cv2
import numpy as np

from .tag_types import Detection

# BGR
EDGE_BOTTOM = (0, 0xFF, 0)  # p0 -> p1
EDGE_LEFT = (0, 0, 0xFF)  # p0 -> p3
EDGE_OTHER = (0xFF, 0, 0)  # p1 -> p2, p2 -> p3
ID_COLOR = (0xFF, 0x99, 0)

LINE_THICKNESS = 2
ID_FONT = cv2.FONT_HERSHEY_SCRIPT_SIMPLEX
ID_FONT_SCALE = 1.0


def _pt(p) -> tuple[int, int]:
    return int(p[0]), int(p[1])


def draw_detection(frame: np.ndarray, det: Detection) -> None:
    p = np.asarray(det.corners).reshape(4, 2)
    cv2.line(frame, _pt(p[0]), _pt(p[1]), EDGE_BOTTOM, LINE_THICKNESS)
    cv2.line(frame, _pt(p[0]), _pt(p[3]), EDGE_LEFT, LINE_THICKNESS)
    cv2.line(frame, _pt(p[1]), _pt(p[2]), EDGE_OTHER, LINE_THICKNESS)
    cv2.line(frame, _pt(p[2]), _pt(p[3]), EDGE_OTHER, LINE_THICKNESS)

    text = str(det.tag_id)
    (w, h), _baseline = cv2.getTextSize(text, ID_FONT, ID_FONT_SCALE, LINE_THICKNESS)
    cx, cy = float(det.center[0]), float(det.center[1])
    origin = (int(cx - w / 2), int(cy + h / 2))
    cv2.putText(frame, text, origin, ID_FONT, ID_FONT_SCALE, ID_COLOR, LINE_THICKNESS)

