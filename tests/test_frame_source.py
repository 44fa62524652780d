from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from tag_pose import frame_source as source_mod
from tag_pose.errors import FrameSourceError
from tag_pose.frame_source import DeviceCameraSource, SyntheticSource, VideoFileSource


@patch("tag_pose.frame_source.cv2.VideoCapture")
def test_device_source_reads_frames(mock_cap_class):
    """Device source should configure the camera and yield Frame objects."""
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.read.return_value = (True, "image")
    mock_cap.get.return_value = 640
    mock_cap_class.return_value = mock_cap

    source = DeviceCameraSource(device=1, fps=20, width=640, height=480)
    source.start()
    first = source.read()
    second = source.read()
    source.stop()
    source.stop()

    mock_cap_class.assert_called_once_with(1)
    mock_cap.set.assert_any_call(source_mod.cv2.CAP_PROP_FRAME_WIDTH, 640)
    mock_cap.set.assert_any_call(source_mod.cv2.CAP_PROP_FRAME_HEIGHT, 480)
    mock_cap.set.assert_any_call(source_mod.cv2.CAP_PROP_FPS, 20)
    assert first.image == "image"
    assert (first.idx, second.idx) == (1, 2)
    assert first.timestamp_ns > 0
    mock_cap.release.assert_called_once()


@patch("tag_pose.frame_source.cv2.VideoCapture")
def test_device_source_skips_unset_properties(mock_cap_class):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.get.return_value = 0
    mock_cap_class.return_value = mock_cap

    DeviceCameraSource().start()
    mock_cap.set.assert_not_called()


@patch("tag_pose.frame_source.cv2.VideoCapture")
def test_device_source_v4l2_path(mock_cap_class):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.get.return_value = 0
    mock_cap_class.return_value = mock_cap

    DeviceCameraSource(device="/dev/video2").start()
    mock_cap_class.assert_called_once_with(2, source_mod.cv2.CAP_V4L2)


@patch("tag_pose.frame_source.cv2.VideoCapture")
def test_device_source_open_failure(mock_cap_class):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = False
    mock_cap_class.return_value = mock_cap

    source = DeviceCameraSource(device=0)
    with pytest.raises(FrameSourceError):
        source.start()
    mock_cap.release.assert_called_once()
    assert source.read() is None


@patch("tag_pose.frame_source.cv2.VideoCapture")
def test_device_source_failed_read_returns_none(mock_cap_class):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.get.return_value = 0
    mock_cap.read.return_value = (False, None)
    mock_cap_class.return_value = mock_cap

    source = DeviceCameraSource()
    source.start()
    assert source.read() is None
    assert source.exhausted is False


@patch("tag_pose.frame_source.cv2.VideoCapture")
def test_video_source_becomes_exhausted(mock_cap_class):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.read.side_effect = [(True, "a"), (False, None)]
    mock_cap_class.return_value = mock_cap

    with VideoFileSource("clip.mp4") as source:
        assert source.read().image == "a"
        assert source.exhausted is False
        assert source.read() is None
        assert source.exhausted is True

    mock_cap_class.assert_called_once_with("clip.mp4")
    mock_cap.release.assert_called_once()


def test_video_source_missing_file(tmp_path):
    with pytest.raises(FrameSourceError):
        VideoFileSource(str(tmp_path / "missing.mp4")).start()


def test_synthetic_source_yields_blank_frames():
    source = SyntheticSource(fps=0, width=32, height=24)
    source.start()
    frame = source.read()
    assert frame.idx == 1
    assert frame.image.shape == (24, 32, 3)
    assert frame.image.dtype == np.uint8
    assert not frame.image.any()
    assert source.read().idx == 2
