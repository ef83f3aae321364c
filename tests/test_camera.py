"""Tests for receipt camera capture (mocked OpenCV)."""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from stocktrack.receipts.camera import CameraCapture, ReceiptCamera
from stocktrack.receipts.image import RawImage


@pytest.fixture
def mock_cv2():
    """Inject a mock cv2 module into sys.modules."""
    mock = MagicMock()
    with patch.dict(sys.modules, {"cv2": mock}):
        yield mock


@pytest.fixture
def open_camera(mock_cv2):
    mock_cap = MagicMock()
    mock_cap.isOpened.return_value = True
    mock_cap.read.return_value = (True, np.zeros((480, 640, 3), dtype=np.uint8))
    mock_cv2.VideoCapture.return_value = mock_cap
    mock_cv2.imwrite.return_value = True
    return mock_cap


class TestReceiptCamera:
    def test_init_creates_save_dir(self, tmp_path):
        save_dir = tmp_path / "sub" / "dir"
        ReceiptCamera(save_dir=str(save_dir))
        assert save_dir.exists()

    def test_capture_in_memory(self, mock_cv2, open_camera):
        cam = ReceiptCamera(camera_index=0)
        result = cam.capture()

        assert isinstance(result, CameraCapture)
        assert isinstance(result.image, RawImage)
        assert result.image.dims == (640, 480)
        assert result.camera_index == 0
        assert result.captured_at  # ISO8601 string
        assert result.image_path == ""
        mock_cv2.imwrite.assert_not_called()
        open_camera.release.assert_called_once()

    def test_capture_saves_frame(self, mock_cv2, open_camera, tmp_path):
        cam = ReceiptCamera(camera_index=0, save_dir=str(tmp_path))
        result = cam.capture(2)

        assert result.camera_index == 2
        mock_cv2.VideoCapture.assert_called_once_with(2)
        assert Path(result.image_path).parent == tmp_path
        assert "receipt_cam2_" in result.image_path
        mock_cv2.imwrite.assert_called_once()

    def test_capture_camera_not_found(self, mock_cv2):
        mock_cap = MagicMock()
        mock_cap.isOpened.return_value = False
        mock_cv2.VideoCapture.return_value = mock_cap

        cam = ReceiptCamera(camera_index=0)
        with pytest.raises(RuntimeError, match="Could not open camera 0"):
            cam.capture()

    def test_capture_read_failure(self, mock_cv2):
        mock_cap = MagicMock()
        mock_cap.isOpened.return_value = True
        mock_cap.read.return_value = (False, None)
        mock_cv2.VideoCapture.return_value = mock_cap

        cam = ReceiptCamera(camera_index=0)
        with pytest.raises(RuntimeError, match="returned no frame"):
            cam.capture()
        mock_cap.release.assert_called_once()

    def test_list_cameras(self, mock_cv2):
        def make_cap(index):
            cap = MagicMock()
            cap.isOpened.return_value = index in (0, 2)
            return cap

        mock_cv2.VideoCapture.side_effect = make_cap
        assert ReceiptCamera.list_cameras(max_check=4) == [0, 2]
