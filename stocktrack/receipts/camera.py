"""USB/webcam receipt capture using OpenCV."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .image import RawImage


@dataclass
class CameraCapture:
    camera_index: int
    image: RawImage
    captured_at: str  # ISO8601
    image_path: str = ""


class ReceiptCamera:
    """Grab a receipt photo from an attached camera."""

    def __init__(self, camera_index: int = 0, save_dir: str | None = None) -> None:
        self._camera_index = camera_index
        self._save_dir = Path(save_dir).expanduser() if save_dir else None
        if self._save_dir is not None:
            self._save_dir.mkdir(parents=True, exist_ok=True)

    def capture(self, camera_index: int | None = None) -> CameraCapture:
        """Capture a single frame.

        The frame is kept in memory; it is also written to ``save_dir`` when
        one was configured.
        """
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        index = self._camera_index if camera_index is None else camera_index
        cap = cv2.VideoCapture(index)
        if not cap.isOpened():
            raise RuntimeError(
                f"Could not open camera {index}. Check that it is connected."
            )

        try:
            ret, frame = cap.read()
            if not ret or frame is None:
                raise RuntimeError(f"Camera {index} returned no frame.")

            now = datetime.now(timezone.utc)
            image_path = ""
            if self._save_dir is not None:
                filename = f"receipt_cam{index}_{now.strftime('%Y%m%d_%H%M%S')}.jpg"
                filepath = self._save_dir / filename
                cv2.imwrite(str(filepath), frame)
                image_path = str(filepath)

            return CameraCapture(
                camera_index=index,
                image=RawImage(frame),
                captured_at=now.isoformat(),
                image_path=image_path,
            )
        finally:
            cap.release()

    @staticmethod
    def list_cameras(max_check: int = 10) -> list[int]:
        """List available camera indices by probing."""
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "opencv-python is required: pip install opencv-python"
            ) from None

        available: list[int] = []
        for i in range(max_check):
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                available.append(i)
                cap.release()
        return available
