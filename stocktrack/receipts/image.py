"""Raster image loading and region-of-interest extraction using OpenCV."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .errors import InvalidRegion, UnsupportedFormat

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024


def _require_cv2():
    try:
        import cv2
    except ImportError:
        raise ImportError(
            "opencv-python is required: pip install opencv-python"
        ) from None
    return cv2


@dataclass(frozen=True, eq=False)
class RawImage:
    """An immutable bitmap at native resolution.

    ``pixels`` is an H×W (grayscale) or H×W×C array in OpenCV channel order.
    The array is marked read-only on construction.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim not in (2, 3) or self.pixels.size == 0:
            raise UnsupportedFormat(
                f"expected a non-empty 2D or 3D pixel array, got shape {self.pixels.shape}"
            )
        self.pixels.flags.writeable = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @property
    def dims(self) -> tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class CropRegion:
    """A rectangle in native-resolution pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    def as_tuple(self) -> tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height


def load_image(data: bytes) -> RawImage:
    """Decode JPEG/PNG/WebP/BMP/TIFF bytes into a RawImage.

    Colour depth and channel count are kept as stored in the file.

    Raises:
        UnsupportedFormat: If the bytes are empty, too large, or not an image.
    """
    if not data:
        raise UnsupportedFormat("no image data supplied")
    if len(data) > MAX_IMAGE_BYTES:
        raise UnsupportedFormat(
            f"image too large ({len(data)} bytes); the limit is {MAX_IMAGE_BYTES} bytes"
        )

    cv2 = _require_cv2()
    buf = np.frombuffer(data, dtype=np.uint8)
    try:
        pixels = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise UnsupportedFormat(f"could not decode image: {e}") from e
    if pixels is None:
        raise UnsupportedFormat("data is not a supported raster image")

    logger.debug("decoded image %s (%s)", pixels.shape, pixels.dtype)
    return RawImage(pixels)


def load_image_file(path: str | Path) -> RawImage:
    """Read and decode an image file."""
    return load_image(Path(path).expanduser().read_bytes())


def set_region(
    displayed_rect: tuple[float, float, float, float],
    displayed_dims: tuple[float, float],
    native_dims: tuple[int, int],
) -> CropRegion:
    """Translate a rectangle drawn on a scaled preview into native pixels.

    Args:
        displayed_rect: ``(x, y, width, height)`` in preview coordinates.
            A negative width or height (a drag towards the origin) is
            normalised.
        displayed_dims: ``(width, height)`` of the preview.
        native_dims: ``(width, height)`` of the underlying image.

    Raises:
        InvalidRegion: If any dimension is non-positive or the region is
            narrower or shorter than one native pixel after clamping.
    """
    disp_w, disp_h = displayed_dims
    native_w, native_h = native_dims
    if disp_w <= 0 or disp_h <= 0 or native_w <= 0 or native_h <= 0:
        raise InvalidRegion(
            f"image dimensions must be positive (displayed={displayed_dims}, native={native_dims})"
        )

    x, y, w, h = displayed_rect
    if w < 0:
        x, w = x + w, -w
    if h < 0:
        y, h = y + h, -h

    scale_x = native_w / disp_w
    scale_y = native_h / disp_h
    if w * scale_x < 1 or h * scale_y < 1:
        raise InvalidRegion(
            f"region {displayed_rect} is smaller than one native pixel"
        )

    left = max(0, int(round(x * scale_x)))
    top = max(0, int(round(y * scale_y)))
    right = min(native_w, int(round((x + w) * scale_x)))
    bottom = min(native_h, int(round((y + h) * scale_y)))

    if right - left < 1 or bottom - top < 1:
        raise InvalidRegion(f"region {displayed_rect} lies outside the image")

    return CropRegion(x=left, y=top, width=right - left, height=bottom - top)


def region_from_percent(
    x: float, y: float, width: float, height: float, native_dims: tuple[int, int]
) -> CropRegion:
    """Build a region from percentages (0-100) of the displayed image."""
    return set_region((x, y, width, height), (100.0, 100.0), native_dims)


def extract(image: RawImage, region: CropRegion) -> RawImage:
    """Copy the pixels inside ``region`` into a new RawImage."""
    if region.width < 1 or region.height < 1:
        raise InvalidRegion(f"empty region {region.as_tuple()}")
    if (
        region.x < 0
        or region.y < 0
        or region.x + region.width > image.width
        or region.y + region.height > image.height
    ):
        raise InvalidRegion(
            f"region {region.as_tuple()} exceeds image bounds {image.dims}"
        )

    cropped = image.pixels[
        region.y : region.y + region.height, region.x : region.x + region.width
    ].copy()
    return RawImage(cropped)


def to_grayscale(image: RawImage) -> RawImage:
    """Return a single-channel copy, as OCR engines read it best."""
    if image.channels == 1:
        return image
    cv2 = _require_cv2()
    code = cv2.COLOR_BGRA2GRAY if image.channels == 4 else cv2.COLOR_BGR2GRAY
    return RawImage(cv2.cvtColor(image.pixels, code))


def encode_png(image: RawImage) -> bytes:
    """Encode the image losslessly for upload to a remote engine."""
    cv2 = _require_cv2()
    ok, buf = cv2.imencode(".png", image.pixels)
    if not ok:
        raise UnsupportedFormat("could not encode image as PNG")
    return buf.tobytes()
