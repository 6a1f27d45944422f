import math
from typing import Optional, Tuple
import numpy as np
import cv2
from snapedit.domain.errors import InvalidRegion
from snapedit.domain.types import ImageBuffer, ROI
from snapedit.features.geometry.models import FlipAxis, NormalizedRect


def _normalize_degrees(degrees: float) -> float:
    return float(degrees) % 360.0


def is_right_angle(degrees: float) -> bool:
    return _normalize_degrees(degrees) % 90.0 == 0.0


def rotated_dimensions(width: int, height: int, degrees: float) -> Tuple[int, int]:
    """
    (w, h) of the canvas that holds the whole rotated image.
    """
    deg = _normalize_degrees(degrees)
    if deg in (90.0, 270.0):
        return height, width
    if deg in (0.0, 180.0):
        return width, height
    rad = math.radians(deg)
    cos_a, sin_a = abs(math.cos(rad)), abs(math.sin(rad))
    new_w = int(round(width * cos_a + height * sin_a))
    new_h = int(round(width * sin_a + height * cos_a))
    return max(1, new_w), max(1, new_h)


def rotate_buffer(img: ImageBuffer, degrees: float) -> ImageBuffer:
    """
    Clockwise rotation (y-down). Right angles are lossless, others bilinear on an expanded canvas.
    """
    deg = _normalize_degrees(degrees)
    if deg == 0.0:
        return img.copy()

    if is_right_angle(deg):
        return np.ascontiguousarray(np.rot90(img, k=-int(deg // 90)))

    h, w = img.shape[:2]
    new_w, new_h = rotated_dimensions(w, h, deg)
    m_mat = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), -deg, 1.0)
    m_mat[0, 2] += new_w / 2.0 - w / 2.0
    m_mat[1, 2] += new_h / 2.0 - h / 2.0

    border = (0,) * img.shape[2]
    res: np.ndarray = cv2.warpAffine(
        img,
        m_mat,
        (new_w, new_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border,
    )
    return res


def flip_buffer(img: ImageBuffer, axis: FlipAxis) -> ImageBuffer:
    if FlipAxis(axis) == FlipAxis.HORIZONTAL:
        return np.ascontiguousarray(np.fliplr(img))
    return np.ascontiguousarray(np.flipud(img))


def crop_buffer(img: ImageBuffer, roi: ROI) -> ImageBuffer:
    y1, y2, x1, x2 = roi
    return np.ascontiguousarray(img[y1:y2, x1:x2]).copy()


def _to_pixel(value: float, size: int) -> int:
    # Guards against 0.25 * 1024 landing on 255.99999
    return int(math.floor(value * size + 1e-6))


def normalized_rect_to_roi(rect: NormalizedRect, width: int, height: int) -> ROI:
    """
    Re-derives a pixel ROI for one tier from the shared normalized rect.
    """
    if not all(math.isfinite(v) for v in (rect.left, rect.top, rect.right, rect.bottom)):
        raise InvalidRegion(f"Crop region has non-finite bounds: {rect}")
    if rect.is_empty:
        raise InvalidRegion(f"Crop region collapses to zero area: {rect}")

    x1 = min(max(_to_pixel(rect.left, width), 0), width - 1)
    y1 = min(max(_to_pixel(rect.top, height), 0), height - 1)
    x2 = min(max(_to_pixel(rect.right, width), 0), width)
    y2 = min(max(_to_pixel(rect.bottom, height), 0), height)

    # Nothing of the rect left inside the image
    if x2 <= x1 or y2 <= y1:
        raise InvalidRegion(f"Crop region {rect} is empty within {width}x{height}")
    return y1, y2, x1, x2


def roi_from_pixel_rect(left: int, top: int, right: int, bottom: int, width: int, height: int) -> ROI:
    """
    Clamps a pixel rect to the image. Rejects it when nothing is left.
    """
    x1 = int(max(0, min(left, width)))
    x2 = int(max(0, min(right, width)))
    y1 = int(max(0, min(top, height)))
    y2 = int(max(0, min(bottom, height)))
    if x2 - x1 <= 0 or y2 - y1 <= 0:
        raise InvalidRegion(f"Crop region ({left}, {top}, {right}, {bottom}) is empty within {width}x{height}")
    return y1, y2, x1, x2


def aspect_crop_roi(width: int, height: int, aspect_ratio: Optional[float]) -> ROI:
    """
    Centered crop to an aspect ratio (w/h). Without one, keeps the middle 60% band vertically.
    """
    if aspect_ratio is None:
        return int(height * 0.2), int(height * 0.8), 0, width

    if aspect_ratio <= 0:
        raise InvalidRegion(f"Aspect ratio must be positive, got {aspect_ratio}")

    current = width / height
    if current > aspect_ratio:
        target_w = max(1, int(height * aspect_ratio))
        x1 = (width - target_w) // 2
        return 0, height, x1, x1 + target_w

    target_h = max(1, int(width / aspect_ratio))
    y1 = (height - target_h) // 2
    return y1, y1 + target_h, 0, width
