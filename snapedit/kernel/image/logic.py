from typing import Tuple
import numpy as np
import cv2
from numba import njit, prange  # type: ignore
from snapedit.domain.types import ImageBuffer


@njit(parallel=True, cache=True, fastmath=True)
def _quantize_rgb565_jit(img: np.ndarray) -> np.ndarray:
    """
    Drops the low bits a 5/6/5 surface cannot hold.
    """
    h, w, _ = img.shape
    res = np.empty((h, w, 3), dtype=np.uint8)
    for y in prange(h):
        for x in range(w):
            res[y, x, 0] = img[y, x, 0] & 0xF8
            res[y, x, 1] = img[y, x, 1] & 0xFC
            res[y, x, 2] = img[y, x, 2] & 0xF8
    return res


@njit(parallel=True, cache=True, fastmath=True)
def _add_opaque_alpha_jit(img: np.ndarray) -> np.ndarray:
    h, w, _ = img.shape
    res = np.empty((h, w, 4), dtype=np.uint8)
    for y in prange(h):
        for x in range(w):
            res[y, x, 0] = img[y, x, 0]
            res[y, x, 1] = img[y, x, 1]
            res[y, x, 2] = img[y, x, 2]
            res[y, x, 3] = 255
    return res


def ensure_rgb(img: np.ndarray) -> np.ndarray:
    """
    Broadens single-channel or 2D arrays to 3-channel RGB.
    """
    if img.ndim == 2:
        return np.stack([img] * 3, axis=-1)
    if img.ndim == 3 and img.shape[2] == 1:
        return np.concatenate([img] * 3, axis=-1)
    return img


def to_uint8(img: np.ndarray) -> np.ndarray:
    """
    Narrows 16-bit or float [0,1] buffers to uint8.
    """
    if img.dtype == np.uint8:
        return img
    if img.dtype == np.uint16:
        return (img >> 8).astype(np.uint8)
    return (np.clip(np.nan_to_num(img.astype(np.float32)), 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


def quantize_rgb565(img: ImageBuffer) -> ImageBuffer:
    res: np.ndarray = _quantize_rgb565_jit(np.ascontiguousarray(img[..., :3]))
    return res


def add_opaque_alpha(img: ImageBuffer) -> ImageBuffer:
    res: np.ndarray = _add_opaque_alpha_jit(np.ascontiguousarray(img[..., :3]))
    return res


def fit_within(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """
    Largest (w, h) inside the bounds with the source aspect ratio. Never upscales.
    """
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    return max(1, int(width * scale)), max(1, int(height * scale))


def downsample_to_fit(img: ImageBuffer, max_width: int, max_height: int) -> ImageBuffer:
    h, w = img.shape[:2]
    target_w, target_h = fit_within(w, h, max_width, max_height)
    if (target_w, target_h) == (w, h):
        return img.copy()
    res: np.ndarray = cv2.resize(img, (target_w, target_h), interpolation=cv2.INTER_AREA)
    return res
