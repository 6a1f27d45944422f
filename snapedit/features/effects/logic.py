from dataclasses import dataclass, field
from typing import Dict, Optional
import numpy as np
from numba import njit, prange  # type: ignore
from snapedit.domain.types import ImageBuffer
from snapedit.features.effects.models import EffectsConfig, FilterType

_ALPHA_ROW = [0.0, 0.0, 0.0, 1.0, 0.0]

FILTER_MATRICES: Dict[FilterType, Optional[list[list[float]]]] = {
    FilterType.ORIGINAL: None,
    FilterType.BW: [
        [0.33, 0.59, 0.11, 0.0, 0.0],
        [0.33, 0.59, 0.11, 0.0, 0.0],
        [0.33, 0.59, 0.11, 0.0, 0.0],
        _ALPHA_ROW,
    ],
    FilterType.RETRO: [
        [0.9, 0.5, 0.1, 0.0, -20.0],
        [0.3, 0.8, 0.2, 0.0, -20.0],
        [0.2, 0.3, 0.7, 0.0, -20.0],
        _ALPHA_ROW,
    ],
    FilterType.FRESH: [
        [1.1, 0.0, 0.0, 0.0, 10.0],
        [0.0, 1.1, 0.0, 0.0, 10.0],
        [0.0, 0.0, 1.1, 0.0, 10.0],
        _ALPHA_ROW,
    ],
    FilterType.WARM: [
        [1.1, 0.1, 0.0, 0.0, 10.0],
        [0.0, 1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 0.9, 0.0, 0.0],
        _ALPHA_ROW,
    ],
    FilterType.COOL: [
        [0.9, 0.0, 0.0, 0.0, -10.0],
        [0.0, 1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 1.1, 0.0, 15.0],
        _ALPHA_ROW,
    ],
}


def _identity_matrix() -> np.ndarray:
    return np.hstack([np.eye(4), np.zeros((4, 1))])


@dataclass(frozen=True)
class ColorTransform:
    """
    4x5 affine operator over RGBA in 0..255 units: out = M[:, :4] @ rgba + M[:, 4].
    """

    matrix: np.ndarray = field(default_factory=_identity_matrix)

    def __post_init__(self) -> None:
        m = np.asarray(self.matrix, dtype=np.float64)
        if m.shape != (4, 5):
            raise ValueError(f"ColorTransform needs a 4x5 matrix, got {m.shape}")
        m.setflags(write=False)
        object.__setattr__(self, "matrix", m)

    @classmethod
    def identity(cls) -> "ColorTransform":
        return cls()

    def then(self, other: "ColorTransform") -> "ColorTransform":
        """
        Composes so that ``other`` is applied after ``self``.
        """
        combined = _homogeneous(other.matrix) @ _homogeneous(self.matrix)
        return ColorTransform(combined[:4, :])

    @property
    def is_identity(self) -> bool:
        return bool(np.allclose(self.matrix, _identity_matrix()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColorTransform):
            return NotImplemented
        return bool(np.array_equal(self.matrix, other.matrix))

    def __hash__(self) -> int:
        return hash(self.matrix.tobytes())


def _homogeneous(m: np.ndarray) -> np.ndarray:
    h = np.eye(5)
    h[:4, :] = m
    return h


def filter_transform(filter_type: FilterType) -> ColorTransform:
    rows = FILTER_MATRICES[FilterType(filter_type)]
    if rows is None:
        return ColorTransform.identity()
    return ColorTransform(np.array(rows, dtype=np.float64))


def brightness_contrast_transform(brightness: float, contrast: float) -> ColorTransform:
    """
    Brightness +-100 maps to an additive +-255 offset; contrast scales RGB uniformly.
    """
    b = brightness * 2.55
    c = contrast
    return ColorTransform(
        np.array(
            [
                [c, 0.0, 0.0, 0.0, b],
                [0.0, c, 0.0, 0.0, b],
                [0.0, 0.0, c, 0.0, b],
                _ALPHA_ROW,
            ],
            dtype=np.float64,
        )
    )


def compile_color_transform(filter_type: FilterType, brightness: float, contrast: float) -> ColorTransform:
    """
    Filter first, brightness/contrast on top. The order is not commutative.
    """
    return filter_transform(filter_type).then(brightness_contrast_transform(brightness, contrast))


def compile_effects(effects: EffectsConfig) -> ColorTransform:
    return compile_color_transform(FilterType(effects.filter), effects.brightness, effects.contrast)


@njit(parallel=True, cache=True, fastmath=True)
def _apply_color_matrix_jit(img: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    RGB(A) uint8 -> RGBA uint8 through a 4x5 matrix. Missing alpha reads as opaque.
    """
    h, w, c = img.shape
    res = np.empty((h, w, 4), dtype=np.uint8)
    for y in prange(h):
        for x in range(w):
            r = np.float32(img[y, x, 0])
            g = np.float32(img[y, x, 1])
            b = np.float32(img[y, x, 2])
            a = np.float32(255.0)
            if c == 4:
                a = np.float32(img[y, x, 3])
            for ch in range(4):
                v = matrix[ch, 0] * r + matrix[ch, 1] * g + matrix[ch, 2] * b + matrix[ch, 3] * a + matrix[ch, 4] + 0.5
                if v < 0.0:
                    v = 0.0
                elif v > 255.0:
                    v = 255.0
                res[y, x, ch] = np.uint8(v)
    return res


def apply_color_transform(img: ImageBuffer, transform: ColorTransform) -> ImageBuffer:
    """
    Draws a buffer through the operator into a newly allocated RGBA buffer.
    """
    res: np.ndarray = _apply_color_matrix_jit(
        np.ascontiguousarray(img),
        np.ascontiguousarray(transform.matrix.astype(np.float32)),
    )
    return res
