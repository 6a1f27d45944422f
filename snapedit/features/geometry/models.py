import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional


class FlipAxis(StrEnum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class EditKind(StrEnum):
    CROP = "crop"
    ROTATE = "rotate"
    FLIP = "flip"


@dataclass(frozen=True)
class NormalizedRect:
    """
    Crop rectangle as fractions of the preview tier's width/height.
    """

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def is_empty(self) -> bool:
        return self.width <= 0.0 or self.height <= 0.0

    @classmethod
    def from_roi(cls, roi: tuple[int, int, int, int], width: int, height: int) -> "NormalizedRect":
        y1, y2, x1, x2 = roi
        return cls(x1 / width, y1 / height, x2 / width, y2 / height)


@dataclass(frozen=True)
class GeometryEdit:
    """
    One geometric edit, expressed independently of any tier's resolution.
    """

    kind: EditKind
    degrees: float = 0.0
    axis: Optional[FlipAxis] = None
    rect: Optional[NormalizedRect] = None

    @classmethod
    def rotate(cls, degrees: float) -> "GeometryEdit":
        if not math.isfinite(degrees):
            raise ValueError(f"Rotation must be finite, got {degrees}")
        return cls(EditKind.ROTATE, degrees=float(degrees))

    @classmethod
    def flip(cls, axis: FlipAxis) -> "GeometryEdit":
        return cls(EditKind.FLIP, axis=FlipAxis(axis))

    @classmethod
    def crop(cls, rect: NormalizedRect) -> "GeometryEdit":
        return cls(EditKind.CROP, rect=rect)
