import math
from dataclasses import replace
from typing import List, Sequence, Tuple
from snapedit.domain.types import Dimensions, ROI
from snapedit.features.annotations.models import Annotation, StickerPayload
from snapedit.features.geometry.logic import normalized_rect_to_roi
from snapedit.features.geometry.models import EditKind, FlipAxis, GeometryEdit


class CoordinateMapper:
    """
    Keeps annotations pinned to image content across geometric edits.
    Dimensions are (height, width) of the preview tier.
    """

    @staticmethod
    def map_annotations(
        annotations: Sequence[Annotation],
        edit: GeometryEdit,
        before: Dimensions,
        after: Dimensions,
    ) -> List[Annotation]:
        match edit.kind:
            case EditKind.CROP:
                if edit.rect is None:
                    raise ValueError("Crop edit without a rect")
                h, w = before
                roi = normalized_rect_to_roi(edit.rect, w, h)
                return [CoordinateMapper.after_crop(a, roi, before) for a in annotations]
            case EditKind.ROTATE:
                return [CoordinateMapper.after_rotation(a, edit.degrees, before, after) for a in annotations]
            case EditKind.FLIP:
                if edit.axis is None:
                    raise ValueError("Flip edit without an axis")
                return [CoordinateMapper.after_flip(a, edit.axis) for a in annotations]
        raise ValueError(f"Unknown geometry edit: {edit.kind}")

    @staticmethod
    def after_crop(annotation: Annotation, roi: ROI, before: Dimensions) -> Annotation:
        h, w = before
        y1, y2, x1, x2 = roi
        new_w, new_h = x2 - x1, y2 - y1

        nx = (annotation.x * w - x1) / new_w
        ny = (annotation.y * h - y1) / new_h
        moved = annotation.moved(nx, ny)

        if isinstance(moved.payload, StickerPayload):
            scale = min(new_w / w, new_h / h)
            moved = moved.with_payload(
                scale_x=moved.payload.scale_x * scale,
                scale_y=moved.payload.scale_y * scale,
            )
        return moved

    @staticmethod
    def rotate_point(dx: float, dy: float, degrees: float) -> Tuple[float, float]:
        """
        Clockwise on screen (y grows downwards).
        """
        rad = math.radians(degrees)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
        return dx * cos_a - dy * sin_a, dx * sin_a + dy * cos_a

    @staticmethod
    def after_rotation(annotation: Annotation, degrees: float, before: Dimensions, after: Dimensions) -> Annotation:
        h, w = before
        new_h, new_w = after

        dx = annotation.x * w - w / 2.0
        dy = annotation.y * h - h / 2.0
        rx, ry = CoordinateMapper.rotate_point(dx, dy, degrees)

        nx = (new_w / 2.0 + rx) / new_w
        ny = (new_h / 2.0 + ry) / new_h
        return replace(annotation, x=nx, y=ny, rotation=(annotation.rotation + degrees) % 360.0)

    @staticmethod
    def after_flip(annotation: Annotation, axis: FlipAxis) -> Annotation:
        horizontal = FlipAxis(axis) == FlipAxis.HORIZONTAL
        if horizontal:
            moved = annotation.moved(1.0 - annotation.x - annotation.extent_w, annotation.y)
        else:
            moved = annotation.moved(annotation.x, 1.0 - annotation.y - annotation.extent_h)

        if isinstance(moved.payload, StickerPayload):
            if horizontal:
                moved = moved.with_payload(scale_x=-moved.payload.scale_x)
            else:
                moved = moved.with_payload(scale_y=-moved.payload.scale_y)
        return moved
