from snapedit.domain.errors import OutOfMemoryFailure
from snapedit.domain.types import ROI
from snapedit.features.geometry.models import EditKind, FlipAxis, GeometryEdit
from snapedit.features.geometry.logic import (
    crop_buffer,
    flip_buffer,
    normalized_rect_to_roi,
    roi_from_pixel_rect,
    rotate_buffer,
)
from snapedit.kernel.image.raster import Raster


class GeometryTransformer:
    """
    Crop/rotate/flip over rasters. Every call returns a new raster in the source's format.
    """

    def rotate(self, raster: Raster, degrees: float) -> Raster:
        return self._wrap(raster, lambda img: rotate_buffer(img, degrees))

    def flip(self, raster: Raster, axis: FlipAxis) -> Raster:
        return self._wrap(raster, lambda img: flip_buffer(img, axis))

    def crop(self, raster: Raster, roi: ROI) -> Raster:
        y1, y2, x1, x2 = roi
        clamped = roi_from_pixel_rect(x1, y1, x2, y2, raster.width, raster.height)
        return self._wrap(raster, lambda img: crop_buffer(img, clamped))

    def apply(self, raster: Raster, edit: GeometryEdit) -> Raster:
        """
        Applies a resolution-independent edit at this raster's own scale.
        """
        match edit.kind:
            case EditKind.ROTATE:
                return self.rotate(raster, edit.degrees)
            case EditKind.FLIP:
                if edit.axis is None:
                    raise ValueError("Flip edit without an axis")
                return self.flip(raster, edit.axis)
            case EditKind.CROP:
                if edit.rect is None:
                    raise ValueError("Crop edit without a rect")
                roi = normalized_rect_to_roi(edit.rect, raster.width, raster.height)
                return self.crop(raster, roi)
        raise ValueError(f"Unknown geometry edit: {edit.kind}")

    @staticmethod
    def _wrap(raster: Raster, op) -> Raster:
        try:
            return Raster(op(raster.data), raster.pixel_format)
        except MemoryError as e:
            raise OutOfMemoryFailure(f"Not enough memory to transform {raster!r}") from e
