import os
from typing import Optional, Tuple
import numpy as np
import rawpy
from PIL import UnidentifiedImageError
from snapedit.domain.errors import DecodeFailure, EditError, InvalidSource, OutOfMemoryFailure
from snapedit.domain.types import AppConfig, ImageBuffer
from snapedit.infrastructure.loaders.factory import LoaderFactory, loader_factory
from snapedit.kernel.image.logic import downsample_to_fit, ensure_rgb, to_uint8
from snapedit.kernel.image.raster import PixelFormat, Raster
from snapedit.kernel.system.config import APP_CONFIG
from snapedit.kernel.system.logging import get_logger

logger = get_logger(__name__)

_LOADER_ERRORS = (OSError, ValueError, UnidentifiedImageError, rawpy.LibRawError)


class TierDecoder:
    """
    Turns a source path into bounded rasters for the preview and full tiers.
    """

    def __init__(self, config: AppConfig = APP_CONFIG, factory: LoaderFactory = loader_factory) -> None:
        self.config = config
        self.factory = factory

    def decode(self, source_id: str, max_width: int, max_height: int, pixel_format: PixelFormat) -> Raster:
        img = self._load(source_id)
        return self._to_raster(source_id, img, max_width, max_height, pixel_format)

    def decode_tiers(self, source_id: str) -> Tuple[Raster, Optional[Raster]]:
        """
        Loads once and derives both tiers. The full tier is None above the source pixel threshold.
        """
        img = self._load(source_id)
        h, w = img.shape[:2]

        p_max = self.config.preview_max_size
        preview = self._to_raster(source_id, img, p_max, p_max, PixelFormat.RGB565)

        threshold = self.config.full_tier_max_source_pixels
        if threshold is not None and w * h > threshold:
            logger.info(f"Skipping full tier for {source_id}: {w}x{h} exceeds {threshold} pixels")
            return preview, None

        f_max = self.config.full_max_size
        try:
            full = self._to_raster(source_id, img, f_max, f_max, PixelFormat.RGBA8888)
        except EditError:
            preview.release()
            raise
        return preview, full

    def _load(self, source_id: str) -> ImageBuffer:
        if not source_id or not os.path.isfile(source_id):
            raise InvalidSource(f"Source not found: {source_id}")
        if not self.factory.can_handle(source_id):
            raise InvalidSource(f"Unsupported file type: {source_id}")

        try:
            ctx_mgr, _ = self.factory.get_loader(source_id)
            with ctx_mgr as raw:
                rgb = raw.postprocess(use_camera_wb=True, output_bps=8)
                img = ensure_rgb(to_uint8(np.ascontiguousarray(rgb)))
        except MemoryError as e:
            raise OutOfMemoryFailure(f"Not enough memory to decode {source_id}") from e
        except _LOADER_ERRORS as e:
            logger.error(f"Decode failed for {source_id}: {e}")
            raise DecodeFailure(f"Cannot decode {source_id}: {e}") from e

        if img.ndim != 3 or img.shape[2] not in (3, 4) or img.shape[0] < 1 or img.shape[1] < 1:
            raise DecodeFailure(f"Unexpected buffer shape {img.shape} for {source_id}")
        return img

    @staticmethod
    def _to_raster(source_id: str, img: ImageBuffer, max_width: int, max_height: int, pixel_format: PixelFormat) -> Raster:
        try:
            return Raster.from_array(downsample_to_fit(img, max_width, max_height), pixel_format)
        except MemoryError as e:
            raise OutOfMemoryFailure(f"Not enough memory for {pixel_format} tier of {source_id}") from e
