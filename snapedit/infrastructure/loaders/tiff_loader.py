import numpy as np
import imageio.v3 as iio
from typing import Any, ContextManager, Tuple
from snapedit.domain.interfaces import IImageLoader
from snapedit.infrastructure.loaders.helpers import NonStandardFileWrapper
from snapedit.kernel.image.logic import ensure_rgb, to_uint8


class TiffLoader(IImageLoader):
    """
    Loader for TIFF scans (8/16-bit or float).
    """

    def load(self, file_path: str) -> Tuple[ContextManager[Any], dict]:
        img = iio.imread(file_path)
        if img.ndim == 3 and img.shape[2] == 2:
            img = img[:, :, 0]
        elif img.ndim == 3 and img.shape[2] > 4:
            img = img[:, :, :4]

        u8 = ensure_rgb(to_uint8(np.ascontiguousarray(img)))
        metadata = {"orientation": 1, "source_dtype": str(img.dtype)}
        return NonStandardFileWrapper(u8), metadata
