import numpy as np
from PIL import Image, ImageOps
from typing import Any, ContextManager, Tuple
from snapedit.domain.interfaces import IImageLoader
from snapedit.infrastructure.loaders.helpers import NonStandardFileWrapper


class PillowLoader(IImageLoader):
    """
    JPEG/PNG/WebP/BMP via Pillow, EXIF orientation applied.
    """

    def load(self, file_path: str) -> Tuple[ContextManager[Any], dict]:
        with Image.open(file_path) as img:
            orientation = img.getexif().get(0x0112, 1)
            img = ImageOps.exif_transpose(img)
            mode = "RGBA" if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info else "RGB"
            data = np.asarray(img.convert(mode))

        metadata = {"orientation": orientation, "mode": mode}
        return NonStandardFileWrapper(np.ascontiguousarray(data)), metadata
