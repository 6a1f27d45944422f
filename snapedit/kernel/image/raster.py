from enum import StrEnum
from typing import Optional
import numpy as np
from PIL import Image
from snapedit.domain.types import ImageBuffer
from snapedit.kernel.image.logic import add_opaque_alpha, ensure_rgb, quantize_rgb565, to_uint8


class PixelFormat(StrEnum):
    RGB565 = "RGB_565"
    RGBA8888 = "RGBA_8888"

    @property
    def bytes_per_pixel(self) -> int:
        return 2 if self is PixelFormat.RGB565 else 4

    @property
    def channels(self) -> int:
        return 3 if self is PixelFormat.RGB565 else 4

    @property
    def pil_mode(self) -> str:
        return "RGB" if self is PixelFormat.RGB565 else "RGBA"


class RasterReleasedError(RuntimeError):
    pass


class Raster:
    """
    Owned, reference-counted pixel buffer.

    A new raster starts with one reference held by its creator. ``retain`` and
    ``release`` must only be called from the coordinating thread; workers only
    read ``data`` from rasters their task keeps retained. Dimensions and byte
    size stay readable after the buffer is freed.
    """

    __slots__ = ("_data", "_refs", "pixel_format", "width", "height")

    def __init__(self, data: ImageBuffer, pixel_format: PixelFormat):
        if data.dtype != np.uint8 or data.ndim != 3 or data.shape[2] != pixel_format.channels:
            raise ValueError(f"Buffer {data.dtype}{data.shape} does not match {pixel_format}")
        if data.shape[0] < 1 or data.shape[1] < 1:
            raise ValueError("Raster must be at least 1x1")
        self._data: Optional[ImageBuffer] = np.ascontiguousarray(data)
        self._refs = 1
        self.pixel_format = pixel_format
        self.height, self.width = int(data.shape[0]), int(data.shape[1])

    @classmethod
    def from_array(cls, img: np.ndarray, pixel_format: PixelFormat) -> "Raster":
        """
        Converts any gray/RGB/RGBA buffer into the requested format. Always copies.
        """
        arr = ensure_rgb(to_uint8(img))
        if pixel_format is PixelFormat.RGB565:
            return cls(quantize_rgb565(arr), pixel_format)
        if arr.shape[2] == 4:
            return cls(arr.copy(), pixel_format)
        return cls(add_opaque_alpha(arr), pixel_format)

    @classmethod
    def from_pil(cls, img: Image.Image, pixel_format: PixelFormat) -> "Raster":
        return cls.from_array(np.asarray(img.convert(pixel_format.pil_mode)), pixel_format)

    @property
    def data(self) -> ImageBuffer:
        if self._data is None:
            raise RasterReleasedError(f"{self!r} was released")
        return self._data

    @property
    def is_released(self) -> bool:
        return self._data is None

    @property
    def ref_count(self) -> int:
        return self._refs

    @property
    def byte_count(self) -> int:
        return self.width * self.height * self.pixel_format.bytes_per_pixel

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def retain(self) -> "Raster":
        if self._data is None:
            raise RasterReleasedError(f"{self!r} was released")
        self._refs += 1
        return self

    def release(self) -> None:
        """Drops one reference; the buffer is freed with the last one."""
        if self._data is None:
            return
        self._refs -= 1
        if self._refs <= 0:
            self._refs = 0
            self._data = None

    def recycle(self) -> None:
        """Frees the buffer immediately regardless of outstanding references."""
        self._refs = 0
        self._data = None

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.data)

    def __repr__(self) -> str:
        state = "released" if self._data is None else f"refs={self._refs}"
        return f"Raster({self.width}x{self.height} {self.pixel_format}, {state})"
