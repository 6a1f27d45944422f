from typing import Any, ContextManager, Optional, Protocol, Tuple
from snapedit.kernel.image.raster import PixelFormat, Raster


class IImageLoader(Protocol):
    """
    Loads specific image formats. Returns (context, metadata).
    """

    def load(self, file_path: str) -> Tuple[ContextManager[Any], dict]: ...


class IDecoder(Protocol):
    """
    Produces a raster bounded by the given size. Raises InvalidSource, DecodeFailure or OutOfMemoryFailure.
    """

    def decode(self, source_id: str, max_width: int, max_height: int, pixel_format: PixelFormat) -> Raster: ...

    def decode_tiers(self, source_id: str) -> Tuple[Raster, Optional[Raster]]: ...


class IPersister(Protocol):
    def save(self, file_name: str, raster: Raster) -> bool: ...


class IRepository(Protocol):
    """
    Persists session snapshots by key.
    """

    def initialize(self) -> None: ...
    def save_snapshot(self, key: str, blob: bytes) -> None: ...
    def load_snapshot(self, key: str) -> Optional[bytes]: ...
    def delete_snapshot(self, key: str) -> None: ...
