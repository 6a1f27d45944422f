from dataclasses import dataclass, field
from typing import Optional
from snapedit.kernel.image.raster import Raster


def raster_kb(raster: Optional[Raster]) -> int:
    if raster is None or raster.is_released:
        return 0
    return raster.byte_count // 1024


@dataclass(frozen=True)
class CacheEntry:
    """
    Decoded tiers for one source. ``size_kb`` is fixed at construction.
    """

    preview: Raster
    full: Optional[Raster] = None
    size_kb: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "size_kb", max(1, raster_kb(self.preview) + raster_kb(self.full)))

    @property
    def is_usable(self) -> bool:
        if self.preview.is_released:
            return False
        return self.full is None or not self.full.is_released

    def rasters(self) -> list[Raster]:
        return [r for r in (self.preview, self.full) if r is not None]
