from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional
from snapedit.features.annotations.models import Annotation
from snapedit.features.effects.models import EffectsConfig
from snapedit.kernel.image.raster import Raster


class SessionStatus(Enum):
    IDLE = auto()
    LOADING = auto()
    READY = auto()
    RECOMPUTING_GEOMETRY = auto()
    RECOMPUTING_EFFECTS = auto()


def _usable(raster: Optional[Raster]) -> bool:
    return raster is not None and not raster.is_released


@dataclass
class ImageState:
    """
    Rasters and edit parameters of the active image.

    ``base`` and ``full`` always share the same geometric history; neither
    carries color effects. ``current`` is ``base`` with effects baked in.
    """

    source_id: Optional[str] = None
    base: Optional[Raster] = None
    current: Optional[Raster] = None
    full: Optional[Raster] = None
    effects: EffectsConfig = field(default_factory=EffectsConfig)
    annotations: List[Annotation] = field(default_factory=list)

    @property
    def has_image(self) -> bool:
        return _usable(self.base)

    @property
    def displayable(self) -> Optional[Raster]:
        if _usable(self.current):
            return self.current
        if _usable(self.base):
            return self.base
        return None

    @property
    def export_source(self) -> Optional[Raster]:
        """Full tier when present, preview otherwise."""
        if _usable(self.full):
            return self.full
        if _usable(self.base):
            return self.base
        return None

    def release_rasters(self) -> None:
        for raster in (self.base, self.current, self.full):
            if raster is not None:
                raster.release()
        self.base = None
        self.current = None
        self.full = None
