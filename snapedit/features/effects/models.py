from dataclasses import dataclass
from enum import StrEnum


class FilterType(StrEnum):
    ORIGINAL = "ORIGINAL"
    BW = "BW"
    RETRO = "RETRO"
    FRESH = "FRESH"
    WARM = "WARM"
    COOL = "COOL"


BRIGHTNESS_RANGE = (-100.0, 100.0)
CONTRAST_RANGE = (0.5, 1.5)


@dataclass(frozen=True)
class EffectsConfig:
    """
    Cosmetic parameters. Never touches geometry.
    """

    brightness: float = 0.0
    contrast: float = 1.0
    filter: str = FilterType.ORIGINAL

    def __post_init__(self) -> None:
        """
        Clamp sliders and coerce JSON-loaded filter names back to the enum.
        """
        lo_b, hi_b = BRIGHTNESS_RANGE
        lo_c, hi_c = CONTRAST_RANGE
        object.__setattr__(self, "brightness", float(min(max(self.brightness, lo_b), hi_b)))
        object.__setattr__(self, "contrast", float(min(max(self.contrast, lo_c), hi_c)))
        object.__setattr__(self, "filter", FilterType(self.filter))

    @property
    def is_identity(self) -> bool:
        return self.filter == FilterType.ORIGINAL and self.brightness == 0.0 and self.contrast == 1.0
