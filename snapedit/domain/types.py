from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray

ImageBuffer = NDArray[np.uint8]

# (height, width)
Dimensions = Tuple[int, int]

# (y1, y2, x1, x2), inclusive-exclusive
ROI = Tuple[int, int, int, int]


@dataclass(frozen=True)
class AppConfig:
    """
    Process-wide runtime settings.
    """

    preview_max_size: int
    full_max_size: int
    cache_budget_kb: int
    full_tier_max_source_pixels: Optional[int]
    snapshot_quality: int
    export_quality: int
    export_dir: str
    snapshots_db_path: str
    watermark_text: str
