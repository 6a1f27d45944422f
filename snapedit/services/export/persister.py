import os
import time
from typing import Optional
from snapedit.domain.types import AppConfig
from snapedit.kernel.image.raster import Raster, RasterReleasedError
from snapedit.kernel.system.config import APP_CONFIG
from snapedit.kernel.system.logging import get_logger

logger = get_logger(__name__)


def default_export_name() -> str:
    return f"edited_{int(time.time() * 1000)}.jpg"


class ExportPersister:
    """
    Writes composited rasters as JPEG into the export directory.
    """

    def __init__(self, config: AppConfig = APP_CONFIG, export_dir: Optional[str] = None) -> None:
        self.export_dir = export_dir or config.export_dir
        self.quality = config.export_quality

    def path_for(self, file_name: str) -> str:
        return os.path.join(self.export_dir, file_name)

    def save(self, file_name: str, raster: Raster) -> bool:
        """
        Returns False on any I/O failure. Never retries.
        """
        path = self.path_for(file_name)
        try:
            os.makedirs(self.export_dir, exist_ok=True)
            pil_img = raster.to_pil().convert("RGB")
            pil_img.save(path, format="JPEG", quality=self.quality)
        except (OSError, ValueError, RasterReleasedError) as e:
            logger.error(f"Failed to save {path}: {e}")
            return False

        logger.info(f"Saved {path}")
        return True
