import os
from typing import Any, ContextManager, Tuple
from snapedit.domain.errors import InvalidSource
from snapedit.infrastructure.loaders.pillow_loader import PillowLoader
from snapedit.infrastructure.loaders.tiff_loader import TiffLoader
from snapedit.infrastructure.loaders.rawpy_loader import RawpyLoader
from snapedit.infrastructure.loaders.constants import (
    SUPPORTED_PILLOW_EXTENSIONS,
    SUPPORTED_RAW_EXTENSIONS,
    SUPPORTED_TIFF_EXTENSIONS,
)


class LoaderFactory:
    """
    Selects loader based on file ext.
    """

    def __init__(self) -> None:
        self._pillow = PillowLoader()
        self._tiff = TiffLoader()
        self._rawpy = RawpyLoader()

    @staticmethod
    def can_handle(file_path: str) -> bool:
        ext = os.path.splitext(file_path)[1].lower()
        return ext in SUPPORTED_PILLOW_EXTENSIONS | SUPPORTED_TIFF_EXTENSIONS | SUPPORTED_RAW_EXTENSIONS

    def get_loader(self, file_path: str) -> Tuple[ContextManager[Any], dict]:
        ext = os.path.splitext(file_path)[1].lower()

        if ext in SUPPORTED_TIFF_EXTENSIONS:
            return self._tiff.load(file_path)

        if ext in SUPPORTED_PILLOW_EXTENSIONS:
            return self._pillow.load(file_path)

        if ext in SUPPORTED_RAW_EXTENSIONS:
            return self._rawpy.load(file_path)

        raise InvalidSource(f"Unsupported file type: {file_path}")


# Global instance for shared use
loader_factory = LoaderFactory()
