import rawpy
from typing import Any, ContextManager, Tuple, cast
from snapedit.domain.interfaces import IImageLoader


class RawpyLoader(IImageLoader):
    """
    Camera RAW loader (libraw). Orientation is applied by libraw during postprocess.
    """

    def load(self, file_path: str) -> Tuple[ContextManager[Any], dict]:
        raw = rawpy.imread(file_path)
        metadata = {"orientation": 1, "raw_flip": raw.sizes.flip}
        return cast(ContextManager[Any], raw), metadata
