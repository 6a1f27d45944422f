import numpy as np
from typing import Any
from snapedit.infrastructure.loaders.constants import SUPPORTED_EXTENSIONS


class NonStandardFileWrapper:
    """
    numpy -> rawpy-like interface.
    """

    def __init__(self, data: np.ndarray):
        self.data = data

    def __enter__(self) -> "NonStandardFileWrapper":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.data = None

    def postprocess(self, **kwargs: Any) -> np.ndarray:
        """
        Returns the already-developed buffer. Only ``half_size`` is honored.
        """
        data = self.data
        if kwargs.get("half_size", False):
            data = data[::2, ::2]
        return data


def get_supported_wildcards() -> str:
    """
    Returns supported formats as string for file dialogs.
    """
    wildcards = []
    for ext in sorted(SUPPORTED_EXTENSIONS):
        base = ext.lstrip(".")
        wildcards.append(f"*.{base}")
        wildcards.append(f"*.{base.upper()}")

    return " ".join(wildcards)
