from dataclasses import dataclass
from typing import Optional
from PyQt6.QtCore import QObject, pyqtSignal, pyqtSlot
from snapedit.domain.errors import EditError, FailureReason
from snapedit.domain.interfaces import IDecoder
from snapedit.domain.types import Dimensions
from snapedit.features.effects.logic import ColorTransform, apply_color_transform
from snapedit.features.geometry.models import GeometryEdit
from snapedit.features.geometry.processor import GeometryTransformer
from snapedit.kernel.image.raster import PixelFormat, Raster, RasterReleasedError
from snapedit.kernel.system.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadTask:
    """Decode request for both tiers of a source."""

    source_id: str
    request_id: int


@dataclass(frozen=True)
class EffectsTask:
    """Color recompute of ``base``. The task holds a reference on ``base``."""

    base: Raster
    transform: ColorTransform
    generation: int


@dataclass(frozen=True)
class GeometryTask:
    """
    One geometric edit for both tiers. The task holds references on the inputs.
    """

    base: Raster
    full: Optional[Raster]
    edit: GeometryEdit
    identity: int
    before: Dimensions

    def release_inputs(self) -> None:
        self.base.release()
        if self.full is not None:
            self.full.release()


class AssetWorker(QObject):
    """
    Background decoder for new sources.
    """

    finished = pyqtSignal(LoadTask, object, object)  # (task, preview, full|None)
    error = pyqtSignal(LoadTask, str, str)  # (task, reason, message)

    def __init__(self, decoder: IDecoder) -> None:
        super().__init__()
        self._decoder = decoder

    @pyqtSlot(LoadTask)
    def process(self, task: LoadTask) -> None:
        try:
            preview, full = self._decoder.decode_tiers(task.source_id)
        except EditError as e:
            logger.error(f"Load failed for {task.source_id}: {e}")
            self.error.emit(task, str(e.reason), str(e))
            return
        except MemoryError as e:
            logger.error(f"Out of memory loading {task.source_id}")
            self.error.emit(task, str(FailureReason.OUT_OF_MEMORY), str(e))
            return
        except Exception as e:
            logger.error(f"Unexpected failure loading {task.source_id}: {e}")
            self.error.emit(task, str(FailureReason.DECODE_FAILED), str(e))
            return
        self.finished.emit(task, preview, full)


class RenderWorker(QObject):
    """
    Bakes the compiled color transform into a copy of the preview.
    """

    finished = pyqtSignal(EffectsTask, object)  # (task, current)
    error = pyqtSignal(EffectsTask, str, str)

    @pyqtSlot(EffectsTask)
    def process(self, task: EffectsTask) -> None:
        try:
            rgba = apply_color_transform(task.base.data, task.transform)
            result = Raster(rgba, PixelFormat.RGBA8888)
        except MemoryError as e:
            logger.error("Out of memory applying effects")
            self.error.emit(task, str(FailureReason.OUT_OF_MEMORY), str(e))
            return
        except RasterReleasedError as e:
            logger.error(f"Effects source released: {e}")
            self.error.emit(task, str(FailureReason.INVALID_SOURCE), str(e))
            return
        except Exception as e:
            logger.error(f"Effects recompute failure: {e}")
            self.error.emit(task, str(FailureReason.PROCESSING_FAILED), str(e))
            return
        self.finished.emit(task, result)


class EditWorker(QObject):
    """
    Applies one geometric edit to the preview and full tiers.
    """

    finished = pyqtSignal(GeometryTask, object, object)  # (task, base, full|None)
    error = pyqtSignal(GeometryTask, str, str)

    def __init__(self) -> None:
        super().__init__()
        self._transformer = GeometryTransformer()

    @pyqtSlot(GeometryTask)
    def process(self, task: GeometryTask) -> None:
        new_base: Optional[Raster] = None
        try:
            new_base = self._transformer.apply(task.base, task.edit)
            new_full = self._transformer.apply(task.full, task.edit) if task.full is not None else None
        except EditError as e:
            if new_base is not None:
                new_base.release()
            logger.error(f"Geometry edit {task.edit.kind} failed: {e}")
            self.error.emit(task, str(e.reason), str(e))
            return
        except RasterReleasedError as e:
            if new_base is not None:
                new_base.release()
            logger.error(f"Geometry source released: {e}")
            self.error.emit(task, str(FailureReason.INVALID_SOURCE), str(e))
            return
        except Exception as e:
            if new_base is not None:
                new_base.release()
            logger.error(f"Geometry edit {task.edit.kind} failure: {e}")
            self.error.emit(task, str(FailureReason.PROCESSING_FAILED), str(e))
            return
        self.finished.emit(task, new_base, new_full)
