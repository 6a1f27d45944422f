from dataclasses import dataclass
from typing import Optional
from PyQt6.QtCore import QObject, pyqtSignal, pyqtSlot
from snapedit.domain.errors import FailureReason
from snapedit.domain.interfaces import IPersister
from snapedit.features.effects.logic import ColorTransform
from snapedit.kernel.image.raster import Raster
from snapedit.services.rendering.compositor import CompositeRenderer
from snapedit.kernel.system.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExportTask:
    """Composite + save request. Holds references on the rasters it carries."""

    source: Raster
    transform: ColorTransform
    file_name: str
    annotation_layer: Optional[Raster] = None

    def release_inputs(self) -> None:
        self.source.release()
        if self.annotation_layer is not None:
            self.annotation_layer.release()


class ExportWorker(QObject):
    """
    Renders the final composite and hands it to the persister.
    """

    finished = pyqtSignal(ExportTask, str)  # (task, file_name)
    error = pyqtSignal(ExportTask, str, str)

    def __init__(self, renderer: CompositeRenderer, persister: IPersister) -> None:
        super().__init__()
        self._renderer = renderer
        self._persister = persister

    @pyqtSlot(ExportTask)
    def process(self, task: ExportTask) -> None:
        try:
            composite = self._renderer.render(task.source, task.transform, task.annotation_layer)
        except Exception as e:
            logger.error(f"Export render failure: {e}")
            self.error.emit(task, str(FailureReason.EXPORT_FAILED), str(e))
            return
        if composite is None:
            self.error.emit(task, str(FailureReason.EXPORT_FAILED), "Could not render export image")
            return

        try:
            saved = self._persister.save(task.file_name, composite)
        except Exception as e:
            logger.error(f"Export save failure for {task.file_name}: {e}")
            self.error.emit(task, str(FailureReason.SAVE_FAILED), str(e))
            return
        finally:
            composite.release()

        if not saved:
            logger.error(f"Export of {task.file_name} was not saved")
            self.error.emit(task, str(FailureReason.SAVE_FAILED), f"Could not save {task.file_name}")
            return
        self.finished.emit(task, task.file_name)
