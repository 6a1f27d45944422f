from collections import deque
from dataclasses import replace
from typing import Any, Callable, Deque, List, Optional, Tuple

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from snapedit.desktop.session import ImageState, SessionStatus
from snapedit.desktop.workers.export import ExportTask, ExportWorker
from snapedit.desktop.workers.pipeline import (
    AssetWorker,
    EditWorker,
    EffectsTask,
    GeometryTask,
    LoadTask,
    RenderWorker,
)
from snapedit.domain.errors import EditError, FailureReason, InvalidRegion
from snapedit.domain.interfaces import IDecoder, IPersister, IRepository
from snapedit.domain.types import ROI
from snapedit.features.annotations.models import Annotation, StickerPayload, TextPayload
from snapedit.features.effects.logic import compile_effects
from snapedit.features.effects.models import EffectsConfig, FilterType
from snapedit.features.geometry.logic import aspect_crop_roi, normalized_rect_to_roi, roi_from_pixel_rect
from snapedit.features.geometry.models import FlipAxis, GeometryEdit, NormalizedRect
from snapedit.infrastructure.storage.repository import StorageRepository
from snapedit.infrastructure.storage.snapshot import decode_snapshot, encode_snapshot
from snapedit.kernel.caching.logic import CacheEntry
from snapedit.kernel.caching.manager import ImageCache, image_cache
from snapedit.kernel.image.raster import Raster
from snapedit.kernel.system.config import APP_CONFIG, DEFAULT_EFFECTS
from snapedit.kernel.system.logging import get_logger
from snapedit.services.export.persister import ExportPersister, default_export_name
from snapedit.services.rendering.compositor import CompositeRenderer
from snapedit.services.rendering.decoder import TierDecoder
from snapedit.services.view.coordinate_mapping import CoordinateMapper

logger = get_logger(__name__)

# (width, height) of the base at dispatch -> edit
EditResolver = Callable[[int, int], GeometryEdit]

_ANNOTATION_FIELDS = ("x", "y", "rotation", "opacity", "extent_w", "extent_h")


class EditSession(QObject):
    """
    Orchestrates one image's edit pipeline.
    Owns the image state, dispatches decode/geometry/color/export work to
    background workers, and installs results on the coordinating thread.
    """

    load_completed = pyqtSignal(str)
    load_failed = pyqtSignal(str, str)  # (reason, message)
    effects_applied = pyqtSignal()
    edit_failed = pyqtSignal(str, str)
    image_updated = pyqtSignal()
    annotations_changed = pyqtSignal()
    export_finished = pyqtSignal(str)
    export_failed = pyqtSignal(str, str)

    load_requested = pyqtSignal(LoadTask)
    effects_requested = pyqtSignal(EffectsTask)
    geometry_requested = pyqtSignal(GeometryTask)
    export_requested = pyqtSignal(ExportTask)

    def __init__(
        self,
        decoder: Optional[IDecoder] = None,
        cache: Optional[ImageCache] = None,
        persister: Optional[IPersister] = None,
        renderer: Optional[CompositeRenderer] = None,
        repo: Optional[IRepository] = None,
        threaded: bool = True,
    ) -> None:
        super().__init__()
        self.state = ImageState(effects=DEFAULT_EFFECTS)
        self.cache = cache if cache is not None else image_cache
        self._repo = repo
        self._repo_ready = False
        self._threaded = threaded
        self._torn_down = False

        self._load_request = 0
        self._loading = False
        self._identity = 0
        self._effects_generation = 0
        self._is_rendering = False
        self._pending_effects_task: Optional[EffectsTask] = None
        self._geometry_in_flight = False
        self._geometry_queue: Deque[EditResolver] = deque()

        self.asset_worker = AssetWorker(decoder or TierDecoder())
        self.edit_worker = EditWorker()
        self.render_worker = RenderWorker()
        self.export_worker = ExportWorker(renderer or CompositeRenderer(), persister or ExportPersister())

        # Thread management
        self._threads: List[QThread] = []
        if threaded:
            for worker in (self.asset_worker, self.edit_worker, self.render_worker, self.export_worker):
                thread = QThread()
                worker.moveToThread(thread)
                thread.start()
                self._threads.append(thread)

        self._connect_signals()

    def _connect_signals(self) -> None:
        self.load_requested.connect(self.asset_worker.process)
        self.asset_worker.finished.connect(self._on_load_finished)
        self.asset_worker.error.connect(self._on_load_error)

        self.effects_requested.connect(self.render_worker.process)
        self.render_worker.finished.connect(self._on_effects_finished)
        self.render_worker.error.connect(self._on_effects_error)

        self.geometry_requested.connect(self.edit_worker.process)
        self.edit_worker.finished.connect(self._on_geometry_finished)
        self.edit_worker.error.connect(self._on_geometry_error)

        self.export_requested.connect(self.export_worker.process)
        self.export_worker.finished.connect(self._on_export_finished)
        self.export_worker.error.connect(self._on_export_error)

    # ---- State -------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        if self._loading:
            return SessionStatus.LOADING
        if not self.state.has_image:
            return SessionStatus.IDLE
        if self._geometry_in_flight or self._geometry_queue:
            return SessionStatus.RECOMPUTING_GEOMETRY
        if self._is_rendering or self._pending_effects_task is not None:
            return SessionStatus.RECOMPUTING_EFFECTS
        return SessionStatus.READY

    @property
    def displayable(self) -> Optional[Raster]:
        return self.state.displayable

    @property
    def effects(self) -> EffectsConfig:
        return self.state.effects

    @property
    def annotations(self) -> Tuple[Annotation, ...]:
        return tuple(self.state.annotations)

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    # ---- Loading -----------------------------------------------------

    def load(self, source_id: str) -> None:
        """
        Installs a cached pair directly, otherwise decodes both tiers in the background.
        """
        if self._torn_down:
            return

        self._load_request += 1
        entry = self.cache.get(source_id)
        if entry is not None:
            logger.debug(f"Cache hit for {source_id}")
            self._loading = False
            full = entry.full.retain() if entry.full is not None else None
            self._install_source(source_id, entry.preview.retain(), full, cache_it=False)
            return

        logger.info(f"Loading {source_id}")
        self._loading = True
        self.load_requested.emit(LoadTask(source_id=source_id, request_id=self._load_request))

    def _on_load_finished(self, task: LoadTask, preview: Raster, full: Optional[Raster]) -> None:
        if self._torn_down or task.request_id != self._load_request:
            logger.debug(f"Discarding superseded decode of {task.source_id}")
            preview.release()
            if full is not None:
                full.release()
            return

        self._loading = False
        self._install_source(task.source_id, preview, full, cache_it=True)

    def _on_load_error(self, task: LoadTask, reason: str, message: str) -> None:
        if self._torn_down or task.request_id != self._load_request:
            logger.debug(f"Ignoring failure of superseded load {task.source_id}")
            return
        self._loading = False
        self.load_failed.emit(reason, message)

    def _install_source(self, source_id: str, preview: Raster, full: Optional[Raster], cache_it: bool) -> None:
        self._reset_pipeline()
        self.state.release_rasters()
        self.state.source_id = source_id
        self.state.base = preview
        self.state.full = full
        self.state.effects = DEFAULT_EFFECTS
        self.state.annotations = []

        if cache_it:
            self.cache.put(source_id, CacheEntry(preview, full))

        logger.info(f"Installed {source_id}: preview {preview!r}, full {full!r}")
        self.load_completed.emit(source_id)
        self.annotations_changed.emit()
        self.image_updated.emit()
        self.apply_all_effects()

    def _reset_pipeline(self) -> None:
        """
        Makes every in-flight geometry and color result stale.
        """
        self._identity += 1
        self._effects_generation += 1
        self._geometry_queue.clear()
        if self._pending_effects_task is not None:
            self._pending_effects_task.base.release()
            self._pending_effects_task = None

    # ---- Cosmetic effects ----------------------------------------------

    def apply_all_effects(self) -> None:
        """
        Versioned recompute of ``current``. Only the latest request gets installed.
        """
        base = self.state.base
        if self._torn_down or base is None or base.is_released:
            return

        self._effects_generation += 1
        task = EffectsTask(
            base=base.retain(),
            transform=compile_effects(self.state.effects),
            generation=self._effects_generation,
        )

        if self._is_rendering:
            if self._pending_effects_task is not None:
                self._pending_effects_task.base.release()
            self._pending_effects_task = task
            return

        self._dispatch_effects(task)

    def _dispatch_effects(self, task: EffectsTask) -> None:
        self._is_rendering = True
        self.effects_requested.emit(task)

    def _drain_pending_effects(self) -> None:
        task = self._pending_effects_task
        self._pending_effects_task = None
        if task is None:
            return
        if self._torn_down or task.generation != self._effects_generation:
            task.base.release()
            return
        self._dispatch_effects(task)

    def _on_effects_finished(self, task: EffectsTask, result: Raster) -> None:
        task.base.release()
        self._is_rendering = False

        if self._torn_down or task.generation != self._effects_generation:
            logger.debug(f"Dropping stale effects result (generation {task.generation})")
            result.release()
        else:
            previous = self.state.current
            self.state.current = result
            if previous is not None:
                previous.release()
            self.effects_applied.emit()
            self.image_updated.emit()

        self._drain_pending_effects()

    def _on_effects_error(self, task: EffectsTask, reason: str, message: str) -> None:
        task.base.release()
        self._is_rendering = False
        if not self._torn_down and task.generation == self._effects_generation:
            self.edit_failed.emit(reason, message)
        self._drain_pending_effects()

    def set_brightness(self, brightness: float) -> None:
        self.set_effects(replace(self.state.effects, brightness=brightness))

    def set_contrast(self, contrast: float) -> None:
        self.set_effects(replace(self.state.effects, contrast=contrast))

    def set_filter(self, filter_type: FilterType) -> None:
        self.set_effects(replace(self.state.effects, filter=FilterType(filter_type)))

    def set_effects(self, effects: EffectsConfig) -> None:
        self.state.effects = effects
        self.apply_all_effects()

    def reset_effects(self) -> None:
        self.set_effects(DEFAULT_EFFECTS)

    # ---- Geometry ------------------------------------------------------

    def rotate_image(self, degrees: float) -> None:
        edit = GeometryEdit.rotate(degrees)
        self._request_geometry(lambda w, h: edit)

    def flip_image(self, axis: FlipAxis) -> None:
        edit = GeometryEdit.flip(axis)
        self._request_geometry(lambda w, h: edit)

    def crop_current_image(self, aspect_ratio: Optional[float] = None) -> None:
        """
        Centered crop to ``aspect_ratio`` (w/h) of whatever the base is when the edit runs.
        """
        if aspect_ratio is not None and aspect_ratio <= 0:
            raise InvalidRegion(f"Aspect ratio must be positive, got {aspect_ratio}")

        def resolve(w: int, h: int) -> GeometryEdit:
            return GeometryEdit.crop(NormalizedRect.from_roi(aspect_crop_roi(w, h, aspect_ratio), w, h))

        self._request_geometry(resolve)

    def apply_crop(self, roi: ROI) -> None:
        """
        Pixel ROI (y1, y2, x1, x2) on the current base. Raises InvalidRegion for empty rects.
        """
        base = self.state.base
        if base is None or base.is_released:
            return
        y1, y2, x1, x2 = roi
        clamped = roi_from_pixel_rect(x1, y1, x2, y2, base.width, base.height)
        self.apply_crop_normalized(NormalizedRect.from_roi(clamped, base.width, base.height))

    def apply_crop_normalized(self, rect: NormalizedRect) -> None:
        """
        Raises InvalidRegion when no pixel of the current base falls inside ``rect``.
        """
        base = self.state.base
        if base is None or base.is_released:
            return
        normalized_rect_to_roi(rect, base.width, base.height)
        edit = GeometryEdit.crop(rect)
        self._request_geometry(lambda w, h: edit)

    def _request_geometry(self, resolver: EditResolver) -> None:
        if self._torn_down or not self.state.has_image:
            logger.debug("Geometry edit ignored: no image")
            return
        self._geometry_queue.append(resolver)
        if not self._geometry_in_flight:
            self._dispatch_next_geometry()

    def _dispatch_next_geometry(self) -> None:
        while self._geometry_queue and not self._torn_down:
            resolver = self._geometry_queue.popleft()
            base = self.state.base
            if base is None or base.is_released:
                continue

            try:
                edit = resolver(base.width, base.height)
            except InvalidRegion as e:
                self.edit_failed.emit(str(e.reason), str(e))
                continue

            full = self.state.full if self.state.full is not None and not self.state.full.is_released else None
            task = GeometryTask(
                base=base.retain(),
                full=full.retain() if full is not None else None,
                edit=edit,
                identity=self._identity,
                before=(base.height, base.width),
            )
            self._geometry_in_flight = True
            self.geometry_requested.emit(task)
            return

    def _on_geometry_finished(self, task: GeometryTask, new_base: Raster, new_full: Optional[Raster]) -> None:
        task.release_inputs()
        self._geometry_in_flight = False

        if self._torn_down or task.identity != self._identity:
            logger.debug(f"Discarding {task.edit.kind} result from a previous image")
            new_base.release()
            if new_full is not None:
                new_full.release()
            self._dispatch_next_geometry()
            return

        if self.state.source_id is not None:
            self.cache.remove(self.state.source_id)

        self.state.release_rasters()
        self.state.base = new_base
        self.state.full = new_full
        self.image_updated.emit()
        self.apply_all_effects()

        after = (new_base.height, new_base.width)
        if self.state.annotations:
            self.state.annotations = CoordinateMapper.map_annotations(self.state.annotations, task.edit, task.before, after)
            self.annotations_changed.emit()

        self._dispatch_next_geometry()

    def _on_geometry_error(self, task: GeometryTask, reason: str, message: str) -> None:
        task.release_inputs()
        self._geometry_in_flight = False
        if not self._torn_down and task.identity == self._identity:
            self.edit_failed.emit(reason, message)
        self._dispatch_next_geometry()

    # ---- Annotations ---------------------------------------------------

    def add_text(self, content: str, x: float = 0.5, y: float = 0.5, **style: Any) -> Annotation:
        return self._append(Annotation.text(content, x=x, y=y, **style))

    def add_sticker(self, resource_id: str, x: float = 0.5, y: float = 0.5, scale: float = 1.0) -> Annotation:
        return self._append(Annotation.sticker(resource_id, x=x, y=y, scale=scale))

    def _append(self, annotation: Annotation) -> Annotation:
        self.state.annotations.append(annotation)
        self.annotations_changed.emit()
        return annotation

    def update_annotation(self, annotation_id: str, **changes: Any) -> Annotation:
        """
        Position/extent fields go on the annotation, everything else on its payload.
        """
        idx = self._index_of(annotation_id)
        current = self.state.annotations[idx]

        common = {k: v for k, v in changes.items() if k in _ANNOTATION_FIELDS}
        payload_changes = {k: v for k, v in changes.items() if k not in _ANNOTATION_FIELDS}

        payload_type = TextPayload if isinstance(current.payload, TextPayload) else StickerPayload
        unknown = set(payload_changes) - set(payload_type.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown annotation fields: {sorted(unknown)}")

        updated = replace(current, **common)
        if payload_changes:
            updated = updated.with_payload(**payload_changes)

        self.state.annotations[idx] = updated
        self.annotations_changed.emit()
        return updated

    def remove_annotation(self, annotation_id: str) -> bool:
        try:
            idx = self._index_of(annotation_id)
        except KeyError:
            return False
        del self.state.annotations[idx]
        self.annotations_changed.emit()
        return True

    def clear_annotations(self) -> None:
        if self.state.annotations:
            self.state.annotations = []
            self.annotations_changed.emit()

    def _index_of(self, annotation_id: str) -> int:
        for idx, annotation in enumerate(self.state.annotations):
            if annotation.annotation_id == annotation_id:
                return idx
        raise KeyError(annotation_id)

    # ---- Export --------------------------------------------------------

    def export(self, annotation_layer: Optional[Raster] = None, file_name: Optional[str] = None) -> None:
        """
        Composites the highest available tier with effects, overlays and watermark, then saves it.
        """
        source = self.state.export_source
        if self._torn_down or source is None:
            self.export_failed.emit(str(FailureReason.EXPORT_FAILED), "No image to export")
            return

        layer = annotation_layer if annotation_layer is not None and not annotation_layer.is_released else None
        task = ExportTask(
            source=source.retain(),
            transform=compile_effects(self.state.effects),
            file_name=file_name or default_export_name(),
            annotation_layer=layer.retain() if layer is not None else None,
        )
        logger.info(f"Exporting {task.file_name} from {source!r}")
        self.export_requested.emit(task)

    def _on_export_finished(self, task: ExportTask, file_name: str) -> None:
        task.release_inputs()
        self.export_finished.emit(file_name)

    def _on_export_error(self, task: ExportTask, reason: str, message: str) -> None:
        task.release_inputs()
        self.export_failed.emit(reason, message)

    # ---- Persistence ---------------------------------------------------

    def save_snapshot(self) -> Optional[bytes]:
        base = self.state.base
        if base is None or base.is_released:
            return None
        return encode_snapshot(base, self.state.effects, self.state.source_id, list(self.state.annotations))

    def restore_snapshot(self, blob: bytes) -> None:
        """
        Replaces the session with a snapshot. The restored image has no full tier.
        Raises SnapshotError on unreadable data, leaving the session untouched.
        """
        if self._torn_down:
            return
        snapshot = decode_snapshot(blob)

        self._load_request += 1
        self._loading = False
        self._reset_pipeline()
        self.state.release_rasters()
        self.state.source_id = snapshot.source_id
        self.state.base = snapshot.base
        self.state.effects = snapshot.effects
        self.state.annotations = list(snapshot.annotations)

        logger.info(f"Restored snapshot of {snapshot.source_id}")
        self.annotations_changed.emit()
        self.image_updated.emit()
        self.apply_all_effects()

    def _repository(self) -> IRepository:
        if self._repo is None:
            self._repo = StorageRepository(APP_CONFIG.snapshots_db_path)
        if not self._repo_ready:
            self._repo.initialize()
            self._repo_ready = True
        return self._repo

    def suspend(self, key: str) -> bool:
        blob = self.save_snapshot()
        if blob is None:
            return False
        self._repository().save_snapshot(key, blob)
        return True

    def resume(self, key: str) -> bool:
        blob = self._repository().load_snapshot(key)
        if blob is None:
            return False
        try:
            self.restore_snapshot(blob)
        except EditError as e:
            logger.error(f"Cannot resume {key}: {e}")
            self.load_failed.emit(str(e.reason), str(e))
            return False
        return True

    # ---- Lifecycle -----------------------------------------------------

    def trim_memory(self) -> None:
        self.cache.evict_all()

    def shutdown(self) -> None:
        """
        Discards in-flight work, stops worker threads and frees every raster.
        """
        if self._torn_down:
            return
        self._torn_down = True
        self._load_request += 1
        self._loading = False
        self._reset_pipeline()

        for thread in self._threads:
            thread.quit()
            thread.wait()
        self._threads.clear()

        self.state.release_rasters()
        self.state.annotations = []
        self.cache.evict_all()
        logger.info("Edit session shut down")
