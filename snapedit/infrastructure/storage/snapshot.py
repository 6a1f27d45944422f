import base64
import io
import json
from dataclasses import asdict, dataclass, field
from typing import Any, List, Optional
import numpy as np
from PIL import Image, UnidentifiedImageError
from snapedit.domain.errors import SnapshotError
from snapedit.features.annotations.models import Annotation
from snapedit.features.effects.models import EffectsConfig
from snapedit.kernel.image.raster import PixelFormat, Raster
from snapedit.kernel.system.config import APP_CONFIG

SNAPSHOT_VERSION = 1


@dataclass
class SessionSnapshot:
    """
    Decoded session state. ``base`` is owned by the caller once returned.
    """

    base: Raster
    effects: EffectsConfig = field(default_factory=EffectsConfig)
    source_id: Optional[str] = None
    annotations: List[Annotation] = field(default_factory=list)


def _encode_jpeg(raster: Raster, quality: int) -> str:
    buf = io.BytesIO()
    raster.to_pil().convert("RGB").save(buf, format="JPEG", quality=quality)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def encode_snapshot(
    base: Raster,
    effects: EffectsConfig,
    source_id: Optional[str],
    annotations: List[Annotation],
    quality: int = APP_CONFIG.snapshot_quality,
) -> bytes:
    payload = {
        "version": SNAPSHOT_VERSION,
        "source_id": source_id,
        "effects": asdict(effects),
        "annotations": [a.to_dict() for a in annotations],
        "base_jpeg": _encode_jpeg(base, quality),
    }
    return json.dumps(payload, default=str).encode("utf-8")


def decode_snapshot(blob: bytes) -> SessionSnapshot:
    try:
        data: dict[str, Any] = json.loads(blob.decode("utf-8"))
        jpeg = base64.b64decode(data["base_jpeg"], validate=True)
        with Image.open(io.BytesIO(jpeg)) as img:
            pixels = np.asarray(img.convert("RGB"))

        valid = EffectsConfig.__dataclass_fields__.keys()
        effects = EffectsConfig(**{k: v for k, v in (data.get("effects") or {}).items() if k in valid})
        annotations = [Annotation.from_dict(a) for a in data.get("annotations") or []]
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError, OSError, UnidentifiedImageError) as e:
        raise SnapshotError(f"Unreadable snapshot: {e}") from e

    return SessionSnapshot(
        base=Raster.from_array(pixels, PixelFormat.RGB565),
        effects=effects,
        source_id=data.get("source_id"),
        annotations=annotations,
    )
