import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import StrEnum
from typing import Any, Dict, Union


class AnnotationKind(StrEnum):
    TEXT = "text"
    STICKER = "sticker"


class FontFamily(StrEnum):
    DEFAULT = "DEFAULT"
    SERIF = "SERIF"
    SANS_SERIF = "SANS_SERIF"
    MONOSPACE = "MONOSPACE"


@dataclass(frozen=True)
class TextPayload:
    content: str = ""
    color: str = "#FFFFFF"
    bold: bool = False
    italic: bool = False
    font_family: str = FontFamily.DEFAULT
    # Text size relative to container width
    size_ratio: float = 0.02

    def __post_init__(self) -> None:
        object.__setattr__(self, "font_family", FontFamily(self.font_family))
        object.__setattr__(self, "size_ratio", max(0.0, float(self.size_ratio)))


@dataclass(frozen=True)
class StickerPayload:
    resource_id: str = ""
    # Sign encodes mirroring
    scale_x: float = 1.0
    scale_y: float = 1.0


Payload = Union[TextPayload, StickerPayload]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Annotation:
    """
    A text or sticker placed on the image.

    Position is the top-left anchor as a fraction of the container size;
    extent is the measured size reported by whoever draws it.
    """

    kind: AnnotationKind
    payload: Payload
    x: float = 0.5
    y: float = 0.5
    rotation: float = 0.0
    opacity: float = 1.0
    extent_w: float = 0.0
    extent_h: float = 0.0
    annotation_id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        kind = AnnotationKind(self.kind)
        object.__setattr__(self, "kind", kind)
        expected = TextPayload if kind == AnnotationKind.TEXT else StickerPayload
        if not isinstance(self.payload, expected):
            raise TypeError(f"{kind} annotation needs a {expected.__name__}, got {type(self.payload).__name__}")
        object.__setattr__(self, "opacity", float(min(max(self.opacity, 0.0), 1.0)))

    @classmethod
    def text(cls, content: str, x: float = 0.5, y: float = 0.5, **payload: Any) -> "Annotation":
        return cls(AnnotationKind.TEXT, TextPayload(content=content, **payload), x=x, y=y)

    @classmethod
    def sticker(cls, resource_id: str, x: float = 0.5, y: float = 0.5, scale: float = 1.0) -> "Annotation":
        return cls(
            AnnotationKind.STICKER,
            StickerPayload(resource_id=resource_id, scale_x=scale, scale_y=scale),
            x=x,
            y=y,
        )

    def moved(self, x: float, y: float) -> "Annotation":
        return replace(self, x=float(x), y=float(y))

    def with_payload(self, **changes: Any) -> "Annotation":
        return replace(self, payload=replace(self.payload, **changes))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = str(self.kind)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Annotation":
        kind = AnnotationKind(data["kind"])
        raw_payload = dict(data.get("payload") or {})
        payload: Payload
        match kind:
            case AnnotationKind.TEXT:
                valid = TextPayload.__dataclass_fields__.keys()
                payload = TextPayload(**{k: v for k, v in raw_payload.items() if k in valid})
            case AnnotationKind.STICKER:
                valid = StickerPayload.__dataclass_fields__.keys()
                payload = StickerPayload(**{k: v for k, v in raw_payload.items() if k in valid})

        common = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k not in ("kind", "payload")}
        return cls(kind=kind, payload=payload, **common)
