from typing import Optional
from PIL import Image, ImageDraw, ImageFilter, ImageFont
from snapedit.domain.types import AppConfig
from snapedit.features.effects.logic import ColorTransform, apply_color_transform
from snapedit.kernel.image.raster import PixelFormat, Raster, RasterReleasedError
from snapedit.kernel.system.config import APP_CONFIG
from snapedit.kernel.system.logging import get_logger

logger = get_logger(__name__)

WATERMARK_ALPHA = 200
WATERMARK_SIZE_RATIO = 0.04
WATERMARK_MARGIN_RATIO = 0.02
SHADOW_OFFSET = (2, 2)
SHADOW_RADIUS = 1.5


class CompositeRenderer:
    """
    Final export image: color transform, annotation layer, watermark.
    """

    def __init__(self, config: AppConfig = APP_CONFIG) -> None:
        self.config = config

    def render(
        self,
        source: Optional[Raster],
        transform: ColorTransform,
        annotation_layer: Optional[Raster] = None,
    ) -> Optional[Raster]:
        """
        Returns None instead of a partial image when the source is gone or memory runs out.
        """
        if source is None or source.is_released:
            logger.error("Composite requested without a usable source raster")
            return None

        try:
            canvas = Image.fromarray(apply_color_transform(source.data, transform))

            if annotation_layer is not None and not annotation_layer.is_released:
                self._draw_layer(canvas, annotation_layer.to_pil().convert("RGBA"))

            watermark = self.config.watermark_text
            if watermark:
                self._stamp_watermark(canvas, watermark)

            return Raster.from_pil(canvas, PixelFormat.RGBA8888)
        except MemoryError:
            logger.error(f"Not enough memory to composite {source!r}")
            return None
        except RasterReleasedError as e:
            logger.error(f"Composite source vanished mid-render: {e}")
            return None

    @staticmethod
    def _draw_layer(canvas: Image.Image, layer: Image.Image) -> None:
        """
        Scales the layer uniformly to fit, centered.
        """
        cw, ch = canvas.size
        lw, lh = layer.size
        scale = min(cw / lw, ch / lh)
        target = (max(1, int(lw * scale)), max(1, int(lh * scale)))
        if target != layer.size:
            layer = layer.resize(target, Image.Resampling.BILINEAR)

        dx = (cw - target[0]) // 2
        dy = (ch - target[1]) // 2
        canvas.alpha_composite(layer, dest=(dx, dy))

    @staticmethod
    def _stamp_watermark(canvas: Image.Image, text: str) -> None:
        w, h = canvas.size
        font = ImageFont.load_default(size=max(1.0, w * WATERMARK_SIZE_RATIO))
        margin = w * WATERMARK_MARGIN_RATIO
        anchor_xy = (w - margin, h - margin)

        shadow = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(shadow).text(
            (anchor_xy[0] + SHADOW_OFFSET[0], anchor_xy[1] + SHADOW_OFFSET[1]),
            text,
            font=font,
            fill=(0, 0, 0, WATERMARK_ALPHA),
            anchor="rs",
        )
        canvas.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(SHADOW_RADIUS)))

        overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(overlay).text(anchor_xy, text, font=font, fill=(255, 255, 255, WATERMARK_ALPHA), anchor="rs")
        canvas.alpha_composite(overlay)
