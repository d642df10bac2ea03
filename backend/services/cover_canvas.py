"""
Print canvas helpers: allocation and clipped layer compositing.
"""
from typing import Optional, Tuple

from PIL import Image

from domain.errors import RenderSurfaceError
from services.cover_geometry import Box
from settings import settings


def new_canvas(width: int, height: int, color: Tuple[int, int, int, int] = (255, 255, 255, 255)) -> Image.Image:
    """
    Allocate a fresh RGBA canvas, white by default.

    Raises:
        RenderSurfaceError: empty, oversized, or unallocatable canvas
    """
    if width <= 0 or height <= 0:
        raise RenderSurfaceError(f"Cannot allocate an empty {width}x{height} canvas.")
    if width * height > settings.COVER_MAX_CANVAS_PIXELS:
        raise RenderSurfaceError(
            f"Canvas {width}x{height} exceeds the {settings.COVER_MAX_CANVAS_PIXELS} pixel limit."
        )
    try:
        return Image.new("RGBA", (width, height), color)
    except MemoryError as exc:
        raise RenderSurfaceError(f"Not enough memory for a {width}x{height} canvas.") from exc


def composite_clipped(
    target: Image.Image,
    layer: Image.Image,
    x: float,
    y: float,
    clip_box: Optional[Box] = None,
) -> None:
    """
    Alpha-composite layer onto target with its top-left at (x, y).

    The layer may hang off any edge; only the part inside the target (and
    inside clip_box, when given) is drawn.
    """
    ox = int(round(x))
    oy = int(round(y))
    left, top, right, bottom = 0, 0, target.width, target.height
    if clip_box is not None:
        left = max(left, clip_box.x)
        top = max(top, clip_box.y)
        right = min(right, clip_box.right)
        bottom = min(bottom, clip_box.bottom)

    dst_l = max(left, ox)
    dst_t = max(top, oy)
    dst_r = min(right, ox + layer.width)
    dst_b = min(bottom, oy + layer.height)
    if dst_r <= dst_l or dst_b <= dst_t:
        return
    if layer.mode != "RGBA":
        layer = layer.convert("RGBA")
    target.alpha_composite(
        layer,
        dest=(dst_l, dst_t),
        source=(dst_l - ox, dst_t - oy, dst_r - ox, dst_b - oy),
    )
