"""
Overlay image renderer.

Draws custom image elements (rotation, opacity, clip shape) and fixed-role
images (publisher logo, author photo, ISBN barcode) at percent positions
inside a panel.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PIL import Image, ImageChops, ImageDraw

from domain.models import ClipShape, CustomImageElement, ImageRole, PlacedImage
from services.cover_canvas import composite_clipped
from services.cover_geometry import Box, PanelGeometry, percent_to_px, percent_width

logger = logging.getLogger(__name__)

# Clip masks are drawn supersampled, then reduced, for smooth edges.
MASK_UPSCALE = 4
STAR_SPIKES = 5
STAR_INNER_RATIO = 1 / 2.5
HEART_SAMPLES = 96
POLYGON_SIDES = 6
# White margin around the ISBN barcode, in points
ISBN_PADDING_PT = 1.2


@dataclass(frozen=True)
class ClipPath:
    """
    Closed clip outline in element-local coordinates, origin at the element
    center. kind is "ellipse" (bbox = left, top, right, bottom) or "polygon".
    """
    kind: str
    bbox: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    points: Tuple[Tuple[float, float], ...] = ()


def _star_points(width: float) -> List[Tuple[float, float]]:
    outer = width / 2.0
    inner = outer * STAR_INNER_RATIO
    rot = math.pi / 2 * 3
    step = math.pi / STAR_SPIKES
    points = []
    for _ in range(STAR_SPIKES):
        points.append((math.cos(rot) * outer, math.sin(rot) * outer))
        rot += step
        points.append((math.cos(rot) * inner, math.sin(rot) * inner))
        rot += step
    return points


def _heart_points(width: float, height: float) -> List[Tuple[float, float]]:
    # Classic parametric heart, x in [-16, 16], y in about [-17, 12] (y up)
    raw = []
    for i in range(HEART_SAMPLES):
        t = 2 * math.pi * i / HEART_SAMPLES
        x = 16 * math.sin(t) ** 3
        y = 13 * math.cos(t) - 5 * math.cos(2 * t) - 2 * math.cos(3 * t) - math.cos(4 * t)
        raw.append((x, y))
    min_y = min(y for _, y in raw)
    max_y = max(y for _, y in raw)
    sx = width / 32.0
    sy = height / (max_y - min_y)
    mid_y = (max_y + min_y) / 2.0
    return [(x * sx, -(y - mid_y) * sy) for x, y in raw]


def _polygon_points(width: float, height: float) -> List[Tuple[float, float]]:
    points = []
    for i in range(POLYGON_SIDES):
        angle = -math.pi / 2 + 2 * math.pi * i / POLYGON_SIDES
        points.append((math.cos(angle) * width / 2.0, math.sin(angle) * height / 2.0))
    return points


def clip_path(shape: ClipShape, width: float, height: float) -> Optional[ClipPath]:
    """Clip outline for an element box of width x height. None means no clipping."""
    shape = ClipShape(shape)
    w, h = width, height
    if shape == ClipShape.NONE:
        return None
    if shape == ClipShape.CIRCLE:
        r = min(w, h) / 2.0
        return ClipPath("ellipse", bbox=(-r, -r, r, r))
    if shape == ClipShape.OVAL:
        return ClipPath("ellipse", bbox=(-w / 2, -h / 2, w / 2, h / 2))
    if shape == ClipShape.SQUARE:
        s = min(w, h) / 2.0
        return ClipPath("polygon", points=((-s, -s), (s, -s), (s, s), (-s, s)))
    if shape == ClipShape.RECTANGLE:
        return ClipPath("polygon", points=((-w / 2, -h / 2), (w / 2, -h / 2), (w / 2, h / 2), (-w / 2, h / 2)))
    if shape == ClipShape.TRIANGLE:
        return ClipPath("polygon", points=((0.0, -h / 2), (-w / 2, h / 2), (w / 2, h / 2)))
    if shape == ClipShape.STAR:
        return ClipPath("polygon", points=tuple(_star_points(w)))
    if shape == ClipShape.HEART:
        return ClipPath("polygon", points=tuple(_heart_points(w, h)))
    return ClipPath("polygon", points=tuple(_polygon_points(w, h)))


def render_clip_mask(path: ClipPath, size: Tuple[int, int]) -> Image.Image:
    """Rasterize a clip path into an "L" mask of the element's size."""
    width, height = size
    big = Image.new("L", (width * MASK_UPSCALE, height * MASK_UPSCALE), 0)
    draw = ImageDraw.Draw(big)
    cx = width / 2.0
    cy = height / 2.0

    def to_mask(x: float, y: float) -> Tuple[float, float]:
        return ((cx + x) * MASK_UPSCALE, (cy + y) * MASK_UPSCALE)

    if path.kind == "ellipse":
        l, t, r, b = path.bbox
        draw.ellipse(to_mask(l, t) + to_mask(r, b), fill=255)
    else:
        draw.polygon([to_mask(x, y) for x, y in path.points], fill=255)
    return big.resize(size, resample=Image.Resampling.LANCZOS)


def _with_opacity(image: Image.Image, opacity: float) -> Image.Image:
    opacity = max(0.0, min(1.0, opacity))
    if opacity >= 1.0:
        return image
    alpha = image.getchannel("A").point(lambda p: int(round(p * opacity)))
    result = image.copy()
    result.putalpha(alpha)
    return result


def draw_custom_image(
    target: Image.Image,
    element: CustomImageElement,
    image: Image.Image,
    panel: PanelGeometry,
    clip_box: Optional[Box] = None,
) -> Tuple[float, float, int, int]:
    """
    Draw a custom image element: translate to its center, rotate, apply
    opacity and clip shape, draw.

    Size: width_pct of the panel width; height = width / aspect_ratio.
    Returns (center_x, center_y, width, height) of the unrotated element.
    """
    cx, cy = percent_to_px(element.position, panel.trim_box)
    width_f = percent_width(element.width_pct, panel.trim_box)
    height_f = width_f / element.aspect_ratio if element.aspect_ratio > 0 else width_f
    w = max(1, int(round(width_f)))
    h = max(1, int(round(height_f)))

    layer = image.convert("RGBA").resize((w, h), resample=Image.Resampling.LANCZOS)
    path = clip_path(element.clip_shape, w, h)
    if path is not None:
        mask = render_clip_mask(path, (w, h))
        layer.putalpha(ImageChops.multiply(layer.getchannel("A"), mask))
    layer = _with_opacity(layer, element.opacity)
    if element.rotation_deg % 360:
        # Positive degrees turn clockwise on the page; Pillow turns counter-clockwise.
        layer = layer.rotate(-element.rotation_deg, resample=Image.Resampling.BICUBIC, expand=True)

    composite_clipped(target, layer, cx - layer.width / 2.0, cy - layer.height / 2.0, clip_box)
    logger.debug("[overlay] custom %s at (%.0f, %.0f) %dx%d clip=%s", element.id, cx, cy, w, h, element.clip_shape)
    return (cx, cy, w, h)


def draw_placed_image(
    target: Image.Image,
    placed: PlacedImage,
    image: Image.Image,
    panel: PanelGeometry,
    scale: float,
    clip_box: Optional[Box] = None,
) -> Tuple[int, int, int, int]:
    """
    Draw a fixed-role image centered on its position, keeping the source's
    natural aspect ratio. Never rotated, clipped, or faded. The ISBN barcode
    gets an opaque white backing so scanners can read it on dark covers.

    Returns the drawn image box (x, y, width, height).
    """
    width_f = percent_width(placed.width_pct, panel.trim_box)
    height_f = image.height * (width_f / image.width)
    w = max(1, int(round(width_f)))
    h = max(1, int(round(height_f)))
    cx, cy = percent_to_px(placed.position, panel.trim_box)
    x = int(round(cx - width_f / 2.0))
    y = int(round(cy - height_f / 2.0))

    if placed.role == ImageRole.ISBN_BARCODE:
        pad = max(1, int(round(ISBN_PADDING_PT * scale)))
        backing = Image.new("RGBA", (w + 2 * pad, h + 2 * pad), (255, 255, 255, 255))
        composite_clipped(target, backing, x - pad, y - pad, clip_box)

    layer = image.convert("RGBA").resize((w, h), resample=Image.Resampling.LANCZOS)
    composite_clipped(target, layer, x, y, clip_box)
    logger.debug("[overlay] %s at (%d, %d) %dx%d", placed.role.value, x, y, w, h)
    return (x, y, w, h)
