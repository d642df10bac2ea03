"""
Panel background renderer.

Fills a panel's full bleed box with either a two-color linear gradient or an
uploaded image scaled to cover the box.
"""
import logging
import math
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from domain.errors import ResourceLoadError
from domain.models import BackgroundSpec, BackgroundType
from services.cover_colors import parse_color
from services.cover_geometry import Box

logger = logging.getLogger(__name__)


def gradient_axis(width: int, height: int, angle_deg: float) -> Tuple[float, float, float, float]:
    """
    Gradient endpoints (x1, y1, x2, y2) in box-local pixels.

    Fixed convention inherited from the editor preview: the angle is offset by
    -90 degrees and the endpoints sit on the box's half extents along that
    direction. color1 is at (x1, y1), color2 at (x2, y2).
    """
    rad = math.radians(angle_deg - 90)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    x1 = width * 0.5 + cos_a * width * 0.5
    y1 = height * 0.5 + sin_a * height * 0.5
    x2 = width * 0.5 - cos_a * width * 0.5
    y2 = height * 0.5 - sin_a * height * 0.5
    return (x1, y1, x2, y2)


def linear_gradient(size: Tuple[int, int], color1: str, color2: str, angle_deg: float) -> Image.Image:
    """Render an RGBA linear gradient image of the given size."""
    width, height = size
    c1 = parse_color(color1)
    c2 = parse_color(color2)
    x1, y1, x2, y2 = gradient_axis(width, height, angle_deg)
    dx = x2 - x1
    dy = y2 - y1
    denom = dx * dx + dy * dy
    if c1 == c2 or denom == 0:
        return Image.new("RGBA", (width, height), c1)

    # t is linear in x and y, so build it from one row and one column.
    xs = (np.arange(width, dtype=np.float32) + 0.5 - x1) * np.float32(dx / denom)
    ys = (np.arange(height, dtype=np.float32) + 0.5 - y1) * np.float32(dy / denom)
    t = np.clip(ys[:, None] + xs[None, :], 0.0, 1.0)

    out = np.empty((height, width, 4), dtype=np.uint8)
    for channel in range(4):
        start = float(c1[channel])
        span = float(c2[channel]) - start
        out[..., channel] = np.rint(start + t * span).astype(np.uint8)
    return Image.fromarray(out, "RGBA")


def cover_fit(image: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """
    Scale the image so it fully covers the target box, center-cropping the
    overflowing axis. Never letterboxes.
    """
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    img_ratio = image.width / image.height
    box_ratio = target_width / target_height
    if img_ratio > box_ratio:
        # Wider than the box: keep full height, crop the sides
        src_h = float(image.height)
        src_w = src_h * box_ratio
        src_x = (image.width - src_w) / 2.0
        src_y = 0.0
    else:
        src_w = float(image.width)
        src_h = src_w / box_ratio
        src_x = 0.0
        src_y = (image.height - src_h) / 2.0
    return image.resize(
        (target_width, target_height),
        resample=Image.Resampling.LANCZOS,
        box=(src_x, src_y, src_x + src_w, src_y + src_h),
    )


def render_background(
    target: Image.Image,
    box: Box,
    spec: BackgroundSpec,
    image: Optional[Image.Image] = None,
    label: str = "panel",
) -> None:
    """
    Paint a panel background over the whole box (bleed included).

    Raises:
        ResourceLoadError: upload background with no decoded image
    """
    if box.width <= 0 or box.height <= 0:
        return
    if BackgroundType(spec.type) == BackgroundType.UPLOAD:
        if image is None:
            raise ResourceLoadError(f"The {label} background is set to an uploaded image, but no image could be loaded.")
        layer = cover_fit(image, box.width, box.height)
    else:
        layer = linear_gradient((box.width, box.height), spec.color1, spec.color2, spec.angle_deg)
    logger.debug("[cover] background %s type=%s box=%s", label, spec.type, box)
    target.alpha_composite(layer, dest=(box.x, box.y))
