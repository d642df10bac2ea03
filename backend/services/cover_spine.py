"""
Spine text renderer.

Spine text runs along the spine, rotated 90 degrees clockwise. Items are laid
out in a rotated frame whose width is the panel's bleed height and whose
height is the spine width, then the frame is turned and composited clipped to
the spine's bleed box.

In the rotated frame, percent y moves along the spine (top to bottom) and
percent x moves across it, mirrored so that x above 50 sits left of center.
Items share the frame without any collision avoidance. Shadow offsets are
turned with the frame so the shadow still falls down and to the right on the
printed cover.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

from PIL import Image

from domain.models import Position, TextStyle
from services.cover_canvas import composite_clipped
from services.cover_fonts import FontResolver
from services.cover_geometry import PanelGeometry
from services.cover_text import TextBlockLayout, render_text

logger = logging.getLogger(__name__)

SPINE_SHADOW_OFFSET_PT = 1.0


@dataclass
class SpineTextItem:
    text: str
    style: TextStyle
    position: Position


def spine_frame_anchor(panel: PanelGeometry, position: Position) -> Tuple[float, float]:
    """Anchor of a percent position inside the rotated frame (frame pixels)."""
    frame_w = panel.bleed_box.height
    frame_h = panel.bleed_box.width
    along = (position.y / 100.0 - 0.5) * panel.trim_box.height
    across = (position.x / 100.0 - 0.5) * panel.trim_box.width
    return (frame_w / 2.0 + along, frame_h / 2.0 + across)


def frame_shadow_offset(offset_pt: float) -> Tuple[float, float]:
    """
    Frame offset that lands as (+offset, +offset) on the cover.

    The frame is turned 90 degrees clockwise, so frame x becomes cover y and
    frame y becomes cover -x.
    """
    return (offset_pt, -offset_pt)


def draw_spine_texts(
    target: Image.Image,
    panel: PanelGeometry,
    items: Iterable[SpineTextItem],
    scale: float,
    fonts: FontResolver,
) -> list[TextBlockLayout]:
    """Draw all spine text items; returns their layouts in frame coordinates."""
    items = [item for item in items if item.text and item.text.strip()]
    box = panel.bleed_box
    if not items or box.width <= 0 or box.height <= 0:
        return []

    frame = Image.new("RGBA", (box.height, box.width), (0, 0, 0, 0))
    layouts = []
    for item in items:
        layouts.append(render_text(
            frame,
            item.text,
            item.style,
            spine_frame_anchor(panel, item.position),
            max_width=float(panel.trim_box.height),
            centered=True,
            scale=scale,
            fonts=fonts,
            shadow_offset_pt=frame_shadow_offset(SPINE_SHADOW_OFFSET_PT),
        ))
    logger.debug("[spine] %d text item(s) on %dx%d spine", len(items), box.width, box.height)

    rotated = frame.transpose(Image.Transpose.ROTATE_270)
    composite_clipped(target, rotated, box.x, box.y, clip_box=box)
    return layouts
