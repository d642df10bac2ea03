"""
Cover geometry resolver.

Turns physical book dimensions (inches) and a target DPI into pixel boxes for
the back, spine and front panels. Every position and size in a design is a
percentage of a panel's trim box, so this module is also where percentages
become pixels.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

from domain.errors import InvalidGeometryError
from domain.models import CoverPart, Dimensions, Orientation, Position
from settings import settings

POINTS_PER_INCH = 72.0


@dataclass(frozen=True)
class Box:
    """Axis-aligned pixel rectangle."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom), the form Pillow expects."""
        return (self.x, self.y, self.right, self.bottom)

    def inset(self, px: int) -> "Box":
        w = max(0, self.width - 2 * px)
        h = max(0, self.height - 2 * px)
        return Box(self.x + px, self.y + px, w, h)


@dataclass(frozen=True)
class PanelGeometry:
    """
    Pixel boxes for one panel.

    bleed_box: everything the panel's background covers, including bleed.
    trim_box: the panel's unbled content box; percentages are relative to it.
    safe_box: trim_box inset by the safety margin. Advisory only.
    """
    part: CoverPart
    bleed_box: Box
    trim_box: Box
    safe_box: Box


@dataclass(frozen=True)
class CoverGeometry:
    dpi: float
    canvas_width: int
    canvas_height: int
    bleed_px: int
    safety_px: int
    panels: Dict[CoverPart, PanelGeometry]
    order: Tuple[CoverPart, CoverPart, CoverPart]

    @property
    def points_to_px(self) -> float:
        """The single pt -> px conversion factor for this render."""
        return self.dpi / POINTS_PER_INCH

    def panel(self, part: CoverPart) -> PanelGeometry:
        return self.panels[CoverPart(part)]

    def ordered_panels(self) -> List[PanelGeometry]:
        return [self.panels[part] for part in self.order]

    def to_dict(self) -> dict:
        def _box(b: Box) -> dict:
            return {"x": b.x, "y": b.y, "width": b.width, "height": b.height}

        return {
            "dpi": self.dpi,
            "canvas_width": self.canvas_width,
            "canvas_height": self.canvas_height,
            "bleed_px": self.bleed_px,
            "safety_px": self.safety_px,
            "order": [p.value for p in self.order],
            "panels": {
                part.value: {
                    "bleed_box": _box(pg.bleed_box),
                    "trim_box": _box(pg.trim_box),
                    "safe_box": _box(pg.safe_box),
                }
                for part, pg in self.panels.items()
            },
        }


def panel_order(orientation: Orientation) -> Tuple[CoverPart, CoverPart, CoverPart]:
    """Left-to-right panel order for a binding side."""
    if Orientation(orientation) == Orientation.LEFT:
        return (CoverPart.FRONT, CoverPart.SPINE, CoverPart.BACK)
    return (CoverPart.BACK, CoverPart.SPINE, CoverPart.FRONT)


def validate_dimensions(dimensions: Dimensions) -> None:
    """Refuse dimensions that would produce an empty or undefined canvas."""
    for name in ("width_in", "height_in", "spine_in"):
        value = getattr(dimensions, name)
        if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
            raise InvalidGeometryError(f"Cover {name.replace('_in', '')} must be a positive number of inches, got {value!r}")
    for name in ("bleed_in", "trim_in"):
        value = getattr(dimensions, name)
        if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
            raise InvalidGeometryError(f"Cover {name.replace('_in', '')} must be zero or a positive number of inches, got {value!r}")


def resolve_geometry(
    dimensions: Dimensions,
    orientation: Orientation = Orientation.RIGHT,
    dpi: float = 300,
) -> CoverGeometry:
    """
    Compute panel boxes at the given DPI.

    Panel edges are rounded cumulative inch offsets, so the three panels tile
    the canvas exactly and the canvas is round((2w + s + 2b) * dpi) wide.

    Raises:
        InvalidGeometryError: non-positive width/height/spine/dpi, negative bleed/trim
    """
    validate_dimensions(dimensions)
    if not math.isfinite(dpi) or dpi <= 0:
        raise InvalidGeometryError(f"DPI must be positive, got {dpi!r}")

    w = dimensions.width_in
    h = dimensions.height_in
    s = dimensions.spine_in
    b = dimensions.bleed_in

    def px(inches: float) -> int:
        return int(round(inches * dpi))

    canvas_w = px(2 * w + s + 2 * b)
    canvas_h = px(h + 2 * b)
    bleed_px = px(b)
    safety_px = px(dimensions.trim_in)
    content_top = bleed_px
    content_h = px(h + b) - bleed_px

    first_end = px(b + w)         # outer panel incl. its outer bleed
    spine_end = px(b + w + s)
    last_content_end = px(b + 2 * w + s)

    order = panel_order(orientation)
    bleed_boxes = [
        Box(0, 0, first_end, canvas_h),
        Box(first_end, 0, spine_end - first_end, canvas_h),
        Box(spine_end, 0, canvas_w - spine_end, canvas_h),
    ]
    trim_boxes = [
        Box(bleed_px, content_top, first_end - bleed_px, content_h),
        Box(first_end, content_top, spine_end - first_end, content_h),
        Box(spine_end, content_top, last_content_end - spine_end, content_h),
    ]

    panels: Dict[CoverPart, PanelGeometry] = {}
    for part, bleed_box, trim_box in zip(order, bleed_boxes, trim_boxes):
        panels[part] = PanelGeometry(
            part=part,
            bleed_box=bleed_box,
            trim_box=trim_box,
            safe_box=trim_box.inset(safety_px),
        )

    return CoverGeometry(
        dpi=float(dpi),
        canvas_width=canvas_w,
        canvas_height=canvas_h,
        bleed_px=bleed_px,
        safety_px=safety_px,
        panels=panels,
        order=order,
    )


def percent_to_px(position: Position, box: Box) -> Tuple[float, float]:
    """Percent position inside box -> absolute pixel point."""
    return (
        box.x + (position.x / 100.0) * box.width,
        box.y + (position.y / 100.0) * box.height,
    )


def percent_width(width_pct: float, box: Box) -> float:
    return (width_pct / 100.0) * box.width


def preview_scale(dimensions: Dimensions) -> float:
    """
    Pixels per inch for an on-screen preview that fits the configured width.

    Capped so tiny covers do not blow up beyond COVER_PREVIEW_MAX_SCALE.
    """
    validate_dimensions(dimensions)
    return min(
        settings.COVER_PREVIEW_MAX_SCALE,
        settings.COVER_PREVIEW_MAX_WIDTH_PX / dimensions.total_width_in,
    )
