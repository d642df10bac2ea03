import math

import pytest

from domain.errors import InvalidGeometryError
from domain.models import CoverPart, Dimensions, Orientation, Position
from services.cover_geometry import (
    Box,
    panel_order,
    percent_to_px,
    percent_width,
    preview_scale,
    resolve_geometry,
)


def test_six_by_nine_cover_at_300_dpi():
    dims = Dimensions(width_in=6, height_in=9, spine_in=1, bleed_in=0.125, trim_in=0.125)
    geo = resolve_geometry(dims, Orientation.RIGHT, 300)

    assert (geo.canvas_width, geo.canvas_height) == (3975, 2775)
    assert geo.order == (CoverPart.BACK, CoverPart.SPINE, CoverPart.FRONT)
    assert geo.points_to_px == pytest.approx(300 / 72)

    back = geo.panel(CoverPart.BACK)
    spine = geo.panel(CoverPart.SPINE)
    front = geo.panel(CoverPart.FRONT)
    assert back.bleed_box.x == 0
    assert spine.bleed_box.width == 300
    assert front.bleed_box.right == 3975
    assert back.trim_box.width == 1800
    assert back.trim_box.height == 2700
    assert front.trim_box.width == 1800
    assert spine.trim_box.y == geo.bleed_px
    assert back.safe_box == back.trim_box.inset(geo.safety_px)


@pytest.mark.parametrize(
    "dims,dpi",
    [
        (Dimensions(5, 8, 0.5, 0.125), 300),
        (Dimensions(8.5, 11, 0.75, 0.0), 300),
        (Dimensions(5.5, 8.5, 0.37, 0.125), 150),
        (Dimensions(6, 9, 1, 0.125), 72),
    ],
)
def test_canvas_size_formula_and_panels_tile(dims, dpi):
    geo = resolve_geometry(dims, Orientation.RIGHT, dpi)

    assert geo.canvas_width == round((2 * dims.width_in + dims.spine_in + 2 * dims.bleed_in) * dpi)
    assert geo.canvas_height == round((dims.height_in + 2 * dims.bleed_in) * dpi)
    boxes = [p.bleed_box for p in geo.ordered_panels()]
    assert boxes[0].x == 0
    for left, right in zip(boxes, boxes[1:]):
        assert left.right == right.x
    assert boxes[-1].right == geo.canvas_width
    assert all(b.height == geo.canvas_height for b in boxes)


def test_left_bound_puts_front_first():
    dims = Dimensions()
    right = resolve_geometry(dims, Orientation.RIGHT, 300)
    left = resolve_geometry(dims, Orientation.LEFT, 300)

    assert panel_order(Orientation.LEFT) == (CoverPart.FRONT, CoverPart.SPINE, CoverPart.BACK)
    assert left.panel(CoverPart.FRONT).bleed_box.x == 0
    assert left.panel(CoverPart.BACK).bleed_box.right == left.canvas_width
    assert right.panel(CoverPart.FRONT).bleed_box.x > right.panel(CoverPart.SPINE).bleed_box.x
    assert left.panel(CoverPart.SPINE).bleed_box == right.panel(CoverPart.SPINE).bleed_box


@pytest.mark.parametrize(
    "dims",
    [
        Dimensions(width_in=0),
        Dimensions(height_in=-9),
        Dimensions(spine_in=0),
        Dimensions(width_in=math.nan),
        Dimensions(height_in=math.inf),
        Dimensions(bleed_in=-0.1),
        Dimensions(trim_in=-0.5),
    ],
)
def test_invalid_dimensions_are_rejected(dims):
    with pytest.raises(InvalidGeometryError):
        resolve_geometry(dims, Orientation.RIGHT, 300)


def test_zero_dpi_is_rejected():
    with pytest.raises(InvalidGeometryError):
        resolve_geometry(Dimensions(), Orientation.RIGHT, 0)


def test_percent_positions_are_relative_to_trim_box():
    box = Box(100, 40, 200, 400)

    assert percent_to_px(Position(0, 0), box) == (100, 40)
    assert percent_to_px(Position(50, 25), box) == (200, 140)
    assert percent_to_px(Position(100, 100), box) == (300, 440)
    assert percent_width(30, box) == pytest.approx(60)


def test_preview_scale_fits_width_and_is_capped():
    assert preview_scale(Dimensions(6, 9, 1, 0.125)) == pytest.approx(450 / 13.25)
    assert preview_scale(Dimensions(1, 1, 0.1, 0.0)) == 40


def test_geometry_to_dict_lists_all_panels():
    data = resolve_geometry(Dimensions(), Orientation.LEFT, 300).to_dict()

    assert data["order"] == ["front", "spine", "back"]
    assert set(data["panels"]) == {"front", "spine", "back"}
    assert data["panels"]["front"]["bleed_box"]["x"] == 0
