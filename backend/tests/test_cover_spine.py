import numpy as np
import pytest
from PIL import Image, ImageChops

from domain.models import CoverPart, Dimensions, Orientation, Position, TextStyle
from services.cover_fonts import FontResolver
from services.cover_geometry import resolve_geometry
from services.cover_spine import SpineTextItem, draw_spine_texts, frame_shadow_offset, spine_frame_anchor


def _geometry():
    # 72 dpi keeps points and pixels 1:1
    return resolve_geometry(Dimensions(6, 9, 1, 0.125), Orientation.RIGHT, 72)


def _ink_box(img: Image.Image):
    white = Image.new("RGB", img.size, (255, 255, 255))
    return ImageChops.difference(img.convert("RGB"), white).getbbox()


def test_center_position_maps_to_frame_center():
    spine = _geometry().panel(CoverPart.SPINE)

    x, y = spine_frame_anchor(spine, Position(50, 50))

    assert x == pytest.approx(spine.bleed_box.height / 2.0)
    assert y == pytest.approx(spine.bleed_box.width / 2.0)


def test_percent_y_moves_along_the_spine():
    spine = _geometry().panel(CoverPart.SPINE)

    top_x, _ = spine_frame_anchor(spine, Position(50, 0))
    bottom_x, _ = spine_frame_anchor(spine, Position(50, 100))

    assert bottom_x - top_x == pytest.approx(spine.trim_box.height)


def test_spine_text_runs_vertically_and_stays_on_spine():
    geo = _geometry()
    spine = geo.panel(CoverPart.SPINE)
    canvas = Image.new("RGBA", (geo.canvas_width, geo.canvas_height), (255, 255, 255, 255))
    items = [SpineTextItem("THE LONG SPINE TITLE", TextStyle(size_pt=30, color="#000000"), Position(50, 50))]

    layouts = draw_spine_texts(canvas, spine, items, geo.points_to_px, FontResolver(font_dirs=[]))

    assert len(layouts) == 1
    box = _ink_box(canvas)
    assert box is not None
    left, top, right, bottom = box
    assert left >= spine.bleed_box.x
    assert right <= spine.bleed_box.right
    assert bottom - top > right - left
    center_y = (top + bottom) / 2.0
    assert center_y == pytest.approx(geo.canvas_height / 2.0, abs=geo.canvas_height * 0.1)


def test_spine_text_is_clipped_to_spine_box():
    geo = _geometry()
    spine = geo.panel(CoverPart.SPINE)
    canvas = Image.new("RGBA", (geo.canvas_width, geo.canvas_height), (255, 255, 255, 255))
    # Far too big for a one inch spine: the glyphs overflow across it
    items = [SpineTextItem("WIDE", TextStyle(size_pt=150, color="#000000"), Position(50, 50))]

    draw_spine_texts(canvas, spine, items, geo.points_to_px, FontResolver(font_dirs=[]))

    left, _, right, _ = _ink_box(canvas)
    assert left >= spine.bleed_box.x
    assert right <= spine.bleed_box.right


def test_empty_items_draw_nothing():
    geo = _geometry()
    canvas = Image.new("RGBA", (geo.canvas_width, geo.canvas_height), (255, 255, 255, 255))
    items = [SpineTextItem("", TextStyle(color="#000000"), Position(50, 30))]

    assert draw_spine_texts(canvas, geo.panel(CoverPart.SPINE), items, 1.0, FontResolver(font_dirs=[])) == []
    assert _ink_box(canvas) is None


def _ink_centroid(img: Image.Image):
    darkness = 255.0 - np.asarray(img.convert("L"), dtype=np.float64)
    ys, xs = np.indices(darkness.shape)
    total = darkness.sum()
    return (xs * darkness).sum() / total, (ys * darkness).sum() / total


def test_frame_shadow_offset_turns_down_right_after_rotation():
    dx, dy = frame_shadow_offset(3)
    base = Image.new("L", (40, 20), 0)
    base.putpixel((10, 10), 255)
    shifted = Image.new("L", (40, 20), 0)
    shifted.putpixel((10 + dx, 10 + dy), 255)

    base_box = base.transpose(Image.Transpose.ROTATE_270).getbbox()
    shifted_box = shifted.transpose(Image.Transpose.ROTATE_270).getbbox()

    assert shifted_box[0] - base_box[0] == 3
    assert shifted_box[1] - base_box[1] == 3


def test_spine_shadow_falls_down_and_right_on_the_cover():
    geo = resolve_geometry(Dimensions(2, 3, 1, 0.125), Orientation.RIGHT, 300)
    spine = geo.panel(CoverPart.SPINE)
    fonts = FontResolver(font_dirs=[])
    size = (geo.canvas_width, geo.canvas_height)

    plain = Image.new("RGBA", size, (255, 255, 255, 255))
    glyphs = TextStyle(size_pt=30, color="#000000", shadow_blur_pt=0)
    draw_spine_texts(plain, spine, [SpineTextItem("SPINE", glyphs, Position(50, 50))], geo.points_to_px, fonts)

    # White glyphs on white leave only the shadow visible
    shadowed = Image.new("RGBA", size, (255, 255, 255, 255))
    shadow_only = TextStyle(size_pt=30, color="#ffffff", shadow_blur_pt=0.5, shadow_color="#000000")
    draw_spine_texts(shadowed, spine, [SpineTextItem("SPINE", shadow_only, Position(50, 50))], geo.points_to_px, fonts)

    glyph_x, glyph_y = _ink_centroid(plain)
    shadow_x, shadow_y = _ink_centroid(shadowed)
    assert shadow_x - glyph_x > 1.0
    assert shadow_y - glyph_y > 1.0
