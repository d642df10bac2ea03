import pytest
from PIL import Image

from domain.errors import ResourceLoadError
from domain.models import BackgroundSpec, BackgroundType
from services.cover_backgrounds import cover_fit, linear_gradient, render_background
from services.cover_colors import parse_color
from services.cover_geometry import Box


@pytest.mark.parametrize("angle", [0, 45, 90, 145, 180, 270, 333])
def test_equal_colors_give_uniform_fill(angle):
    img = linear_gradient((64, 48), "#336699", "#336699", angle)

    assert img.size == (64, 48)
    assert all(lo == hi for lo, hi in img.getextrema())
    assert img.getpixel((0, 0)) == (0x33, 0x66, 0x99, 255)


def test_180_degree_gradient_runs_bottom_to_top():
    img = linear_gradient((10, 100), "#000000", "#FFFFFF", 180)

    top = img.getpixel((5, 0))
    bottom = img.getpixel((5, 99))
    middle = img.getpixel((5, 50))
    assert top[0] >= 250
    assert bottom[0] <= 5
    assert 115 <= middle[0] <= 140


def test_cover_fit_crops_overflowing_axis_centered():
    src = Image.new("RGBA", (400, 200), (255, 0, 0, 255))
    src.paste((0, 0, 255, 255), (200, 0, 400, 200))

    out = cover_fit(src, 100, 100)

    assert out.size == (100, 100)
    r, g, b, _ = out.getpixel((10, 50))
    assert r >= 250 and b <= 5
    r, g, b, _ = out.getpixel((90, 50))
    assert b >= 250 and r <= 5


def test_background_fills_only_its_box():
    target = Image.new("RGBA", (50, 20), (255, 255, 255, 255))
    spec = BackgroundSpec(type=BackgroundType.GRADIENT, color1="red", color2="red", angle_deg=90)

    render_background(target, Box(10, 0, 20, 20), spec)

    assert target.getpixel((5, 5)) == (255, 255, 255, 255)
    assert target.getpixel((15, 5)) == (255, 0, 0, 255)
    assert target.getpixel((35, 5)) == (255, 255, 255, 255)


def test_upload_background_fills_box_with_image():
    target = Image.new("RGBA", (40, 40), (255, 255, 255, 255))
    photo = Image.new("RGB", (300, 100), (0, 200, 0))
    spec = BackgroundSpec(type=BackgroundType.UPLOAD, image_ref="photo.png")

    render_background(target, Box(0, 0, 40, 40), spec, photo)

    for xy in ((0, 0), (39, 39)):
        r, g, b, a = target.getpixel(xy)
        assert abs(g - 200) <= 2 and r <= 2 and a == 255


def test_upload_background_without_image_fails():
    target = Image.new("RGBA", (10, 10))
    spec = BackgroundSpec(type=BackgroundType.UPLOAD, image_ref="missing.png")

    with pytest.raises(ResourceLoadError):
        render_background(target, Box(0, 0, 10, 10), spec, None, label="front")


def test_parse_color_forms():
    assert parse_color("#fff") == (255, 255, 255, 255)
    assert parse_color("#11223344") == (0x11, 0x22, 0x33, 0x44)
    assert parse_color("rgba(0,0,0,0.5)") == (0, 0, 0, 128)
    assert parse_color("rgb(10, 20, 30)") == (10, 20, 30, 255)
    assert parse_color("transparent") == (0, 0, 0, 0)
    assert parse_color("white") == (255, 255, 255, 255)
    with pytest.raises(ValueError):
        parse_color("not-a-color")
