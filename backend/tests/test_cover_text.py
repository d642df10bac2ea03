import pytest
from PIL import Image, ImageChops, ImageFont

from domain.models import TextAlign, TextStyle
from services.cover_fonts import FontResolver
from services.cover_text import layout_text_block, render_text, text_width, wrap_text

BLURB = (
    "A sweeping story of two sisters who cross an ocean to find the father they "
    "never knew, only to discover that the past is a country with its own rules."
)


@pytest.fixture
def font():
    return ImageFont.load_default(20)


def _ink_box(img: Image.Image):
    white = Image.new("RGB", img.size, (255, 255, 255))
    return ImageChops.difference(img.convert("RGB"), white).getbbox()


def test_letter_spacing_adds_between_characters_only(font):
    assert text_width(font, "abc", 2.0) == pytest.approx(font.getlength("abc") + 4.0)
    assert text_width(font, "a", 5.0) == pytest.approx(font.getlength("a"))
    assert text_width(font, "", 5.0) == 0.0


def test_unbreakable_word_overflows_on_its_own_line(font):
    lines = wrap_text("Supercalifragilistic", font, max_width=10)

    assert lines == [("Supercalifragilistic", True)]


def test_newlines_split_paragraphs(font):
    lines = wrap_text("one\ntwo three", font, max_width=1000)

    assert lines == [("one", True), ("two three", True)]


def test_two_word_justified_line_fills_the_box(font):
    w_ab = text_width(font, "aa bb")
    w_abc = text_width(font, "aa bb cc")
    max_width = (w_ab + w_abc) / 2.0
    style = TextStyle(size_pt=20, align=TextAlign.JUSTIFY)

    layout = layout_text_block("aa bb cc", style, (10, 20), max_width, centered=False, scale=1.0, font=font)

    assert [line.text for line in layout.lines] == ["aa bb", "cc"]
    first, last = layout.lines
    w1 = text_width(font, "aa")
    w2 = text_width(font, "bb")
    gap = first.runs[1].x - (first.runs[0].x + w1)
    assert first.align == TextAlign.JUSTIFY
    assert gap == pytest.approx(max_width - w1 - w2)
    assert first.runs[1].x + w2 == pytest.approx(10 + max_width)
    assert last.align == TextAlign.LEFT
    assert last.x == pytest.approx(10)
    assert first.y == pytest.approx(20)


def test_justify_leaves_paragraph_ends_left_aligned(font):
    style = TextStyle(size_pt=20, align=TextAlign.JUSTIFY)

    layout = layout_text_block("alpha beta\ngamma delta", style, (0, 0), 1000, centered=False, scale=1.0, font=font)

    assert all(line.align == TextAlign.LEFT for line in layout.lines)


def test_hello_world_is_centered_on_anchor(font):
    style = TextStyle(size_pt=20, align=TextAlign.CENTER, line_height=1.5)

    layout = layout_text_block("Hello World", style, (200, 100), 300, centered=True, scale=1.0, font=font)

    assert len(layout.lines) == 1
    line = layout.lines[0]
    assert line.x + line.width / 2.0 == pytest.approx(200)
    assert line.y == pytest.approx(100 - 30 / 2.0)


def test_letter_spaced_hello_world_is_centered_at_print_dpi():
    scale = 300 / 72.0
    fonts = FontResolver(font_dirs=[])
    style = TextStyle(size_pt=24, color="#000000", align=TextAlign.CENTER, letter_spacing_pt=2)
    font = fonts.get(style.font_family, style.size_pt * scale, bold=style.bold)

    layout = layout_text_block("Hello World", style, (800, 400), 1500, centered=True, scale=scale, font=font)

    line = layout.lines[0]
    assert line.width == pytest.approx(text_width(font, "Hello World", 2 * scale))
    assert line.x + line.width / 2.0 == pytest.approx(800)

    target = Image.new("RGBA", (1600, 800), (255, 255, 255, 255))
    render_text(target, "Hello World", style, (800, 400), 1500, True, scale, fonts)
    left, _, right, _ = _ink_box(target)
    assert (left + right) / 2.0 == pytest.approx(800, abs=4)


def test_right_alignment_is_flush_with_box_edge(font):
    style = TextStyle(size_pt=20, align=TextAlign.RIGHT)

    layout = layout_text_block("Right", style, (50, 0), 200, centered=False, scale=1.0, font=font)

    line = layout.lines[0]
    assert line.x + line.width == pytest.approx(250)


def test_blurb_wraps_without_splitting_words(font):
    style = TextStyle(size_pt=20, align=TextAlign.LEFT, line_height=1.4)
    max_width = 260

    layout = layout_text_block(BLURB, style, (0, 0), max_width, centered=False, scale=1.0, font=font)

    assert len(layout.lines) > 2
    assert " ".join(line.text for line in layout.lines).split() == BLURB.split()
    for line in layout.lines:
        if " " in line.text:
            assert line.width <= max_width
    for prev, nxt in zip(layout.lines, layout.lines[1:]):
        assert nxt.y - prev.y == pytest.approx(20 * 1.4)


def test_justified_blurb_spreads_gaps_evenly_except_last_line(font):
    blurb = "Two sisters cross a cold ocean to find the father they never knew."
    style = TextStyle(size_pt=20, align=TextAlign.JUSTIFY)
    max_width = 200

    layout = layout_text_block(blurb, style, (30, 0), max_width, centered=False, scale=1.0, font=font)

    assert len(layout.lines) > 2
    assert " ".join(line.text for line in layout.lines).split() == blurb.split()
    justified = [line for line in layout.lines[:-1] if len(line.runs) > 1]
    assert len(justified) >= 2
    for line in justified:
        assert line.align == TextAlign.JUSTIFY
        gaps = [
            nxt.x - (run.x + text_width(font, run.text))
            for run, nxt in zip(line.runs, line.runs[1:])
        ]
        assert gaps == pytest.approx([gaps[0]] * len(gaps))
        last_run = line.runs[-1]
        assert last_run.x + text_width(font, last_run.text) == pytest.approx(30 + max_width)
    last = layout.lines[-1]
    assert last.align == TextAlign.LEFT
    assert last.x == pytest.approx(30)


def test_blank_text_lays_out_nothing_and_draws_nothing():
    target = Image.new("RGBA", (100, 50), (255, 255, 255, 255))
    fonts = FontResolver(font_dirs=[])

    layout = render_text(target, "   ", TextStyle(color="#000000"), (50, 25), 80, True, 1.0, fonts)

    assert layout.lines == []
    assert _ink_box(target) is None


def test_render_text_draws_near_anchor():
    target = Image.new("RGBA", (300, 100), (255, 255, 255, 255))
    fonts = FontResolver(font_dirs=[])
    style = TextStyle(size_pt=24, color="#000000")

    render_text(target, "Hi there", style, (150, 50), 280, True, 1.0, fonts)

    box = _ink_box(target)
    assert box is not None
    left, top, right, bottom = box
    assert left < 150 < right
    assert top < 50 < bottom


def test_stroke_and_shadow_add_ink():
    fonts = FontResolver(font_dirs=[])
    plain = Image.new("RGBA", (300, 100), (255, 255, 255, 255))
    fancy = plain.copy()

    render_text(plain, "Title", TextStyle(size_pt=30, color="#FFFF00"), (150, 50), 280, True, 1.0, fonts)
    render_text(
        fancy,
        "Title",
        TextStyle(size_pt=30, color="#FFFF00", stroke_width_pt=4, stroke_color="#000000", shadow_blur_pt=6),
        (150, 50),
        280,
        True,
        1.0,
        fonts,
    )

    def _count_dark(img):
        return sum(1 for px in img.convert("L").getdata() if px < 128)

    assert _count_dark(fancy) > _count_dark(plain)


def test_rendering_is_deterministic():
    fonts = FontResolver(font_dirs=[])
    style = TextStyle(size_pt=18, color="#203040", letter_spacing_pt=2, shadow_blur_pt=3)
    images = []
    for _ in range(2):
        img = Image.new("RGBA", (200, 80), (255, 255, 255, 255))
        render_text(img, "Same every time", style, (100, 40), 190, True, 1.0, fonts)
        images.append(img.tobytes())

    assert images[0] == images[1]
