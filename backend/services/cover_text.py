"""
Text layout engine for cover text.

Layout is pure geometry (layout_text_block) and painting is a separate step
(paint_text_block), so wrapping and alignment can be checked without pixels.

Conventions:
- All style sizes are points; `scale` (dpi / 72) converts them to pixels.
- Line tops are the font's ascender line (Pillow anchor "la").
- Centered blocks own the box [ax - max_width/2, ax + max_width/2] and are
  vertically centered on ay. Box-bound blocks own [ax, ax + max_width] and
  start at ay.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageFilter

from domain.models import TextAlign, TextStyle
from services.cover_canvas import composite_clipped
from services.cover_colors import parse_color
from services.cover_fonts import FontResolver, FontType
from services.cover_geometry import Box

logger = logging.getLogger(__name__)

DEFAULT_SHADOW_OFFSET_PT = 2.0


@dataclass
class GlyphRun:
    """A piece of text drawn starting at x (absolute pixels)."""
    text: str
    x: float


@dataclass
class LineLayout:
    text: str
    x: float
    y: float
    width: float
    align: TextAlign
    runs: List[GlyphRun] = field(default_factory=list)


@dataclass
class TextBlockLayout:
    lines: List[LineLayout]
    font_size_px: float
    line_height_px: float
    letter_spacing_px: float
    box_left: float
    box_right: float

    @property
    def height(self) -> float:
        return len(self.lines) * self.line_height_px

    @property
    def top(self) -> float:
        return self.lines[0].y if self.lines else 0.0

    def bounds(self) -> Tuple[float, float, float, float]:
        """Approximate ink bounds (left, top, right, bottom) before stroke/shadow."""
        if not self.lines:
            return (0.0, 0.0, 0.0, 0.0)
        left = min(line.x for line in self.lines)
        right = max(line.x + line.width for line in self.lines)
        top = self.lines[0].y
        bottom = self.lines[-1].y + max(self.line_height_px, self.font_size_px * 1.3)
        return (left, top, right, bottom)


def text_width(font: FontType, text: str, letter_spacing: float = 0.0) -> float:
    """Advance width of text plus letter spacing between (not after) characters."""
    if not text:
        return 0.0
    width = font.getlength(text)
    if len(text) > 1:
        width += (len(text) - 1) * letter_spacing
    return width


def wrap_text(text: str, font: FontType, max_width: float, letter_spacing: float = 0.0) -> List[Tuple[str, bool]]:
    """
    Greedy word wrap.

    Returns (line, ends_paragraph) pairs. Newlines start new paragraphs. A
    word wider than max_width stays whole on its own line.
    """
    lines: List[Tuple[str, bool]] = []
    for paragraph in text.replace("\r\n", "\n").split("\n"):
        words = paragraph.split()
        if not words:
            lines.append(("", True))
            continue
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if text_width(font, candidate, letter_spacing) > max_width:
                lines.append((current, False))
                current = word
            else:
                current = candidate
        lines.append((current, True))
    return lines


def layout_text_block(
    text: str,
    style: TextStyle,
    anchor: Tuple[float, float],
    max_width: float,
    centered: bool,
    scale: float,
    font: FontType,
) -> TextBlockLayout:
    """Wrap and position text. Does not draw anything."""
    font_px = style.size_pt * scale
    spacing = style.letter_spacing_pt * scale
    line_h = font_px * style.line_height
    ax, ay = anchor
    box_left = ax - max_width / 2.0 if centered else ax
    box_right = box_left + max_width

    if not text or not text.strip():
        return TextBlockLayout([], font_px, line_h, spacing, box_left, box_right)

    wrapped = wrap_text(text, font, max_width, spacing)
    y = ay - (len(wrapped) * line_h) / 2.0 if centered else ay

    lines: List[LineLayout] = []
    for line_text, ends_paragraph in wrapped:
        align = TextAlign(style.align)
        words = line_text.split(" ")
        if align == TextAlign.JUSTIFY and (ends_paragraph or len(words) < 2):
            align = TextAlign.LEFT

        if align == TextAlign.JUSTIFY:
            widths = [text_width(font, word, spacing) for word in words]
            gap = (max_width - sum(widths)) / (len(words) - 1)
            runs = []
            x = box_left
            for word, word_w in zip(words, widths):
                runs.append(GlyphRun(word, x))
                x += word_w + gap
            lines.append(LineLayout(line_text, box_left, y, max_width, align, runs))
        else:
            width = text_width(font, line_text, spacing)
            if align == TextAlign.CENTER:
                x = box_left + max_width / 2.0 - width / 2.0
            elif align == TextAlign.RIGHT:
                x = box_right - width
            else:
                x = box_left
            lines.append(LineLayout(line_text, x, y, width, align, [GlyphRun(line_text, x)]))
        y += line_h

    return TextBlockLayout(lines, font_px, line_h, spacing, box_left, box_right)


def _draw_runs(
    draw: ImageDraw.ImageDraw,
    layout: TextBlockLayout,
    font: FontType,
    origin: Tuple[int, int],
    fill: Tuple[int, int, int, int],
    stroke_width: int = 0,
) -> None:
    ox, oy = origin
    spacing = layout.letter_spacing_px
    kwargs = {"stroke_width": stroke_width, "stroke_fill": fill} if stroke_width else {}
    for line in layout.lines:
        y = line.y - oy
        for run in line.runs:
            if not run.text:
                continue
            if spacing == 0:
                draw.text((run.x - ox, y), run.text, font=font, fill=fill, anchor="la", **kwargs)
                continue
            x = run.x - ox
            for ch in run.text:
                draw.text((x, y), ch, font=font, fill=fill, anchor="la", **kwargs)
                x += font.getlength(ch) + spacing


def paint_text_block(
    target: Image.Image,
    layout: TextBlockLayout,
    style: TextStyle,
    font: FontType,
    scale: float,
    shadow_offset_pt: Tuple[float, float] = (DEFAULT_SHADOW_OFFSET_PT, DEFAULT_SHADOW_OFFSET_PT),
    clip_box: Optional[Box] = None,
) -> None:
    """
    Paint a laid-out block: shadow, then stroke, then fill.

    The block is drawn on its own transparent layer and composited, so
    semi-transparent colors blend with whatever is already on the target.
    """
    if not layout.lines:
        return

    # Stroke width straddles the glyph outline; Pillow strokes only grow outward.
    stroke_px = 0
    if style.stroke_width_pt > 0:
        stroke_px = max(1, int(round(style.stroke_width_pt * scale / 2.0)))
    blur_px = style.shadow_blur_pt * scale if style.shadow_blur_pt > 0 else 0.0
    offset_x, offset_y = (shadow_offset_pt[0] * scale, shadow_offset_pt[1] * scale) if blur_px else (0.0, 0.0)

    left, top, right, bottom = layout.bounds()
    pad = int(math.ceil(stroke_px + blur_px * 1.5 + max(abs(offset_x), abs(offset_y)) + layout.font_size_px * 0.5)) + 2
    origin = (int(math.floor(left)) - pad, int(math.floor(top)) - pad)
    size = (
        max(1, int(math.ceil(right)) + pad - origin[0]),
        max(1, int(math.ceil(bottom)) + pad - origin[1]),
    )

    text_layer = Image.new("RGBA", size, (0, 0, 0, 0))
    if stroke_px:
        stroke_color = parse_color(style.stroke_color)
        _draw_runs(ImageDraw.Draw(text_layer), layout, font, origin, stroke_color, stroke_width=stroke_px)
    fill_layer = Image.new("RGBA", size, (0, 0, 0, 0))
    _draw_runs(ImageDraw.Draw(fill_layer), layout, font, origin, parse_color(style.color))
    text_layer.alpha_composite(fill_layer)

    if blur_px:
        shadow_rgba = parse_color(style.shadow_color)
        # Shadow blur is roughly twice the Gaussian sigma.
        mask = text_layer.getchannel("A").filter(ImageFilter.GaussianBlur(radius=blur_px / 2.0))
        mask = ImageChops.multiply(mask, Image.new("L", size, shadow_rgba[3]))
        shadow_layer = Image.new("RGBA", size, shadow_rgba[:3] + (0,))
        shadow_layer.putalpha(mask)
        composite_clipped(target, shadow_layer, origin[0] + offset_x, origin[1] + offset_y, clip_box)

    composite_clipped(target, text_layer, origin[0], origin[1], clip_box)


def render_text(
    target: Image.Image,
    text: str,
    style: TextStyle,
    anchor: Tuple[float, float],
    max_width: float,
    centered: bool,
    scale: float,
    fonts: FontResolver,
    shadow_offset_pt: Tuple[float, float] = (DEFAULT_SHADOW_OFFSET_PT, DEFAULT_SHADOW_OFFSET_PT),
    clip_box: Optional[Box] = None,
) -> TextBlockLayout:
    """Lay out and paint one text block; returns the layout used."""
    font = fonts.get(style.font_family, style.size_pt * scale, bold=style.bold)
    layout = layout_text_block(text, style, anchor, max_width, centered, scale, font)
    logger.debug("[text] %d line(s) at %s, max_width=%.1f", len(layout.lines), anchor, max_width)
    paint_text_block(target, layout, style, font, scale, shadow_offset_pt, clip_box)
    return layout
