"""
CSS-style color parsing for design colors.

Pillow's ImageColor handles hex, names and integer rgb()/rgba(). The editor
also produces rgba() with a fractional alpha (e.g. "rgba(0,0,0,0.5)"), which
is handled here before falling back to Pillow.
"""
import re
from functools import lru_cache
from typing import Tuple

from PIL import ImageColor

RGBA = Tuple[int, int, int, int]

_RGBA_FLOAT_RE = re.compile(
    r"^rgba\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*([0-9]*\.?[0-9]+)\s*\)$",
    re.IGNORECASE,
)


@lru_cache(maxsize=256)
def parse_color(value: str) -> RGBA:
    """
    Parse a CSS color into an RGBA tuple.

    Raises:
        ValueError: unrecognised color string
    """
    text = (value or "").strip()
    if text.lower() == "transparent":
        return (0, 0, 0, 0)
    match = _RGBA_FLOAT_RE.match(text)
    if match:
        r, g, b = (min(255, int(match.group(i))) for i in (1, 2, 3))
        alpha = float(match.group(4))
        # rgba() alpha is 0..1 in CSS; treat values above 1 as 0..255
        a = int(round(alpha * 255)) if alpha <= 1.0 else int(min(255, alpha))
        return (r, g, b, a)
    rgba = ImageColor.getcolor(text, "RGBA")
    return tuple(rgba)  # type: ignore[return-value]
