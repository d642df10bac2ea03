"""
Font resolution for cover text.

Maps a CSS-like family list ("Georgia, serif") to a FreeType font at a pixel
size. Lookup order per family name: fonts the user uploaded with the design,
then font files found in COVER_FONT_DIRS and the usual system folders, then
Pillow's bundled default font.

Custom font bytes must already be in memory (see cover_resources) before a
resolver measures anything with them.
"""
import io
import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from PIL import ImageFont

from domain.errors import ResourceLoadError
from settings import settings

logger = logging.getLogger(__name__)

SYSTEM_FONT_DIRS = [
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path("~/.fonts").expanduser(),
    Path("~/.local/share/fonts").expanduser(),
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
    Path("C:/Windows/Fonts"),
]

# Generic CSS families -> candidate file names, regular then bold
GENERIC_FAMILIES: Dict[str, Tuple[List[str], List[str]]] = {
    "serif": (
        ["DejaVuSerif.ttf", "LiberationSerif-Regular.ttf", "NotoSerif-Regular.ttf", "Georgia.ttf", "times.ttf"],
        ["DejaVuSerif-Bold.ttf", "LiberationSerif-Bold.ttf", "NotoSerif-Bold.ttf", "Georgia Bold.ttf", "timesbd.ttf"],
    ),
    "sans-serif": (
        ["DejaVuSans.ttf", "LiberationSans-Regular.ttf", "NotoSans-Regular.ttf", "Arial.ttf", "arial.ttf"],
        ["DejaVuSans-Bold.ttf", "LiberationSans-Bold.ttf", "NotoSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf"],
    ),
    "monospace": (
        ["DejaVuSansMono.ttf", "LiberationMono-Regular.ttf", "NotoSansMono-Regular.ttf", "cour.ttf"],
        ["DejaVuSansMono-Bold.ttf", "LiberationMono-Bold.ttf", "NotoSansMono-Bold.ttf", "courbd.ttf"],
    ),
}

FONT_SUFFIXES = (".ttf", ".otf", ".ttc")

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


def split_families(family: str) -> List[str]:
    """'"Playfair Display", Georgia, serif' -> ['Playfair Display', 'Georgia', 'serif']"""
    names = []
    for part in (family or "").split(","):
        name = part.strip().strip("'\"").strip()
        if name:
            names.append(name)
    return names


def _normalize(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


class FontResolver:
    """
    Resolves and caches fonts for one render.

    Args:
        custom_fonts: family name -> raw font file bytes (already loaded)
        font_dirs: extra directories to search before the system folders
    """

    def __init__(self, custom_fonts: Optional[Mapping[str, bytes]] = None, font_dirs: Optional[List[Path]] = None):
        self._custom = {name.strip().lower(): data for name, data in (custom_fonts or {}).items()}
        dirs = list(font_dirs if font_dirs is not None else settings.COVER_FONT_DIRS)
        self._font_dirs = dirs + SYSTEM_FONT_DIRS
        self._index: Optional[Dict[str, Path]] = None
        self._cache: Dict[Tuple[str, bool, int], FontType] = {}

    def _file_index(self) -> Dict[str, Path]:
        """Normalized file stem -> path, first directory wins."""
        if self._index is None:
            index: Dict[str, Path] = {}
            for root in self._font_dirs:
                if not root.is_dir():
                    continue
                for dirpath, _, filenames in os.walk(root):
                    for filename in sorted(filenames):
                        path = Path(dirpath) / filename
                        if path.suffix.lower() in FONT_SUFFIXES:
                            index.setdefault(_normalize(path.stem), path)
            self._index = index
        return self._index

    def _find_file(self, name: str, bold: bool) -> Optional[Path]:
        index = self._file_index()
        generic = GENERIC_FAMILIES.get(name.lower())
        if generic is not None:
            regular, bold_names = generic
            candidates = (bold_names + regular) if bold else regular
            for filename in candidates:
                path = index.get(_normalize(Path(filename).stem))
                if path is not None:
                    return path
            return None
        key = _normalize(name)
        suffixes = ["bold", "bd", "b", ""] if bold else ["regular", ""]
        for suffix in suffixes:
            path = index.get(key + suffix)
            if path is not None:
                return path
        if bold:
            return index.get(key + "regular")
        return None

    def get(self, family: str, size_px: float, bold: bool = False) -> FontType:
        """Font for a family list at a pixel size (rounded, at least 1px)."""
        size = max(1, int(round(size_px)))
        cache_key = (family, bold, size)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        font: Optional[FontType] = None
        for name in split_families(family):
            data = self._custom.get(name.lower())
            if data is not None:
                try:
                    font = ImageFont.truetype(io.BytesIO(data), size)
                except OSError as exc:
                    raise ResourceLoadError(f"Custom font '{name}' could not be read: {exc}") from exc
                break
            path = self._find_file(name, bold)
            if path is not None:
                try:
                    font = ImageFont.truetype(str(path), size)
                    break
                except OSError:
                    logger.warning("[fonts] unreadable font file %s for family %s", path, name)
        if font is None:
            logger.debug("[fonts] no font for %r, using Pillow default", family)
            font = ImageFont.load_default(size)
        self._cache[cache_key] = font
        return font


def validate_font_bytes(name: str, data: bytes) -> None:
    """
    Make sure a custom font parses before any text is measured with it.

    Raises:
        ResourceLoadError: not a font FreeType can open
    """
    try:
        ImageFont.truetype(io.BytesIO(data), 12)
    except OSError as exc:
        raise ResourceLoadError(f"Custom font '{name}' is not a readable font file: {exc}") from exc
