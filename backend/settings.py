import os
from pathlib import Path
from typing import List

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_paths(val: str | None) -> List[Path]:
    if not val:
        return []
    return [Path(p).expanduser() for p in val.split(os.pathsep) if p.strip()]


class Settings:
    def __init__(self) -> None:
        # Print export: 300 DPI JPEG at quality 95
        self.COVER_EXPORT_DPI: int = int(os.getenv("COVER_EXPORT_DPI", "300"))
        self.COVER_JPEG_QUALITY: int = int(os.getenv("COVER_JPEG_QUALITY", "95"))
        # Screen preview fits this many pixels wide, at most this many pixels per inch
        self.COVER_PREVIEW_MAX_WIDTH_PX: int = int(os.getenv("COVER_PREVIEW_MAX_WIDTH_PX", "450"))
        self.COVER_PREVIEW_MAX_SCALE: float = float(os.getenv("COVER_PREVIEW_MAX_SCALE", "40"))
        self.COVER_MAX_CANVAS_PIXELS: int = int(os.getenv("COVER_MAX_CANVAS_PIXELS", str(250_000_000)))
        self.COVER_FONT_DIRS: List[Path] = _as_paths(os.getenv("COVER_FONT_DIRS"))
        self.COVER_DEBUG_ARTIFACTS: bool = _as_bool(os.getenv("COVER_DEBUG_ARTIFACTS"), False)


settings = Settings()
