"""Render a saved cover design to print-ready JPEGs.

Usage:
    python -m scripts.render_cover design.json [--out-dir exports] [--dpi 300] [--mode with_text|artwork_only]

Run from backend/. By default both exports are written:
book-cover-with-text.jpeg and book-cover-artwork-only.jpeg. Relative image and
font paths in the design file resolve against the design file's folder. When
COVER_DEBUG_ARTIFACTS=1 (or --debug), per-stage PNGs and geometry.json land in
<out-dir>/debug/<mode>/.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from domain.errors import CoverRenderError
from domain.models import DesignState, ExportMode, RenderOptions
from services.cover_compositor import export_cover
from services.cover_resources import register_heif_opener
from settings import settings

logger = logging.getLogger("render_cover")

EXPORT_FILENAMES = {
    ExportMode.WITH_TEXT: "book-cover-with-text.jpeg",
    ExportMode.ARTWORK_ONLY: "book-cover-artwork-only.jpeg",
}


def _resolve_ref(ref: Optional[str], base_dir: Path) -> Optional[str]:
    if not ref or ref.startswith("data:"):
        return ref
    path = Path(ref).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def load_design(path: Path) -> DesignState:
    """Read a design JSON file, anchoring relative resource paths to its folder."""
    state = DesignState.from_dict(json.loads(path.read_text(encoding="utf-8")))
    base_dir = path.resolve().parent
    for spec in state.backgrounds.values():
        spec.image_ref = _resolve_ref(spec.image_ref, base_dir)
    for placed in state.placed_images.values():
        placed.image_ref = _resolve_ref(placed.image_ref, base_dir)
    for element in state.custom_images:
        element.image_ref = _resolve_ref(element.image_ref, base_dir)
    for font in state.custom_fonts:
        font.data_ref = _resolve_ref(font.data_ref, base_dir)
    return state


def main(argv: Optional[list] = None) -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Render a cover design JSON file to JPEG.")
    parser.add_argument("design", help="Path to a design JSON file.")
    parser.add_argument("--out-dir", default="exports", help="Directory for the JPEG files.")
    parser.add_argument("--dpi", type=float, default=settings.COVER_EXPORT_DPI)
    parser.add_argument("--quality", type=int, default=settings.COVER_JPEG_QUALITY)
    parser.add_argument(
        "--mode",
        choices=[m.value for m in ExportMode],
        action="append",
        help="Export mode; repeat for several. Defaults to both.",
    )
    parser.add_argument("--debug", action="store_true", help="Write per-stage debug artifacts.")
    args = parser.parse_args(argv)

    register_heif_opener()
    out_dir = Path(args.out_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    modes = [ExportMode(m) for m in args.mode] if args.mode else list(ExportMode)
    debug_enabled = args.debug or settings.COVER_DEBUG_ARTIFACTS

    try:
        state = load_design(Path(args.design))
    except (OSError, ValueError, KeyError) as exc:
        logger.error("[render-cover] could not read design %s: %s", args.design, exc)
        return 2

    for mode in modes:
        debug_dir = out_dir / "debug" / mode.value if debug_enabled else None
        try:
            data = asyncio.run(export_cover(
                state,
                RenderOptions.for_mode(mode),
                dpi=args.dpi,
                quality=args.quality,
                debug_dir=debug_dir,
            ))
        except (CoverRenderError, ValueError) as exc:
            logger.error("[render-cover] %s export failed: %s", mode.value, exc)
            return 1
        out_path = out_dir / EXPORT_FILENAMES[mode]
        out_path.write_bytes(data)
        logger.info("[render-cover] wrote %s (%d bytes)", out_path, len(data))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
