"""
Print compositor.

Renders a design snapshot into one full-bleed raster of the whole cover
(back, spine and front side by side) and serializes it to JPEG.

Pipeline:
1. Resolve geometry (canvas size, panel boxes) for the target DPI
2. Allocate a white canvas
3. Draw every panel's background over its full bleed box
4. For each panel left to right: text, then overlay images (per RenderOptions)
5. Encode (JPEG, quality and DPI from settings)

render_cover is synchronous and only reads from a ResourceBatch that was
resolved beforehand; export_cover is the async entry point that resolves
resources first.
"""
import asyncio
import io
import json
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw

from domain.errors import ResourceLoadError
from domain.models import (
    CoverPart,
    DesignState,
    ImageRole,
    RenderOptions,
    TextFieldKind,
)
from services.cover_backgrounds import render_background
from services.cover_canvas import new_canvas
from services.cover_fonts import FontResolver
from services.cover_geometry import (
    CoverGeometry,
    PanelGeometry,
    percent_to_px,
    percent_width,
    preview_scale,
    resolve_geometry,
)
from services.cover_overlays import draw_custom_image, draw_placed_image
from services.cover_resources import ResourceBatch, ResourceLoader, resolve_resources
from services.cover_spine import SpineTextItem, draw_spine_texts
from services.cover_text import render_text
from settings import settings

logger = logging.getLogger(__name__)

PANEL_TEXT_FIELDS = {
    CoverPart.FRONT: (TextFieldKind.TITLE, TextFieldKind.SUBTITLE, TextFieldKind.AUTHOR),
    CoverPart.SPINE: (TextFieldKind.SPINE_TITLE, TextFieldKind.SPINE_AUTHOR),
    CoverPart.BACK: (TextFieldKind.BACK_TEXT,),
}

PANEL_IMAGE_ROLES = {
    CoverPart.FRONT: (ImageRole.FRONT_PUBLISHER_LOGO,),
    CoverPart.SPINE: (ImageRole.SPINE_PUBLISHER_LOGO,),
    CoverPart.BACK: (ImageRole.AUTHOR_PHOTO, ImageRole.BACK_PUBLISHER_LOGO, ImageRole.ISBN_BARCODE),
}

GUIDE_TRIM_COLOR = (255, 0, 0, 200)
GUIDE_SAFE_COLOR = (0, 160, 255, 200)


def _require_image(resources: ResourceBatch, ref: str, label: str) -> Image.Image:
    image = resources.image(ref)
    if image is None:
        raise ResourceLoadError(f"The {label} image was not loaded before rendering.")
    return image


def _draw_panel_text(
    canvas: Image.Image,
    state: DesignState,
    panel: PanelGeometry,
    scale: float,
    fonts: FontResolver,
) -> None:
    if panel.part == CoverPart.SPINE:
        items = [
            SpineTextItem(tf.content, tf.style, tf.position)
            for tf in (state.text_field(kind) for kind in PANEL_TEXT_FIELDS[CoverPart.SPINE])
        ]
        items.extend(SpineTextItem(el.text, el.style, el.position) for el in state.texts_for(CoverPart.SPINE))
        draw_spine_texts(canvas, panel, items, scale, fonts)
        return

    box = panel.trim_box
    for kind in PANEL_TEXT_FIELDS[panel.part]:
        tf = state.text_field(kind)
        width_pct = tf.width_pct if tf.width_pct is not None else 100.0
        render_text(
            canvas,
            tf.content,
            tf.style,
            percent_to_px(tf.position, box),
            max_width=percent_width(width_pct, box),
            centered=tf.centered,
            scale=scale,
            fonts=fonts,
        )
    for element in state.texts_for(panel.part):
        render_text(
            canvas,
            element.text,
            element.style,
            percent_to_px(element.position, box),
            max_width=percent_width(element.width_pct, box),
            centered=False,
            scale=scale,
            fonts=fonts,
        )


def _draw_panel_images(
    canvas: Image.Image,
    state: DesignState,
    panel: PanelGeometry,
    scale: float,
    resources: ResourceBatch,
) -> None:
    # Spine overlays stay on the spine; front/back ones may run into the bleed.
    clip_box = panel.bleed_box if panel.part == CoverPart.SPINE else None
    for role in PANEL_IMAGE_ROLES[panel.part]:
        placed = state.placed_images[role]
        if not placed.image_ref:
            continue
        image = _require_image(resources, placed.image_ref, role.value.replace("_", " "))
        draw_placed_image(canvas, placed, image, panel, scale, clip_box=clip_box)
    for element in state.images_for(panel.part):
        image = _require_image(resources, element.image_ref, f"custom element {element.id}")
        draw_custom_image(canvas, element, image, panel, clip_box=clip_box)


def _save_stage(debug_dir: Optional[Path], canvas: Image.Image, name: str) -> None:
    if debug_dir is None:
        return
    try:
        canvas.save(debug_dir / f"{name}.png")
    except OSError:
        logger.warning("[debug-artifacts] failed to write stage %s", name, exc_info=True)


def render_cover(
    state: DesignState,
    resources: Optional[ResourceBatch] = None,
    options: Optional[RenderOptions] = None,
    dpi: Optional[float] = None,
    debug_dir: Optional[Path] = None,
) -> Image.Image:
    """
    Composite the full cover at the given DPI.

    Args:
        state: design snapshot; only read, never mutated
        resources: decoded images/fonts for everything the options draw
        options: stage gates; defaults to the with-text export
        dpi: pixels per inch; defaults to COVER_EXPORT_DPI
        debug_dir: when set, per-stage PNGs and geometry.json are written there

    Returns:
        RGBA image of geometry.canvas_width x geometry.canvas_height

    Raises:
        InvalidGeometryError, RenderSurfaceError, ResourceLoadError
    """
    resources = resources or ResourceBatch()
    options = options or RenderOptions.with_text()
    dpi = dpi if dpi is not None else settings.COVER_EXPORT_DPI

    geometry = resolve_geometry(state.dimensions, state.orientation, dpi)
    canvas = new_canvas(geometry.canvas_width, geometry.canvas_height)
    scale = geometry.points_to_px
    fonts = FontResolver(resources.fonts)

    if debug_dir is not None:
        debug_dir.mkdir(parents=True, exist_ok=True)
        (debug_dir / "geometry.json").write_text(json.dumps(geometry.to_dict(), indent=2))

    panels = geometry.ordered_panels()
    for panel in panels:
        spec = state.backgrounds[panel.part]
        render_background(canvas, panel.bleed_box, spec, resources.image(spec.image_ref), label=panel.part.value)
    _save_stage(debug_dir, canvas, "stage_01_backgrounds")

    for index, panel in enumerate(panels, start=2):
        if options.include_text:
            _draw_panel_text(canvas, state, panel, scale, fonts)
        if options.include_overlay_images:
            _draw_panel_images(canvas, state, panel, scale, resources)
        _save_stage(debug_dir, canvas, f"stage_{index:02d}_{panel.part.value}")

    logger.info(
        "[cover] rendered %dx%d at %s dpi (text=%s, overlays=%s, order=%s)",
        geometry.canvas_width,
        geometry.canvas_height,
        geometry.dpi,
        options.include_text,
        options.include_overlay_images,
        "/".join(p.value for p in geometry.order),
    )
    return canvas


def encode_jpeg(image: Image.Image, quality: Optional[int] = None, dpi: Optional[float] = None) -> bytes:
    """Flatten onto white and encode as JPEG with DPI metadata."""
    quality = quality if quality is not None else settings.COVER_JPEG_QUALITY
    dpi = dpi if dpi is not None else settings.COVER_EXPORT_DPI
    if image.mode == "RGBA":
        flat = Image.new("RGBA", image.size, (255, 255, 255, 255))
        flat.alpha_composite(image)
        image = flat
    out = io.BytesIO()
    image.convert("RGB").save(out, format="JPEG", quality=quality, dpi=(dpi, dpi))
    return out.getvalue()


def encode_png(image: Image.Image) -> bytes:
    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


async def export_cover(
    state: DesignState,
    options: Optional[RenderOptions] = None,
    loader: Optional[ResourceLoader] = None,
    dpi: Optional[float] = None,
    quality: Optional[int] = None,
    debug_dir: Optional[Path] = None,
) -> bytes:
    """
    Snapshot the state, load its resources, render, and encode to JPEG bytes.

    Nothing is drawn until every resource has loaded; a load failure raises
    ResourceLoadError and produces no output.
    """
    snapshot = state.snapshot()
    options = options or RenderOptions.with_text()
    dpi = dpi if dpi is not None else settings.COVER_EXPORT_DPI
    resources = await resolve_resources(snapshot, options, loader)

    def _render() -> bytes:
        image = render_cover(snapshot, resources, options, dpi=dpi, debug_dir=debug_dir)
        return encode_jpeg(image, quality=quality, dpi=dpi)

    return await asyncio.to_thread(_render)


def draw_guides(image: Image.Image, geometry: CoverGeometry) -> None:
    """Outline each panel's trim box and safety box. Preview only."""
    draw = ImageDraw.Draw(image)
    for panel in geometry.ordered_panels():
        for box, color in ((panel.trim_box, GUIDE_TRIM_COLOR), (panel.safe_box, GUIDE_SAFE_COLOR)):
            if box.width <= 1 or box.height <= 1:
                continue
            draw.rectangle((box.x, box.y, box.right - 1, box.bottom - 1), outline=color, width=1)


def render_preview(
    state: DesignState,
    resources: Optional[ResourceBatch] = None,
    options: Optional[RenderOptions] = None,
    show_guides: bool = True,
) -> Image.Image:
    """Render at the screen-fit scale, optionally with trim and safety guides."""
    scale = preview_scale(state.dimensions)
    image = render_cover(state, resources, options, dpi=scale)
    if show_guides:
        draw_guides(image, resolve_geometry(state.dimensions, state.orientation, scale))
    return image

