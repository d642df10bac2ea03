"""
Cover export API routes.

The request body is a full design; images and fonts travel inside it as data
URLs (or server-side paths for trusted callers).
"""
import asyncio
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field, field_validator

from domain.errors import CoverRenderError, InvalidGeometryError, ResourceLoadError
from domain.models import (
    BackgroundType,
    ClipShape,
    CoverPart,
    DesignState,
    ExportMode,
    ImageRole,
    Orientation,
    RenderOptions,
    TextAlign,
    TextFieldKind,
)
from services.cover_colors import parse_color
from services.cover_compositor import encode_png, export_cover, render_preview
from services.cover_geometry import preview_scale, resolve_geometry
from services.cover_resources import resolve_resources
from settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)

EXPORT_FILENAMES = {
    ExportMode.WITH_TEXT: "book-cover-with-text.jpeg",
    ExportMode.ARTWORK_ONLY: "book-cover-artwork-only.jpeg",
}


def _check_color(value: Optional[str]) -> str:
    """Reject colors the renderer cannot parse; an omitted field keeps its default."""
    if value is None:
        raise ValueError("color must not be null")
    try:
        parse_color(value)
    except ValueError as exc:
        raise ValueError(f"unrecognised color {value!r}") from exc
    return value


class PositionPayload(BaseModel):
    x: float = 50.0
    y: float = 50.0


class DimensionsPayload(BaseModel):
    width_in: float = 6.0
    height_in: float = 9.0
    spine_in: float = 1.0
    bleed_in: float = 0.125
    trim_in: float = 0.125


class BackgroundPayload(BaseModel):
    type: BackgroundType = BackgroundType.GRADIENT
    image_ref: Optional[str] = None
    color1: Optional[str] = None
    color2: Optional[str] = None
    angle_deg: Optional[float] = None

    @field_validator("color1", "color2")
    @classmethod
    def check_color(cls, value):
        return _check_color(value)


class TextStylePayload(BaseModel):
    font_family: Optional[str] = None
    size_pt: Optional[float] = None
    color: Optional[str] = None
    align: Optional[TextAlign] = None
    line_height: Optional[float] = None
    letter_spacing_pt: Optional[float] = None
    stroke_width_pt: Optional[float] = None
    stroke_color: Optional[str] = None
    shadow_blur_pt: Optional[float] = None
    shadow_color: Optional[str] = None
    bold: Optional[bool] = None

    @field_validator("color", "stroke_color", "shadow_color")
    @classmethod
    def check_color(cls, value):
        return _check_color(value)


class TextFieldPayload(BaseModel):
    content: Optional[str] = None
    style: Optional[TextStylePayload] = None
    position: Optional[PositionPayload] = None
    width_pct: Optional[float] = None


class PlacedImagePayload(BaseModel):
    image_ref: Optional[str] = None
    position: Optional[PositionPayload] = None
    width_pct: Optional[float] = None


class CustomTextPayload(BaseModel):
    id: Optional[str] = None
    text: str = ""
    panel: CoverPart
    position: Optional[PositionPayload] = None
    width_pct: float = 50.0
    style: Optional[TextStylePayload] = None


class CustomImagePayload(BaseModel):
    id: Optional[str] = None
    image_ref: str
    panel: CoverPart
    position: Optional[PositionPayload] = None
    width_pct: float = 30.0
    rotation_deg: float = 0.0
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    clip_shape: ClipShape = ClipShape.NONE
    aspect_ratio: float = Field(default=1.0, gt=0.0)


class CustomFontPayload(BaseModel):
    name: str
    data_ref: str


class CoverDesignPayload(BaseModel):
    orientation: Orientation = Orientation.RIGHT
    dimensions: Optional[DimensionsPayload] = None
    backgrounds: Dict[CoverPart, BackgroundPayload] = Field(default_factory=dict)
    text_fields: Dict[TextFieldKind, TextFieldPayload] = Field(default_factory=dict)
    placed_images: Dict[ImageRole, PlacedImagePayload] = Field(default_factory=dict)
    publisher_logo: Optional[str] = None
    custom_texts: List[CustomTextPayload] = Field(default_factory=list)
    custom_images: List[CustomImagePayload] = Field(default_factory=list)
    custom_fonts: List[CustomFontPayload] = Field(default_factory=list)


class BoxResponse(BaseModel):
    x: int
    y: int
    width: int
    height: int


class PanelGeometryResponse(BaseModel):
    bleed_box: BoxResponse
    trim_box: BoxResponse
    safe_box: BoxResponse


class GeometryResponse(BaseModel):
    dpi: float
    canvas_width: int
    canvas_height: int
    bleed_px: int
    safety_px: int
    order: List[CoverPart]
    panels: Dict[CoverPart, PanelGeometryResponse]
    preview_scale: float


def payload_to_state(payload: CoverDesignPayload) -> DesignState:
    """Only fields the client actually sent override the editor defaults."""
    data = payload.model_dump(mode="json", exclude_unset=True)
    try:
        return DesignState.from_dict(data)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


def _http_error(exc: CoverRenderError) -> HTTPException:
    if isinstance(exc, (InvalidGeometryError, ResourceLoadError)):
        logger.warning("[covers] render rejected: %s", exc)
        return HTTPException(status_code=422, detail=str(exc))
    logger.exception("[covers] render failed")
    return HTTPException(status_code=500, detail=str(exc))


@router.post("/export")
async def export_cover_jpeg(
    payload: CoverDesignPayload,
    mode: ExportMode = ExportMode.WITH_TEXT,
    dpi: Optional[float] = None,
):
    """Render the print-ready JPEG for one export mode."""
    state = payload_to_state(payload)
    try:
        data = await export_cover(state, RenderOptions.for_mode(mode), dpi=dpi)
    except CoverRenderError as exc:
        raise _http_error(exc)
    return Response(
        content=data,
        media_type="image/jpeg",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAMES[mode]}"'},
    )


@router.post("/preview")
async def preview_cover_png(
    payload: CoverDesignPayload,
    mode: ExportMode = ExportMode.WITH_TEXT,
    show_guides: bool = True,
):
    """Screen-sized PNG preview, optionally with trim and safety guides."""
    state = payload_to_state(payload)
    options = RenderOptions.for_mode(mode)
    try:
        resources = await resolve_resources(state, options)
        image = await asyncio.to_thread(render_preview, state, resources, options, show_guides)
    except CoverRenderError as exc:
        raise _http_error(exc)
    return Response(content=encode_png(image), media_type="image/png")


@router.post("/geometry", response_model=GeometryResponse)
async def cover_geometry(payload: CoverDesignPayload, dpi: Optional[float] = None):
    """Resolved pixel boxes for the design's dimensions."""
    state = payload_to_state(payload)
    try:
        geometry = resolve_geometry(
            state.dimensions,
            state.orientation,
            dpi if dpi is not None else settings.COVER_EXPORT_DPI,
        )
        scale = preview_scale(state.dimensions)
    except CoverRenderError as exc:
        raise _http_error(exc)
    return GeometryResponse(**geometry.to_dict(), preview_scale=scale)
