"""
Resource resolution for a cover render.

Every image and font a render needs is decoded up front, concurrently, into a
ResourceBatch. Drawing only starts once the whole batch is in memory; a single
failed decode aborts the render before anything is drawn.

References may be data URLs ("data:image/png;base64,..."), raw bytes, or file
paths.
"""
import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from domain.errors import ResourceLoadError
from domain.models import BackgroundType, DesignState, RenderOptions
from services.cover_fonts import validate_font_bytes

logger = logging.getLogger(__name__)

Reference = Union[str, bytes]


def register_heif_opener() -> bool:
    """
    Register HEIF/HEIC opener with Pillow if pillow-heif is available.

    Call this at application startup to enable HEIC uploads (iPhone photos).
    Safe to call multiple times.
    """
    try:
        from pillow_heif import register_heif_opener as _register
        _register()
        return True
    except ImportError:
        logger.warning("[resources] pillow-heif not installed, HEIC uploads will fail to decode")
        return False


def _describe(ref: Reference) -> str:
    text = ref if isinstance(ref, str) else f"<{len(ref)} bytes>"
    return text if len(text) <= 100 else text[:100] + "..."


def read_reference(ref: Reference) -> bytes:
    """
    Raw bytes behind a reference.

    Raises:
        ResourceLoadError: malformed data URL or unreadable file
    """
    if isinstance(ref, (bytes, bytearray)):
        return bytes(ref)
    if ref.startswith("data:"):
        header, sep, payload = ref.partition(",")
        if not sep:
            raise ResourceLoadError(f"Malformed data URL: {_describe(ref)}")
        try:
            if header.endswith(";base64"):
                return base64.b64decode(payload, validate=True)
            return payload.encode("utf-8")
        except (binascii.Error, ValueError) as exc:
            raise ResourceLoadError(f"Data URL is not valid base64: {_describe(ref)}") from exc
    try:
        return Path(ref).expanduser().read_bytes()
    except OSError as exc:
        raise ResourceLoadError(f"Could not read resource {_describe(ref)}: {exc}") from exc


def decode_image(ref: Reference) -> Image.Image:
    """
    Decode an image reference into a fully loaded RGBA image, EXIF rotation applied.

    Raises:
        ResourceLoadError: the reference cannot be read or decoded
    """
    data = read_reference(ref)
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ResourceLoadError(f"Could not decode image {_describe(ref)}: {exc}") from exc


def read_font(name: str, ref: Reference) -> bytes:
    """Read a custom font reference and check FreeType can parse it."""
    data = read_reference(ref)
    validate_font_bytes(name, data)
    return data


class ResourceLoader:
    """
    Loads references off the event loop.

    Decoding is CPU and IO bound, so each decode runs in a worker thread
    (asyncio.to_thread); callers await many of them at once.
    """

    async def load_image(self, ref: Reference) -> Image.Image:
        return await asyncio.to_thread(decode_image, ref)

    async def load_font(self, name: str, ref: Reference) -> bytes:
        return await asyncio.to_thread(read_font, name, ref)


@dataclass
class ResourceBatch:
    """Decoded resources for one render, keyed by reference / font name."""
    images: Dict[str, Image.Image] = field(default_factory=dict)
    fonts: Dict[str, bytes] = field(default_factory=dict)

    def image(self, ref: Optional[str]) -> Optional[Image.Image]:
        if not ref:
            return None
        return self.images.get(ref)


def collect_requirements(state: DesignState, options: RenderOptions) -> Tuple[List[str], List[Tuple[str, str]]]:
    """
    Image references and (font name, reference) pairs the render will use.

    Backgrounds are always needed; overlay images only when overlays are
    drawn; custom fonts only when text is drawn. References are de-duplicated
    in first-seen order.
    """
    images: List[str] = []

    def _add(ref: Optional[str]) -> None:
        if ref and ref not in images:
            images.append(ref)

    for spec in state.backgrounds.values():
        if BackgroundType(spec.type) == BackgroundType.UPLOAD:
            _add(spec.image_ref)
    if options.include_overlay_images:
        for placed in state.placed_images.values():
            _add(placed.image_ref)
        for element in state.custom_images:
            _add(element.image_ref)

    fonts: List[Tuple[str, str]] = []
    if options.include_text:
        fonts = [(font.name, font.data_ref) for font in state.custom_fonts]
    return images, fonts


async def resolve_resources(
    state: DesignState,
    options: RenderOptions,
    loader: Optional[ResourceLoader] = None,
) -> ResourceBatch:
    """
    Decode every resource the render needs, concurrently.

    Raises:
        ResourceLoadError: any single resource failed (the first failure wins)
    """
    loader = loader or ResourceLoader()
    image_refs, font_refs = collect_requirements(state, options)
    logger.debug("[resources] loading %d image(s), %d font(s)", len(image_refs), len(font_refs))

    results = await asyncio.gather(
        *(loader.load_image(ref) for ref in image_refs),
        *(loader.load_font(name, ref) for name, ref in font_refs),
    )
    images = results[:len(image_refs)]
    fonts = results[len(image_refs):]
    return ResourceBatch(
        images=dict(zip(image_refs, images)),
        fonts={name: data for (name, _), data in zip(font_refs, fonts)},
    )
