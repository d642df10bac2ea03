import asyncio
import base64
import io
import threading

import pytest
from PIL import Image

from domain.errors import ResourceLoadError
from domain.models import (
    BackgroundSpec,
    BackgroundType,
    CoverPart,
    CustomFont,
    CustomImageElement,
    DesignState,
    ImageRole,
    RenderOptions,
)
from services import cover_resources
from services.cover_resources import (
    ResourceLoader,
    collect_requirements,
    decode_image,
    read_reference,
    resolve_resources,
)


def _png_bytes(size=(8, 4), color=(10, 20, 30)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG")
    return out.getvalue()


def _data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _state_with_everything(bg_ref: str, logo_ref: str, custom_ref: str) -> DesignState:
    state = DesignState.default()
    state.backgrounds[CoverPart.FRONT] = BackgroundSpec(type=BackgroundType.UPLOAD, image_ref=bg_ref)
    state.placed_images[ImageRole.ISBN_BARCODE].image_ref = logo_ref
    state.add_custom_image(CustomImageElement(id="c1", image_ref=custom_ref, panel=CoverPart.BACK))
    state.custom_fonts.append(CustomFont(name="Brand", data_ref="fonts/brand.ttf"))
    return state


def test_decode_data_url_into_rgba():
    img = decode_image(_data_url(_png_bytes((8, 4))))

    assert img.mode == "RGBA"
    assert img.size == (8, 4)
    assert img.getpixel((0, 0)) == (10, 20, 30, 255)


def test_decode_raw_bytes_and_paths(tmp_path):
    data = _png_bytes((3, 5))
    path = tmp_path / "photo.png"
    path.write_bytes(data)

    assert decode_image(data).size == (3, 5)
    assert decode_image(str(path)).size == (3, 5)


@pytest.mark.parametrize(
    "ref",
    [
        "data:image/png;base64,AAAA",
        "data:image/png;base64,@@not base64@@",
        "data:image/png;base64",
        "/definitely/not/here.png",
    ],
)
def test_bad_references_raise_resource_load_error(ref):
    with pytest.raises(ResourceLoadError):
        decode_image(ref)


def test_long_references_are_truncated_in_messages():
    ref = "data:image/png;base64," + "A" * 500

    with pytest.raises(ResourceLoadError) as excinfo:
        decode_image(ref)

    assert len(str(excinfo.value)) < 300


def test_plain_data_url_payload():
    assert read_reference("data:text/plain,hello") == b"hello"


def test_artwork_only_needs_backgrounds_only():
    state = _state_with_everything("bg.png", "isbn.png", "custom.png")

    images, fonts = collect_requirements(state, RenderOptions.artwork_only())

    assert images == ["bg.png"]
    assert fonts == []


def test_with_text_needs_overlays_and_fonts():
    state = _state_with_everything("bg.png", "isbn.png", "bg.png")

    images, fonts = collect_requirements(state, RenderOptions.with_text())

    assert images == ["bg.png", "isbn.png"]
    assert fonts == [("Brand", "fonts/brand.ttf")]


def test_resolve_resources_loads_every_image():
    bg = _data_url(_png_bytes((6, 6), (200, 0, 0)))
    logo = _data_url(_png_bytes((4, 2), (0, 0, 200)))
    state = _state_with_everything(bg, logo, logo)
    state.custom_fonts = []

    batch = asyncio.run(resolve_resources(state, RenderOptions.with_text()))

    assert set(batch.images) == {bg, logo}
    assert batch.image(bg).size == (6, 6)
    assert batch.image(None) is None
    assert batch.fonts == {}


def test_one_failed_image_fails_the_whole_batch():
    good = _data_url(_png_bytes())
    state = _state_with_everything(good, good, "/missing/custom.png")
    state.custom_fonts = []

    with pytest.raises(ResourceLoadError):
        asyncio.run(resolve_resources(state, RenderOptions.with_text()))


def test_unreadable_custom_font_fails():
    loader = ResourceLoader()

    with pytest.raises(ResourceLoadError):
        asyncio.run(loader.load_font("Broken", b"not a font file"))


def test_font_validation_runs_off_the_event_loop(monkeypatch):
    threads = []

    def _record(name, data):
        threads.append(threading.get_ident())

    monkeypatch.setattr(cover_resources, "validate_font_bytes", _record)

    data = asyncio.run(ResourceLoader().load_font("Any", b"font bytes"))

    assert data == b"font bytes"
    assert len(threads) == 1
    assert threads[0] != threading.get_ident()


def test_custom_loader_is_used():
    calls = []

    class RecordingLoader(ResourceLoader):
        async def load_image(self, ref):
            calls.append(ref)
            return Image.new("RGBA", (2, 2))

    state = _state_with_everything("bg.png", "isbn.png", "custom.png")
    batch = asyncio.run(resolve_resources(state, RenderOptions.artwork_only(), RecordingLoader()))

    assert calls == ["bg.png"]
    assert list(batch.images) == ["bg.png"]
