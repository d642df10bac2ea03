"""
Core domain models for the book cover designer.

The editor owns a DesignState and mutates it; the compositor only ever sees
a point-in-time snapshot of it. These are framework-agnostic and can be used
across all services.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid


class Orientation(str, Enum):
    """Binding side of the book, which fixes the left-to-right panel order."""
    RIGHT = "right"  # back, spine, front
    LEFT = "left"    # front, spine, back


class CoverPart(str, Enum):
    """The three printable panels."""
    FRONT = "front"
    SPINE = "spine"
    BACK = "back"


class BackgroundType(str, Enum):
    UPLOAD = "upload"
    GRADIENT = "gradient"


class TextAlign(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


class ClipShape(str, Enum):
    """Clip shapes available to custom image elements."""
    NONE = "none"
    CIRCLE = "circle"
    OVAL = "oval"
    SQUARE = "square"
    RECTANGLE = "rectangle"
    TRIANGLE = "triangle"
    STAR = "star"
    POLYGON = "polygon"
    HEART = "heart"


class TextFieldKind(str, Enum):
    """
    Named text fields of a cover.

    Each kind has a fixed owning panel and anchoring mode, see FIELD_PLACEMENT.
    """
    TITLE = "title"
    SUBTITLE = "subtitle"
    AUTHOR = "author"
    SPINE_TITLE = "spine_title"
    SPINE_AUTHOR = "spine_author"
    BACK_TEXT = "back_text"


class ImageRole(str, Enum):
    """Fixed-role images. The publisher logo is one image placed three times."""
    FRONT_PUBLISHER_LOGO = "front_publisher_logo"
    SPINE_PUBLISHER_LOGO = "spine_publisher_logo"
    BACK_PUBLISHER_LOGO = "back_publisher_logo"
    AUTHOR_PHOTO = "author_photo"
    ISBN_BARCODE = "isbn_barcode"


class ExportMode(str, Enum):
    """The two exports the product offers."""
    WITH_TEXT = "with_text"
    ARTWORK_ONLY = "artwork_only"


# kind -> (panel, vertically centered on the anchor)
FIELD_PLACEMENT: Dict[TextFieldKind, Tuple[CoverPart, bool]] = {
    TextFieldKind.TITLE: (CoverPart.FRONT, True),
    TextFieldKind.SUBTITLE: (CoverPart.FRONT, True),
    TextFieldKind.AUTHOR: (CoverPart.FRONT, True),
    TextFieldKind.SPINE_TITLE: (CoverPart.SPINE, True),
    TextFieldKind.SPINE_AUTHOR: (CoverPart.SPINE, True),
    TextFieldKind.BACK_TEXT: (CoverPart.BACK, False),
}

IMAGE_ROLE_PANEL: Dict[ImageRole, CoverPart] = {
    ImageRole.FRONT_PUBLISHER_LOGO: CoverPart.FRONT,
    ImageRole.SPINE_PUBLISHER_LOGO: CoverPart.SPINE,
    ImageRole.BACK_PUBLISHER_LOGO: CoverPart.BACK,
    ImageRole.AUTHOR_PHOTO: CoverPart.BACK,
    ImageRole.ISBN_BARCODE: CoverPart.BACK,
}


@dataclass
class Position:
    """Percent position (0-100) inside the owning panel's unbled content box."""
    x: float = 50.0
    y: float = 50.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default: Optional["Position"] = None) -> "Position":
        base = default or cls()
        data = data or {}
        return cls(x=float(data.get("x", base.x)), y=float(data.get("y", base.y)))


@dataclass
class Dimensions:
    """Physical book dimensions in inches. trim_in is the safety margin."""
    width_in: float = 6.0
    height_in: float = 9.0
    spine_in: float = 1.0
    bleed_in: float = 0.125
    trim_in: float = 0.125

    @property
    def total_width_in(self) -> float:
        return 2 * self.width_in + self.spine_in + 2 * self.bleed_in

    @property
    def total_height_in(self) -> float:
        return self.height_in + 2 * self.bleed_in


@dataclass
class BackgroundSpec:
    """Panel background: an uploaded image (cover fit) or a two-stop gradient."""
    type: BackgroundType = BackgroundType.GRADIENT
    image_ref: Optional[str] = None
    color1: str = "#63B3ED"
    color2: str = "#3182CE"
    angle_deg: float = 180.0


@dataclass
class TextStyle:
    """Typography shared by named fields and custom text elements. Sizes in points."""
    font_family: str = "sans-serif"
    size_pt: float = 12.0
    color: str = "#FFFFFF"
    align: TextAlign = TextAlign.CENTER
    line_height: float = 1.2
    letter_spacing_pt: float = 0.0
    stroke_width_pt: float = 0.0
    stroke_color: str = "#000000"
    shadow_blur_pt: float = 0.0
    shadow_color: str = "rgba(0,0,0,0.5)"
    bold: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], default: Optional["TextStyle"] = None) -> "TextStyle":
        base = default or cls()
        data = data or {}
        return cls(
            font_family=data.get("font_family", base.font_family),
            size_pt=float(data.get("size_pt", base.size_pt)),
            color=data.get("color", base.color),
            align=TextAlign(data.get("align", base.align)),
            line_height=float(data.get("line_height", base.line_height)),
            letter_spacing_pt=float(data.get("letter_spacing_pt", base.letter_spacing_pt)),
            stroke_width_pt=float(data.get("stroke_width_pt", base.stroke_width_pt)),
            stroke_color=data.get("stroke_color", base.stroke_color),
            shadow_blur_pt=float(data.get("shadow_blur_pt", base.shadow_blur_pt)),
            shadow_color=data.get("shadow_color", base.shadow_color),
            bold=bool(data.get("bold", base.bold)),
        )


@dataclass
class TextField:
    """
    One named field of the cover.

    width_pct is the line box as a percent of the panel width. Spine fields
    ignore it: their box runs along the spine's full content height.
    """
    kind: TextFieldKind
    content: str = ""
    style: TextStyle = field(default_factory=TextStyle)
    position: Position = field(default_factory=Position)
    width_pct: Optional[float] = None

    @property
    def panel(self) -> CoverPart:
        return FIELD_PLACEMENT[self.kind][0]

    @property
    def centered(self) -> bool:
        return FIELD_PLACEMENT[self.kind][1]


@dataclass
class CustomTextElement:
    """User-added text box. Top-anchored at position, width_pct wide."""
    id: str
    text: str
    panel: CoverPart
    position: Position = field(default_factory=Position)
    width_pct: float = 50.0
    style: TextStyle = field(default_factory=TextStyle)


@dataclass
class CustomImageElement:
    """User-added image. aspect_ratio (width / height) is fixed at import time."""
    id: str
    image_ref: str
    panel: CoverPart
    position: Position = field(default_factory=Position)
    width_pct: float = 30.0
    rotation_deg: float = 0.0
    opacity: float = 1.0
    clip_shape: ClipShape = ClipShape.NONE
    aspect_ratio: float = 1.0


@dataclass
class PlacedImage:
    """A fixed-role image placement; centered on position, width_pct wide."""
    role: ImageRole
    image_ref: Optional[str] = None
    position: Position = field(default_factory=Position)
    width_pct: float = 25.0

    @property
    def panel(self) -> CoverPart:
        return IMAGE_ROLE_PANEL[self.role]


@dataclass
class CustomFont:
    """A user-supplied font file, referenced by data URL or path."""
    name: str
    data_ref: str


@dataclass
class RenderOptions:
    """Independent stage gates for one render."""
    include_text: bool = True
    include_overlay_images: bool = True

    @classmethod
    def with_text(cls) -> "RenderOptions":
        return cls(include_text=True, include_overlay_images=True)

    @classmethod
    def artwork_only(cls) -> "RenderOptions":
        return cls(include_text=False, include_overlay_images=False)

    @classmethod
    def for_mode(cls, mode: ExportMode) -> "RenderOptions":
        if ExportMode(mode) == ExportMode.ARTWORK_ONLY:
            return cls.artwork_only()
        return cls.with_text()


def _default_backgrounds() -> Dict[CoverPart, BackgroundSpec]:
    return {
        CoverPart.FRONT: BackgroundSpec(color1="#63B3ED", color2="#3182CE", angle_deg=145),
        CoverPart.SPINE: BackgroundSpec(color1="#ED8936", color2="#C05621", angle_deg=180),
        CoverPart.BACK: BackgroundSpec(color1="#2D3748", color2="#1A202C", angle_deg=180),
    }


def _default_text_fields() -> Dict[TextFieldKind, TextField]:
    return {
        TextFieldKind.TITLE: TextField(
            kind=TextFieldKind.TITLE,
            style=TextStyle(font_family="serif", size_pt=64, bold=True),
            position=Position(50, 25),
            width_pct=90,
        ),
        TextFieldKind.SUBTITLE: TextField(
            kind=TextFieldKind.SUBTITLE,
            style=TextStyle(size_pt=32),
            position=Position(50, 45),
            width_pct=85,
        ),
        TextFieldKind.AUTHOR: TextField(
            kind=TextFieldKind.AUTHOR,
            style=TextStyle(size_pt=42),
            position=Position(50, 85),
            width_pct=90,
        ),
        TextFieldKind.SPINE_TITLE: TextField(
            kind=TextFieldKind.SPINE_TITLE,
            style=TextStyle(font_family="serif", size_pt=36, bold=True),
            position=Position(50, 30),
        ),
        TextFieldKind.SPINE_AUTHOR: TextField(
            kind=TextFieldKind.SPINE_AUTHOR,
            style=TextStyle(size_pt=24),
            position=Position(50, 80),
        ),
        TextFieldKind.BACK_TEXT: TextField(
            kind=TextFieldKind.BACK_TEXT,
            style=TextStyle(size_pt=12, align=TextAlign.LEFT, line_height=1.4),
            position=Position(5, 15),
            width_pct=60,
        ),
    }


def _default_placed_images() -> Dict[ImageRole, PlacedImage]:
    return {
        ImageRole.FRONT_PUBLISHER_LOGO: PlacedImage(ImageRole.FRONT_PUBLISHER_LOGO, position=Position(50, 95), width_pct=15),
        ImageRole.SPINE_PUBLISHER_LOGO: PlacedImage(ImageRole.SPINE_PUBLISHER_LOGO, position=Position(50, 95), width_pct=60),
        ImageRole.BACK_PUBLISHER_LOGO: PlacedImage(ImageRole.BACK_PUBLISHER_LOGO, position=Position(5, 93), width_pct=10),
        ImageRole.AUTHOR_PHOTO: PlacedImage(ImageRole.AUTHOR_PHOTO, position=Position(70, 5), width_pct=25),
        ImageRole.ISBN_BARCODE: PlacedImage(ImageRole.ISBN_BARCODE, position=Position(70, 85), width_pct=25),
    }


@dataclass
class DesignState:
    """
    Everything the editor knows about a cover.

    Custom element lists are in z-order: later entries draw on top of
    earlier ones on the same panel.
    """
    orientation: Orientation = Orientation.RIGHT
    dimensions: Dimensions = field(default_factory=Dimensions)
    backgrounds: Dict[CoverPart, BackgroundSpec] = field(default_factory=_default_backgrounds)
    text_fields: Dict[TextFieldKind, TextField] = field(default_factory=_default_text_fields)
    placed_images: Dict[ImageRole, PlacedImage] = field(default_factory=_default_placed_images)
    custom_texts: List[CustomTextElement] = field(default_factory=list)
    custom_images: List[CustomImageElement] = field(default_factory=list)
    custom_fonts: List[CustomFont] = field(default_factory=list)

    @classmethod
    def default(cls) -> "DesignState":
        return cls()

    @staticmethod
    def generate_id() -> str:
        return str(uuid.uuid4())

    def snapshot(self) -> "DesignState":
        """Deep point-in-time copy handed to a single render."""
        return copy.deepcopy(self)

    def text_field(self, kind: TextFieldKind) -> TextField:
        return self.text_fields[TextFieldKind(kind)]

    def texts_for(self, panel: CoverPart) -> List[CustomTextElement]:
        return [el for el in self.custom_texts if el.panel == panel]

    def images_for(self, panel: CoverPart) -> List[CustomImageElement]:
        return [el for el in self.custom_images if el.panel == panel]

    def _element_ids(self) -> set:
        return {el.id for el in self.custom_texts} | {el.id for el in self.custom_images}

    def add_custom_text(self, element: CustomTextElement) -> CustomTextElement:
        if element.id in self._element_ids():
            raise ValueError(f"Duplicate custom element id: {element.id}")
        self.custom_texts.append(element)
        return element

    def add_custom_image(self, element: CustomImageElement) -> CustomImageElement:
        if element.id in self._element_ids():
            raise ValueError(f"Duplicate custom element id: {element.id}")
        self.custom_images.append(element)
        return element

    def remove_custom_element(self, element_id: str) -> bool:
        """Remove a custom text or image element. Returns False if no such id."""
        before = len(self.custom_texts) + len(self.custom_images)
        self.custom_texts = [el for el in self.custom_texts if el.id != element_id]
        self.custom_images = [el for el in self.custom_images if el.id != element_id]
        return len(self.custom_texts) + len(self.custom_images) < before

    # ------------------------------------------------------------------
    # Plain-dict round trip (JSON design files, API payloads)
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DesignState":
        state = cls()
        state.orientation = Orientation(data.get("orientation", state.orientation))

        dims = data.get("dimensions") or {}
        base_dims = state.dimensions
        state.dimensions = Dimensions(
            width_in=float(dims.get("width_in", base_dims.width_in)),
            height_in=float(dims.get("height_in", base_dims.height_in)),
            spine_in=float(dims.get("spine_in", base_dims.spine_in)),
            bleed_in=float(dims.get("bleed_in", base_dims.bleed_in)),
            trim_in=float(dims.get("trim_in", base_dims.trim_in)),
        )

        for part_key, bg in (data.get("backgrounds") or {}).items():
            part = CoverPart(part_key)
            base = state.backgrounds[part]
            state.backgrounds[part] = BackgroundSpec(
                type=BackgroundType(bg.get("type", base.type)),
                image_ref=bg.get("image_ref", base.image_ref),
                color1=bg.get("color1", base.color1),
                color2=bg.get("color2", base.color2),
                angle_deg=float(bg.get("angle_deg", base.angle_deg)),
            )

        fields_data = data.get("text_fields") or {}
        for kind_key, fd in fields_data.items():
            kind = TextFieldKind(kind_key)
            base = state.text_fields[kind]
            width_pct = fd.get("width_pct", base.width_pct)
            state.text_fields[kind] = TextField(
                kind=kind,
                content=fd.get("content", base.content),
                style=TextStyle.from_dict(fd.get("style"), base.style),
                position=Position.from_dict(fd.get("position"), base.position),
                width_pct=float(width_pct) if width_pct is not None else None,
            )
        # Spine fields mirror the front cover unless the design says otherwise.
        for spine_kind, source_kind in (
            (TextFieldKind.SPINE_TITLE, TextFieldKind.TITLE),
            (TextFieldKind.SPINE_AUTHOR, TextFieldKind.AUTHOR),
        ):
            if "content" not in (fields_data.get(spine_kind.value) or {}):
                state.text_fields[spine_kind].content = state.text_fields[source_kind].content

        for role_key, pi in (data.get("placed_images") or {}).items():
            role = ImageRole(role_key)
            base = state.placed_images[role]
            state.placed_images[role] = PlacedImage(
                role=role,
                image_ref=pi.get("image_ref", base.image_ref),
                position=Position.from_dict(pi.get("position"), base.position),
                width_pct=float(pi.get("width_pct", base.width_pct)),
            )
        logo = data.get("publisher_logo")
        if logo:
            for role in (ImageRole.FRONT_PUBLISHER_LOGO, ImageRole.SPINE_PUBLISHER_LOGO, ImageRole.BACK_PUBLISHER_LOGO):
                state.placed_images[role].image_ref = logo

        for ct in data.get("custom_texts") or []:
            state.add_custom_text(CustomTextElement(
                id=ct.get("id") or cls.generate_id(),
                text=ct.get("text", ""),
                panel=CoverPart(ct["panel"]),
                position=Position.from_dict(ct.get("position")),
                width_pct=float(ct.get("width_pct", 50.0)),
                style=TextStyle.from_dict(ct.get("style")),
            ))
        for ci in data.get("custom_images") or []:
            state.add_custom_image(CustomImageElement(
                id=ci.get("id") or cls.generate_id(),
                image_ref=ci["image_ref"],
                panel=CoverPart(ci["panel"]),
                position=Position.from_dict(ci.get("position")),
                width_pct=float(ci.get("width_pct", 30.0)),
                rotation_deg=float(ci.get("rotation_deg", 0.0)),
                opacity=float(ci.get("opacity", 1.0)),
                clip_shape=ClipShape(ci.get("clip_shape", ClipShape.NONE)),
                aspect_ratio=float(ci.get("aspect_ratio", 1.0)),
            ))
        state.custom_fonts = [
            CustomFont(name=cf["name"], data_ref=cf["data_ref"])
            for cf in data.get("custom_fonts") or []
        ]
        return state

    def to_dict(self) -> Dict[str, Any]:
        def _style(style: TextStyle) -> Dict[str, Any]:
            return {
                "font_family": style.font_family,
                "size_pt": style.size_pt,
                "color": style.color,
                "align": style.align.value,
                "line_height": style.line_height,
                "letter_spacing_pt": style.letter_spacing_pt,
                "stroke_width_pt": style.stroke_width_pt,
                "stroke_color": style.stroke_color,
                "shadow_blur_pt": style.shadow_blur_pt,
                "shadow_color": style.shadow_color,
                "bold": style.bold,
            }

        def _pos(pos: Position) -> Dict[str, float]:
            return {"x": pos.x, "y": pos.y}

        dims = self.dimensions
        return {
            "orientation": self.orientation.value,
            "dimensions": {
                "width_in": dims.width_in,
                "height_in": dims.height_in,
                "spine_in": dims.spine_in,
                "bleed_in": dims.bleed_in,
                "trim_in": dims.trim_in,
            },
            "backgrounds": {
                part.value: {
                    "type": bg.type.value,
                    "image_ref": bg.image_ref,
                    "color1": bg.color1,
                    "color2": bg.color2,
                    "angle_deg": bg.angle_deg,
                }
                for part, bg in self.backgrounds.items()
            },
            "text_fields": {
                kind.value: {
                    "content": tf.content,
                    "style": _style(tf.style),
                    "position": _pos(tf.position),
                    "width_pct": tf.width_pct,
                }
                for kind, tf in self.text_fields.items()
            },
            "placed_images": {
                role.value: {
                    "image_ref": pi.image_ref,
                    "position": _pos(pi.position),
                    "width_pct": pi.width_pct,
                }
                for role, pi in self.placed_images.items()
            },
            "custom_texts": [
                {
                    "id": el.id,
                    "text": el.text,
                    "panel": el.panel.value,
                    "position": _pos(el.position),
                    "width_pct": el.width_pct,
                    "style": _style(el.style),
                }
                for el in self.custom_texts
            ],
            "custom_images": [
                {
                    "id": el.id,
                    "image_ref": el.image_ref,
                    "panel": el.panel.value,
                    "position": _pos(el.position),
                    "width_pct": el.width_pct,
                    "rotation_deg": el.rotation_deg,
                    "opacity": el.opacity,
                    "clip_shape": el.clip_shape.value,
                    "aspect_ratio": el.aspect_ratio,
                }
                for el in self.custom_images
            ],
            "custom_fonts": [{"name": cf.name, "data_ref": cf.data_ref} for cf in self.custom_fonts],
        }
