"""
models.py

Data models and constants for the sticker template pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple, Union

from stickerkit.utils import (
    camel_to_snake,
    coerce_number,
    parse_view_box_attr,
    snake_to_camel,
    sort_layer_keys,
)

Coordinate = Union[int, float, str]


# ----------------------------
# Layer type constants
# ----------------------------

class LayerType:
    """Layer type tags."""
    SHAPE = "shape"
    TEXT = "text"
    SVG_IMAGE = "svgImage"

    ALL = (SHAPE, TEXT, SVG_IMAGE)


class ShapeSubtype:
    """Shape subtypes understood by the path compiler."""
    RECT = "rect"
    CIRCLE = "circle"
    ELLIPSE = "ellipse"
    POLYGON = "polygon"
    LINE = "line"
    PATH = "path"

    ALL = (RECT, CIRCLE, ELLIPSE, POLYGON, LINE, PATH)
    # Shapes that may serve as clip-path targets
    CLIPPABLE = (RECT, CIRCLE, POLYGON)


# ----------------------------
# External subtype name → canonical subtype alias mapping
# ----------------------------

# Template authors use a handful of synonyms for the same geometry.  The
# normalizer calls ``resolve_subtype_alias()`` instead of ad-hoc checks.
SUBTYPE_ALIAS_MAP: Dict[str, str] = {
    "rect":          "rect",
    "rectangle":     "rect",
    "square":        "rect",
    "roundedrect":   "rect",
    "rounded-rect":  "rect",
    "rounded_rect":  "rect",
    "circle":        "circle",
    "ellipse":       "ellipse",
    "oval":          "ellipse",
    "polygon":       "polygon",
    "triangle":      "polygon",
    "line":          "line",
    "path":          "path",
}


def resolve_subtype_alias(external_type: Any, fallback: Optional[str] = None) -> Optional[str]:
    """Resolve an external shape name to a canonical subtype.

    Args:
        external_type: The name used by the template (e.g. ``'rectangle'``,
            ``'Oval'``).  Matching ignores case and surrounding whitespace.
        fallback: Subtype to return if no alias match.  Defaults to ``None``.

    Returns:
        The canonical subtype string, or *fallback* if no mapping exists.
    """
    if not isinstance(external_type, str):
        return fallback
    return SUBTYPE_ALIAS_MAP.get(external_type.strip().lower(), fallback)


# ----------------------------
# Geometry primitives
# ----------------------------

@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class LinePosition:
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def midpoint(self) -> Point:
        return Point((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)


@dataclass(frozen=True)
class ViewBox:
    """A template's coordinate space."""
    x: float = 0.0
    y: float = 0.0
    width: float = 500.0
    height: float = 400.0

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_value(cls, value: Any) -> Optional["ViewBox"]:
        """Build a ViewBox from a mapping or an ``"x y w h"`` string.

        Args:
            value: ``ViewBox``, dict with ``width``/``height`` (and optional
                ``x``/``y``), or a viewBox attribute string.

        Returns:
            The ViewBox, or ``None`` when width/height are missing,
            non-finite or not positive.
        """
        if isinstance(value, ViewBox):
            return value
        if isinstance(value, str):
            parsed = parse_view_box_attr(value)
            return cls(*parsed) if parsed else None
        if isinstance(value, dict):
            w = coerce_number(value.get("width"))
            h = coerce_number(value.get("height"))
            if w is None or h is None or w <= 0 or h <= 0:
                return None
            x = coerce_number(value.get("x")) or 0.0
            y = coerce_number(value.get("y")) or 0.0
            return cls(x, y, w, h)
        return None

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


# ----------------------------
# Layer record model
# ----------------------------

@dataclass(frozen=True)
class FlatLayerRecord:
    """Normalized, type-flattened form of one template layer.

    ``id`` and ``type`` are always set.  Every other attribute is ``None``
    when the template does not define it.  Unknown template keys are kept
    in ``extras`` (under their original names) so they survive
    serialization.
    """
    id: str
    type: str
    subtype: Optional[str] = None
    # Geometry
    position: Optional[Dict[str, Coordinate]] = None   # raw, unresolved
    width: Optional[float] = None
    height: Optional[float] = None
    rx: Optional[float] = None
    ry: Optional[float] = None
    points: Optional[str] = None
    path: Optional[str] = None                         # literal data for subtype "path"
    # Shape style
    fill_color: Optional[str] = None
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    stroke_linejoin: Optional[str] = None
    stroke_opacity: Optional[float] = None
    opacity: Optional[float] = None
    z_index: Optional[float] = None
    # References
    clip: Optional[str] = None
    text_path: Optional[str] = None
    # Text
    label: Optional[str] = None
    placeholder: Optional[str] = None
    text: Optional[str] = None
    max_length: Optional[int] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_weight: Optional[int] = None
    font_color: Optional[str] = None
    text_anchor: Optional[str] = None
    start_offset: Optional[str] = None
    dy: Optional[float] = None
    dominant_baseline: Optional[str] = None
    line_height: Optional[float] = None
    # Transform
    rotation: Optional[float] = None
    scale: Optional[float] = None
    # svgImage
    svg_image_id: Optional[str] = None
    svg_content: Optional[str] = None
    color: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False, hash=False)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FlatLayerRecord":
        """Create a record from a flat dict, preserving unknown keys in ``extras``.

        Keys may be camelCase or snake_case.  Values are stored as given;
        coercion is the normalizer's job.

        Args:
            d: Flat layer dict with at least ``id`` and ``type``.

        Returns:
            A ``FlatLayerRecord``.
        """
        known_names = layer_field_names()
        known: Dict[str, Any] = {}
        extras: Dict[str, Any] = {}
        for k, v in d.items():
            name = camel_to_snake(k)
            if name in ("id", "type"):
                known[name] = v
            elif name in known_names:
                known[name] = v
            else:
                extras[k] = v
        return cls(**known, extras=extras)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a camelCase dict, omitting undefined fields.

        Returns:
            Dict with canonical key order, then any extras.
        """
        d: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extras":
                continue
            value = getattr(self, f.name)
            if value is not None:
                d[snake_to_camel(f.name)] = value
        for k, v in self.extras.items():
            d.setdefault(k, v)
        return sort_layer_keys(d)

    def get(self, name: str, default: Any = None) -> Any:
        value = getattr(self, name, None)
        return default if value is None else value


_LAYER_FIELD_NAMES: Optional[frozenset] = None


def layer_field_names() -> frozenset:
    """Defaultable field names of ``FlatLayerRecord`` (snake_case)."""
    global _LAYER_FIELD_NAMES
    if _LAYER_FIELD_NAMES is None:
        _LAYER_FIELD_NAMES = frozenset(
            f.name for f in fields(FlatLayerRecord) if f.name not in ("id", "type", "extras")
        )
    return _LAYER_FIELD_NAMES


# Override keys that were renamed over time
OVERRIDE_KEY_ALIASES: Dict[str, str] = {
    "text_color": "font_color",
    "svg_id": "svg_image_id",
}


@dataclass
class LayerOverride:
    """Sparse patch for one layer.

    ``fields`` maps snake_case field names to values.  A value of ``None``
    means the field was explicitly cleared, which the merge engine treats
    exactly like an absent field.  ``font`` may carry a font object,
    dict or family string and is resolved through the font registry.
    """
    id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LayerOverride":
        """Create an override from a camelCase or snake_case dict.

        Args:
            d: Dict containing ``id`` and any subset of layer fields.

        Returns:
            A ``LayerOverride``.

        Raises:
            ValueError: If ``id`` is missing or not a string.
        """
        layer_id = d.get("id")
        if not isinstance(layer_id, str) or not layer_id:
            raise ValueError(f"Override without a layer id: {d!r}")
        values: Dict[str, Any] = {}
        for k, v in d.items():
            if k == "id":
                continue
            name = camel_to_snake(k)
            values[OVERRIDE_KEY_ALIASES.get(name, name)] = v
        return cls(layer_id, values)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize set fields to camelCase; cleared fields are dropped."""
        d: Dict[str, Any] = {"id": self.id}
        for name in sorted(self.fields):
            value = self.fields[name]
            if value is None:
                continue
            if isinstance(value, FontConfig):
                value = value.family
            elif name == "font" and isinstance(value, dict):
                value = value.get("family") or value.get("name")
            d[snake_to_camel(name)] = value
        return d

    def has(self, name: str) -> bool:
        """True when the field is present and not cleared."""
        return self.fields.get(name) is not None

    def set(self, name: str, value: Any) -> None:
        self.fields[name] = value

    def clear(self, name: str) -> None:
        self.fields[name] = None

    def copy(self) -> "LayerOverride":
        return LayerOverride(self.id, dict(self.fields))


# ----------------------------
# Template model
# ----------------------------

@dataclass(frozen=True)
class Template:
    """A normalized template.  Immutable for the life of a session."""
    id: str
    name: str
    description: str
    category: str
    view_box: ViewBox
    layers: Tuple[FlatLayerRecord, ...] = ()
    source_format: str = "layers"   # layers | legacy

    def layer(self, layer_id: str) -> Optional[FlatLayerRecord]:
        for rec in self.layers:
            if rec.id == layer_id:
                return rec
        return None

    def layer_ids(self) -> List[str]:
        return [rec.id for rec in self.layers]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "viewBox": self.view_box.to_dict(),
            "layers": [rec.to_dict() for rec in self.layers],
        }


# ----------------------------
# Font model
# ----------------------------

@dataclass(frozen=True)
class FontConfig:
    """A font the renderer can reference by family name."""
    name: str
    family: str
    weights: Tuple[int, ...] = (400,)
    category: str = "sans-serif"   # sans-serif | serif | display | handwriting | monospace
    source: str = "system"         # system | google | user
    font_url: Optional[str] = None
    fallback: str = "sans-serif"

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "name": self.name,
            "family": self.family,
            "weights": list(self.weights),
            "category": self.category,
            "source": self.source,
            "fallback": self.fallback,
        }
        if self.font_url:
            d["fontUrl"] = self.font_url
        return d


# ----------------------------
# Merge / render results
# ----------------------------

@dataclass(frozen=True)
class MergedLayer:
    """Effective layer state plus derived geometry.

    ``record`` holds the precedence-resolved fields.  ``position`` is the
    resolved absolute position (``None`` for svgImage layers, whose raw
    position is resolved by the transform compiler).
    """
    record: FlatLayerRecord
    position: Optional[Union[Point, LinePosition]] = None
    path: Optional[str] = None
    transform: str = ""
    inner_transform: str = ""
    transform_origin: Optional[Point] = None
    font: Optional[FontConfig] = None
    missing_asset: bool = False

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def type(self) -> str:
        return self.record.type

    @property
    def subtype(self) -> Optional[str]:
        return self.record.subtype


@dataclass(frozen=True)
class RenderableLayer:
    """Renderer-facing projection; exactly one of the groups is set."""
    id: str
    type: str
    shape: Optional[Dict[str, Any]] = None
    text: Optional[Dict[str, Any]] = None
    svg_image: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"id": self.id, "type": self.type}
        if self.shape is not None:
            d["shape"] = self.shape
        if self.text is not None:
            d["textInput"] = self.text
        if self.svg_image is not None:
            d["svgImage"] = self.svg_image
        return d


@dataclass(frozen=True)
class CentroidResult:
    """Output of a bounds/centroid analyzer."""
    x: float
    y: float
    shape_type: str = "unknown"
    confidence: float = 0.0
    use_centroid: bool = False
    bbox_center: Optional[Point] = None


@dataclass
class UrlState:
    """Everything a share URL carries."""
    selected_template_id: str
    layers: List[LayerOverride] = field(default_factory=list)
    last_modified: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectedTemplateId": self.selected_template_id,
            "layers": [o.to_dict() for o in self.layers],
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UrlState":
        return cls(
            selected_template_id=d["selectedTemplateId"],
            layers=[LayerOverride.from_dict(o) for o in d.get("layers", [])],
            last_modified=int(d.get("lastModified", 0)),
        )
