"""
normalizer.py

Flatten raw templates (current ``layers[]`` form or legacy ``shapes[]`` +
``textInputs[]`` form) into immutable ``Template`` objects whose layers are
``FlatLayerRecord`` instances with canonical field names.

Downstream stages never branch on schema version; everything
version-specific lives here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from stickerkit.coordinates import resolve_position
from stickerkit.errors import TemplateValidationError
from stickerkit.models import (
    FlatLayerRecord,
    FontConfig,
    LayerOverride,
    LayerType,
    ShapeSubtype,
    Template,
    ViewBox,
    resolve_subtype_alias,
)
from stickerkit.schemas import validate_template
from stickerkit.settings import RenderSettings, get_settings
from stickerkit.utils import (
    camel_to_snake, coerce_number, format_number, format_points, normalize_color, parse_points,
)

log = logging.getLogger(__name__)


# ----------------------------
# Naming tables
# ----------------------------

# Nested per-type property objects hoisted to the top level
NESTED_KEYS = ("shape", "textInput", "text", "svgImage", "style")

LAYER_TYPE_ALIASES: Dict[str, str] = {
    "shape": LayerType.SHAPE,
    "text": LayerType.TEXT,
    "textinput": LayerType.TEXT,
    "svgimage": LayerType.SVG_IMAGE,
    "svg": LayerType.SVG_IMAGE,
    "image": LayerType.SVG_IMAGE,
}

# Renames applied to every layer type
COMMON_RENAMES: Dict[str, str] = {
    "stroke": "strokeColor",
    "stroke-width": "strokeWidth",
    "stroke-linejoin": "strokeLinejoin",
    "stroke-opacity": "strokeOpacity",
    "textColor": "fontColor",
    "svgId": "svgImageId",
    "clipPath": "clip",
}

TYPE_RENAMES: Dict[str, Dict[str, str]] = {
    LayerType.SHAPE: {"fill": "fillColor"},
    LayerType.TEXT: {"default": "text", "fill": "fontColor"},
    LayerType.SVG_IMAGE: {"fill": "color"},
}

FLOAT_FIELDS = frozenset({
    "width", "height", "rx", "ry", "stroke_width", "stroke_opacity", "opacity",
    "z_index", "font_size", "dy", "line_height", "rotation", "scale",
})
INT_FIELDS = frozenset({"font_weight", "max_length"})
COLOR_FIELDS = frozenset({"fill_color", "stroke_color", "font_color", "color"})
STRING_FIELDS = frozenset({
    "subtype", "points", "path", "fill_color", "stroke_color", "stroke_linejoin",
    "clip", "text_path", "label", "placeholder", "text", "font_family", "font_color",
    "text_anchor", "start_offset", "dominant_baseline", "svg_image_id", "svg_content",
    "color",
})

FONT_WEIGHT_NAMES: Dict[str, int] = {
    "thin": 100,
    "light": 300,
    "normal": 400,
    "regular": 400,
    "medium": 500,
    "semibold": 600,
    "bold": 700,
    "extrabold": 800,
    "black": 900,
}


# ----------------------------
# Validation
# ----------------------------

def validate_raw_template(raw: Any) -> Tuple[bool, List[str]]:
    """Check a raw template against the template schema.

    Returns:
        Tuple of (is_valid, list_of_error_messages).
    """
    if not isinstance(raw, dict):
        return False, [f"root: expected a mapping, got {type(raw).__name__}"]
    return validate_template(raw)


def require_valid_template(raw: Any) -> None:
    """Raise ``TemplateValidationError`` unless *raw* is a usable template."""
    ok, errors = validate_raw_template(raw)
    if not ok:
        template_id = raw.get("id") if isinstance(raw, dict) else None
        raise TemplateValidationError(template_id if isinstance(template_id, str) else None, errors)


# ----------------------------
# Flattening
# ----------------------------

def hoist_nested(layer: Dict[str, Any]) -> Dict[str, Any]:
    """Lift nested per-type property objects to the top level.

    Top-level keys win over hoisted ones.
    """
    out: Dict[str, Any] = {}
    for key in NESTED_KEYS:
        nested = layer.get(key)
        if isinstance(nested, dict):
            out.update(nested)
    for k, v in layer.items():
        if k in NESTED_KEYS and isinstance(v, dict):
            continue
        out[k] = v
    return out


def canonicalize_names(layer: Dict[str, Any], layer_type: str) -> Dict[str, Any]:
    """Rename schema-specific keys to canonical names.

    A canonical key already present is never overwritten by a renamed one.
    """
    renames = dict(COMMON_RENAMES)
    renames.update(TYPE_RENAMES.get(layer_type, {}))
    out: Dict[str, Any] = {}
    for k, v in layer.items():
        if k not in renames:
            out[k] = v
    for k, v in layer.items():
        target = renames.get(k)
        if target is not None and target not in out:
            out[target] = v
    return out


def migrate_legacy_layers(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Convert legacy ``shapes[]`` + ``textInputs[]`` into layer dicts.

    Shapes come first, then text inputs, each keeping its original id.
    A legacy shape's ``type`` is its subtype.
    """
    layers: List[Dict[str, Any]] = []
    for shape in raw.get("shapes") or []:
        entry = {k: v for k, v in shape.items() if k != "type"}
        entry["type"] = LayerType.SHAPE
        if "type" in shape:
            entry["subtype"] = shape["type"]
        layers.append(entry)
    for text_input in raw.get("textInputs") or []:
        entry = dict(text_input)
        entry["type"] = LayerType.TEXT
        layers.append(entry)
    return layers


def _layer_type(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return LAYER_TYPE_ALIASES.get(value.strip().lower())


def flatten_layers(raw: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Produce flat, canonically named layer dicts in template order.

    Layers without an id or with an unknown type are skipped, as are
    duplicate ids after the first occurrence.
    """
    if isinstance(raw.get("layers"), list):
        source = [dict(layer) for layer in raw["layers"] if isinstance(layer, dict)]
    else:
        source = migrate_legacy_layers(raw)

    flat: List[Dict[str, Any]] = []
    seen = set()
    for layer in source:
        layer = hoist_nested(layer)
        layer_id = layer.get("id")
        layer_type = _layer_type(layer.get("type"))
        if not isinstance(layer_id, str) or not layer_id:
            log.warning("Template %s: skipping layer without id", raw.get("id"))
            continue
        if layer_type is None:
            log.warning("Template %s: skipping layer %s with unknown type %r",
                        raw.get("id"), layer_id, layer.get("type"))
            continue
        if layer_id in seen:
            log.warning("Template %s: duplicate layer id %s ignored", raw.get("id"), layer_id)
            continue
        seen.add(layer_id)
        layer["type"] = layer_type
        flat.append(canonicalize_names(layer, layer_type))
    return flat


# ----------------------------
# View box
# ----------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compute_view_box(layers: List[Dict[str, Any]], render: RenderSettings) -> ViewBox:
    """Fit a viewBox around shape layers positioned with absolute numbers.

    Percentage positions are ignored.  With no absolute shape at all the
    configured default size is used.
    """
    min_x = min_y = float("inf")
    max_x = max_y = float("-inf")
    found = False

    for layer in layers:
        if layer["type"] != LayerType.SHAPE:
            continue
        pos = layer.get("position")
        if not isinstance(pos, dict):
            continue
        if "x1" in pos:
            coords = [pos.get(k) for k in ("x1", "y1", "x2", "y2")]
            if all(_is_number(c) for c in coords):
                found = True
                x1, y1, x2, y2 = (float(c) for c in coords)
                min_x, max_x = min(min_x, x1, x2), max(max_x, x1, x2)
                min_y, max_y = min(min_y, y1, y2), max(max_y, y1, y2)
        elif _is_number(pos.get("x")) and _is_number(pos.get("y")):
            found = True
            w = coerce_number(layer.get("width")) or 0.0
            h = coerce_number(layer.get("height")) or 0.0
            half_stroke = (coerce_number(layer.get("strokeWidth")) or 0.0) / 2
            x, y = float(pos["x"]), float(pos["y"])
            min_x = min(min_x, x - w / 2 - half_stroke)
            min_y = min(min_y, y - h / 2 - half_stroke)
            max_x = max(max_x, x + w / 2 + half_stroke)
            max_y = max(max_y, y + h / 2 + half_stroke)

    if not found:
        return ViewBox(0.0, 0.0, render.default_viewbox_width, render.default_viewbox_height)

    pad = render.template_padding
    return ViewBox(
        min_x - pad,
        min_y - pad,
        max(render.min_viewbox_width, max_x - min_x + pad * 2),
        max(render.min_viewbox_height, max_y - min_y + pad * 2),
    )


def select_view_box(raw: Dict[str, Any], layers: List[Dict[str, Any]], render: RenderSettings) -> ViewBox:
    """Template width/height, then an explicit viewBox, then a computed one."""
    w = coerce_number(raw.get("width"))
    h = coerce_number(raw.get("height"))
    if w is not None and h is not None and w > 0 and h > 0:
        return ViewBox(0.0, 0.0, w, h)
    if raw.get("viewBox") is not None:
        vb = ViewBox.from_value(raw["viewBox"])
        if vb is not None:
            return vb
        log.warning("Template %s: invalid viewBox %r, computing one", raw.get("id"), raw["viewBox"])
    return compute_view_box(layers, render)


# ----------------------------
# Record building
# ----------------------------

def _coerce_font_weight(value: Any) -> Optional[int]:
    if isinstance(value, str) and value.strip().lower() in FONT_WEIGHT_NAMES:
        return FONT_WEIGHT_NAMES[value.strip().lower()]
    v = coerce_number(value)
    return None if v is None else int(v)


def coerce_field(name: str, value: Any, layer_id: str) -> Any:
    """Coerce one template value to its field type.

    Returns ``None`` (field undefined) when the value cannot be coerced.
    """
    if value is None:
        return None
    if name in FLOAT_FIELDS:
        result = coerce_number(value)
    elif name == "font_weight":
        result = _coerce_font_weight(value)
    elif name in INT_FIELDS:
        v = coerce_number(value)
        result = None if v is None else int(v)
    elif name in COLOR_FIELDS:
        result = normalize_color(value) if isinstance(value, str) else None
    elif name in STRING_FIELDS:
        if isinstance(value, str):
            result = value
        elif _is_number(value):
            result = format_number(value)
        else:
            result = None
    elif name == "position":
        result = dict(value) if isinstance(value, dict) else None
    else:
        result = value
    if result is None:
        log.warning("Layer %s: dropping uncoercible %s=%r", layer_id, name, value)
    return result


def _font_family_value(value: Any) -> Optional[str]:
    if isinstance(value, FontConfig):
        return value.family
    if isinstance(value, dict):
        value = value.get("family") or value.get("name")
    return value.strip() if isinstance(value, str) and value.strip() else None


def coerce_override(override: LayerOverride) -> LayerOverride:
    """Return a copy of *override* holding field-typed values only.

    Cleared fields are kept as cleared; values that cannot be coerced are
    dropped.  Font values collapse to their family name so the result
    serializes as plain JSON.
    """
    fields: Dict[str, Any] = {}
    for name, value in override.fields.items():
        if value is None:
            fields[name] = None
            continue
        if name == "font":
            result = _font_family_value(value)
            if result is None:
                log.warning("Layer %s: dropping unusable font %r", override.id, value)
        else:
            result = coerce_field(name, value, override.id)
        if result is not None:
            fields[name] = result
    return LayerOverride(override.id, fields)


def migrate_absolute_points(layer: Dict[str, Any], view_box: ViewBox) -> Dict[str, Any]:
    """Rewrite absolute polygon points as offsets from the layer center.

    Absolute points are deprecated; templates declare them with
    ``pointsAbsolute: true``.
    """
    layer = dict(layer)
    layer.pop("pointsAbsolute", None)
    pts = parse_points(layer.get("points"))
    if isinstance(layer.get("position"), dict):
        center = resolve_position(layer["position"], view_box)
    else:
        layer["position"] = {"x": 0, "y": 0}
        center = resolve_position(layer["position"], view_box)
    log.warning("Layer %s: absolute polygon points are deprecated, converted to center offsets",
                layer.get("id"))
    if pts:
        layer["points"] = format_points([(x - center.x, y - center.y) for x, y in pts])
    return layer


def build_record(layer: Dict[str, Any], view_box: ViewBox) -> FlatLayerRecord:
    """Turn one flat, canonically named layer dict into a record."""
    if layer.get("pointsAbsolute"):
        layer = migrate_absolute_points(layer, view_box)
    layer = {k: v for k, v in layer.items() if k != "pointsAbsolute"}

    layer_id = layer["id"]
    values: Dict[str, Any] = {"id": layer_id, "type": layer["type"]}
    for key, value in layer.items():
        if key in ("id", "type"):
            continue
        name = camel_to_snake(key)
        if name == "subtype":
            if layer["type"] != LayerType.SHAPE:
                continue
            value = resolve_subtype_alias(value, fallback=value if isinstance(value, str) else None)
        coerced = coerce_field(name, value, layer_id)
        if coerced is not None:
            values[key] = coerced
    return FlatLayerRecord.from_dict(values)


# ----------------------------
# Entry point
# ----------------------------

def normalize_template(raw: Any, settings: Optional[RenderSettings] = None) -> Optional[Template]:
    """Normalize a raw template.

    Args:
        raw: Parsed template document (dict from YAML or JSON).
        settings: Geometry defaults; the global settings when omitted.

    Returns:
        The normalized ``Template``, or ``None`` if the template is
        invalid (the reason is logged).
    """
    try:
        require_valid_template(raw)
    except TemplateValidationError as e:
        log.error("%s", e)
        return None

    render = settings or get_settings().settings.render
    flat = flatten_layers(raw)
    view_box = select_view_box(raw, flat, render)
    records = tuple(build_record(layer, view_box) for layer in flat)

    for rec in records:
        if rec.type == LayerType.SHAPE and rec.subtype == ShapeSubtype.PATH and not rec.path:
            log.warning("Template %s: path layer %s has no path data", raw["id"], rec.id)

    return Template(
        id=raw["id"],
        name=raw["name"],
        description=raw["description"],
        category=raw["category"],
        view_box=view_box,
        layers=records,
        source_format="layers" if isinstance(raw.get("layers"), list) else "legacy",
    )
