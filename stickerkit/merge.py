"""
merge.py

Combine template defaults, URL-decoded overrides and live edits into
effective per-layer state.

Precedence is decided per field with presence checks::

    live[f] if present else url[f] if present else template[f]

where an override field holding ``None`` (explicitly cleared) counts as
absent.  That is what makes "reset to template default" work.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from stickerkit.assets import UserAssetStore, is_user_asset_id
from stickerkit.coordinates import resolve_any_position
from stickerkit.fonts import FontRegistry
from stickerkit.models import (
    FlatLayerRecord,
    FontConfig,
    LayerOverride,
    LayerType,
    MergedLayer,
    Template,
)
from stickerkit.normalizer import coerce_field, coerce_override
from stickerkit.shape_paths import compile_shape_path
from stickerkit.svg_validation import validate_and_sanitize_svg

log = logging.getLogger(__name__)

OverrideInput = Union[
    None,
    Mapping[str, Union[LayerOverride, Dict[str, Any]]],
    Iterable[Union[LayerOverride, Dict[str, Any]]],
]


# ----------------------------
# Mergeable field sets
# ----------------------------

TEXT_FIELDS = frozenset({
    "text", "font_family", "font_size", "font_weight", "font_color",
    "stroke_color", "stroke_width", "stroke_opacity", "stroke_linejoin",
    "rotation", "start_offset", "dy", "dominant_baseline", "line_height", "text_anchor",
})
SHAPE_FIELDS = frozenset({"fill_color", "stroke_color", "stroke_width", "stroke_linejoin"})
SVG_IMAGE_FIELDS = frozenset({
    "svg_image_id", "svg_content", "color",
    "stroke_color", "stroke_width", "stroke_linejoin", "scale", "rotation",
})

MERGEABLE_FIELDS: Dict[str, frozenset] = {
    LayerType.TEXT: TEXT_FIELDS,
    LayerType.SHAPE: SHAPE_FIELDS,
    LayerType.SVG_IMAGE: SVG_IMAGE_FIELDS,
}

# Override keys that name a font; resolved through the registry
FONT_KEYS = ("font", "font_family")


@dataclass(frozen=True)
class MergeResult:
    layers: Tuple[MergedLayer, ...]
    missing_assets: Tuple[str, ...] = ()


# ----------------------------
# Override indexing
# ----------------------------

def _as_override(value: Union[LayerOverride, Dict[str, Any]], layer_id: Optional[str] = None) -> LayerOverride:
    if isinstance(value, LayerOverride):
        return value
    if isinstance(value, dict):
        if layer_id is not None and "id" not in value:
            value = {"id": layer_id, **value}
        return LayerOverride.from_dict(value)
    raise TypeError(f"Expected LayerOverride or dict, got {type(value).__name__}")


def index_overrides(overrides: OverrideInput) -> Dict[str, LayerOverride]:
    """Key overrides by layer id.

    Several entries for one id are combined field by field, later entries
    winning (including explicit clears).
    """
    if overrides is None:
        return {}
    if isinstance(overrides, Mapping):
        items = [_as_override(v, k) for k, v in overrides.items()]
    else:
        items = [_as_override(v) for v in overrides]

    indexed: Dict[str, LayerOverride] = {}
    for item in items:
        current = indexed.get(item.id)
        if current is None:
            indexed[item.id] = item.copy()
        else:
            current.fields.update(item.fields)
    return indexed


def effective_overrides(
    url_overrides: OverrideInput,
    live_edits: OverrideInput,
    template: Optional[Template] = None,
) -> List[LayerOverride]:
    """Collapse both override tiers into one sparse override list.

    This is the state a share URL must carry.  Cleared fields are dropped
    and the rest are coerced to their field types.
    With a *template*, ids it does not define are dropped and the result
    follows template order.
    """
    url = index_overrides(url_overrides)
    live = index_overrides(live_edits)
    ids = list(dict.fromkeys(list(url) + list(live)))
    if template is not None:
        wanted = set(ids)
        ids = [i for i in template.layer_ids() if i in wanted]

    result = []
    for layer_id in ids:
        combined: Dict[str, Any] = {}
        for tier in (url.get(layer_id), live.get(layer_id)):
            if tier is None:
                continue
            for name, value in coerce_override(tier).fields.items():
                if value is None:
                    combined.pop(name, None)
                else:
                    combined[name] = value
        if combined:
            result.append(LayerOverride(layer_id, combined))
    return result


# ----------------------------
# Per-field resolution
# ----------------------------

def _tier_value(tier: Optional[LayerOverride], name: str, layer_id: str) -> Any:
    """Coerced value of *name* in *tier*, or ``None`` when absent/cleared/invalid."""
    if tier is None or not tier.has(name):
        return None
    return coerce_field(name, tier.fields[name], layer_id)


def resolve_field(
    name: str,
    record: FlatLayerRecord,
    url: Optional[LayerOverride],
    live: Optional[LayerOverride],
) -> Any:
    """Apply the precedence rule to a single field."""
    for tier in (live, url):
        value = _tier_value(tier, name, record.id)
        if value is not None:
            return value
    return getattr(record, name)


def _lookup_font(value: Any, registry: Optional[FontRegistry]) -> Optional[FontConfig]:
    if isinstance(value, FontConfig):
        return value
    if isinstance(value, dict):
        value = value.get("family") or value.get("name")
    if not isinstance(value, str) or registry is None:
        return None
    return registry.find_font(value)


def resolve_font(
    record: FlatLayerRecord,
    url: Optional[LayerOverride],
    live: Optional[LayerOverride],
    registry: Optional[FontRegistry],
) -> Tuple[Optional[str], Optional[FontConfig]]:
    """Resolve the effective font family of a text layer.

    An override naming a font the registry does not know is ignored, so
    the next tier (ultimately the template default) applies.

    Returns:
        Tuple of (font_family, FontConfig or None).
    """
    for tier in (live, url):
        if tier is None:
            continue
        for key in FONT_KEYS:
            if not tier.has(key):
                continue
            font = _lookup_font(tier.fields[key], registry)
            if font is not None:
                return font.family, font
            log.warning("Layer %s: unknown font %r ignored", record.id, tier.fields[key])
    default_font = _lookup_font(record.font_family, registry)
    return record.font_family, default_font


def resolve_svg_content(
    record: FlatLayerRecord,
    template_record: FlatLayerRecord,
    content_overridden: bool,
    store: Optional[UserAssetStore],
) -> Tuple[Optional[str], bool]:
    """Pick the SVG markup for an svgImage layer.

    Returns:
        Tuple of (content, missing) where *missing* flags a user asset id
        the store cannot provide.
    """
    content = record.svg_content
    if content_overridden:
        return content, False
    asset_id = record.svg_image_id
    if is_user_asset_id(asset_id):
        found = store.get_asset_content(asset_id) if store is not None else None
        if found is None:
            log.warning("Layer %s: user asset %s is not available", record.id, asset_id)
            return template_record.svg_content or "", True
        return found, False
    if store is not None and asset_id and (asset_id != template_record.svg_image_id or not content):
        found = store.get_asset_content(asset_id)
        if found is not None:
            return found, False
    return content, False


def _sanitized_override(
    effective: FlatLayerRecord,
    record: FlatLayerRecord,
) -> Tuple[FlatLayerRecord, bool]:
    """Sanitize override-supplied SVG markup; unusable markup is discarded."""
    sanitized, errors = validate_and_sanitize_svg(effective.svg_content)
    if sanitized is None:
        log.warning("Layer %s: ignoring svgContent override: %s", record.id, "; ".join(errors))
        return dataclasses.replace(effective, svg_content=record.svg_content), False
    if sanitized != effective.svg_content:
        effective = dataclasses.replace(effective, svg_content=sanitized)
    return effective, True


# ----------------------------
# Entry point
# ----------------------------

def merge_layer(
    record: FlatLayerRecord,
    template: Template,
    url: Optional[LayerOverride],
    live: Optional[LayerOverride],
    font_registry: Optional[FontRegistry] = None,
    asset_store: Optional[UserAssetStore] = None,
) -> MergedLayer:
    """Merge one template layer with its override tiers."""
    mergeable = MERGEABLE_FIELDS.get(record.type, frozenset())
    changes: Dict[str, Any] = {}
    for name in mergeable:
        if name == "font_family":
            continue
        value = resolve_field(name, record, url, live)
        if value != getattr(record, name):
            changes[name] = value

    font = None
    if record.type == LayerType.TEXT:
        family, font = resolve_font(record, url, live, font_registry)
        if family != record.font_family:
            changes["font_family"] = family

    effective = dataclasses.replace(record, **changes) if changes else record

    position = None
    path = None
    missing = False
    if record.type == LayerType.SVG_IMAGE:
        overridden = any(
            _tier_value(t, "svg_content", record.id) is not None for t in (live, url)
        )
        if overridden:
            effective, overridden = _sanitized_override(effective, record)
        content, missing = resolve_svg_content(effective, record, overridden, asset_store)
        if content != effective.svg_content:
            effective = dataclasses.replace(effective, svg_content=content)
    else:
        position = resolve_any_position(record.position, template.view_box)
        if record.type == LayerType.SHAPE:
            path = compile_shape_path(effective, position)

    return MergedLayer(
        record=effective,
        position=position,
        path=path,
        font=font,
        missing_asset=missing,
    )


def merge_layers(
    template: Template,
    url_overrides: OverrideInput = None,
    live_edits: OverrideInput = None,
    font_registry: Optional[FontRegistry] = None,
    asset_store: Optional[UserAssetStore] = None,
) -> MergeResult:
    """Merge every template layer, in template order.

    Args:
        template: Normalized template; defines which layers exist.
        url_overrides: Overrides decoded from a share URL.
        live_edits: Overrides from the current editing session.
        font_registry: Resolves font-family strings; fonts stay at the
            template default without one.
        asset_store: Preloaded user/library SVG content.

    Returns:
        ``MergeResult`` with one ``MergedLayer`` per template layer and
        the ids of layers whose user asset could not be found.

    Raises:
        TypeError: If *template* is not a ``Template``.
    """
    if not isinstance(template, Template):
        raise TypeError(f"merge_layers() needs a Template, got {type(template).__name__}")

    url = index_overrides(url_overrides)
    live = index_overrides(live_edits)

    known = set(template.layer_ids())
    for layer_id in set(url) | set(live):
        if layer_id not in known:
            log.debug("Ignoring override for unknown layer %s in template %s", layer_id, template.id)

    merged = []
    missing = []
    for record in template.layers:
        layer = merge_layer(record, template, url.get(record.id), live.get(record.id),
                            font_registry, asset_store)
        merged.append(layer)
        if layer.missing_asset:
            missing.append(layer.id)
    return MergeResult(tuple(merged), tuple(missing))
