"""
pipeline.py

Compose the stages into renderer-facing output::

    Template -> merge -> transforms -> clip/textPath tables -> RenderResult

``render_template`` is a pure function of the template and the two
override tiers (given the same collaborators), so the same share URL
always renders to the same ``RenderResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from stickerkit.assets import UserAssetStore
from stickerkit.centroid import CentroidAnalyzer
from stickerkit.debug_trace import trace
from stickerkit.fonts import DEFAULT_FONT, FontRegistry, font_family_css
from stickerkit.merge import OverrideInput, merge_layers
from stickerkit.models import LayerType, MergedLayer, Point, RenderableLayer, Template
from stickerkit.references import clip_url_for, resolve_clip_paths, resolve_text_paths
from stickerkit.settings import RenderSettings, get_settings
from stickerkit.transforms import compile_transforms, scaled_transform_origin

log = logging.getLogger(__name__)

DEFAULT_FONT_SIZE = 16.0


@dataclass(frozen=True)
class RenderResult:
    layers: Tuple[RenderableLayer, ...]
    clip_paths: Dict[str, str] = field(default_factory=dict)
    text_paths: Dict[str, str] = field(default_factory=dict)
    missing_assets: Tuple[str, ...] = ()
    merged: Tuple[MergedLayer, ...] = field(default=(), repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layers": [layer.to_dict() for layer in self.layers],
            "clipPaths": dict(self.clip_paths),
            "textPaths": dict(self.text_paths),
            "missingAssets": list(self.missing_assets),
        }


# ----------------------------
# Multi-line text
# ----------------------------

def split_lines(text: str) -> List[str]:
    return text.split("\n")


def calculate_line_dy(index: int, total_lines: int, font_size: float, line_height: float) -> float:
    """Vertical offset of a line relative to the previous one.

    The first line is shifted up by half the block height so the block
    stays centered on the layer position.
    """
    spacing = font_size * line_height
    if index == 0:
        return -(total_lines - 1) * spacing / 2
    return spacing


# ----------------------------
# Projection
# ----------------------------

def _put(d: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None and value != "":
        d[key] = value


def _point(p: Optional[Point]) -> Optional[Dict[str, float]]:
    return None if p is None else {"x": p.x, "y": p.y}


def _stroke(d: Dict[str, Any], layer: MergedLayer, require_width: bool = False) -> None:
    rec = layer.record
    if require_width and not (rec.stroke_width or 0) > 0:
        return
    _put(d, "strokeColor", rec.stroke_color)
    _put(d, "strokeWidth", rec.stroke_width)
    _put(d, "strokeOpacity", rec.stroke_opacity)
    _put(d, "strokeLinejoin", rec.stroke_linejoin)


def _shape_group(layer: MergedLayer, clip_paths: Dict[str, str]) -> Dict[str, Any]:
    rec = layer.record
    d: Dict[str, Any] = {"subtype": rec.subtype or "rect", "path": layer.path or ""}
    _put(d, "fillColor", rec.fill_color)
    _stroke(d, layer)
    _put(d, "opacity", rec.opacity)
    _put(d, "transform", layer.transform)
    _put(d, "clipPath", clip_url_for(layer, clip_paths))
    return d


def _text_group(
    layer: MergedLayer,
    clip_paths: Dict[str, str],
    text_paths: Dict[str, str],
    render: RenderSettings,
) -> Dict[str, Any]:
    rec = layer.record
    text = rec.text or ""
    font_size = rec.font_size if rec.font_size is not None else DEFAULT_FONT_SIZE
    line_height = rec.line_height if rec.line_height is not None else render.default_line_height
    pos = layer.position

    d: Dict[str, Any] = {"text": text}
    if pos is not None:
        d["x"] = pos.x
        d["y"] = pos.y
    d["fontFamily"] = font_family_css(layer.font) if layer.font else (
        rec.font_family or font_family_css(DEFAULT_FONT))
    d["fontSize"] = font_size
    _put(d, "fontWeight", rec.font_weight)
    _put(d, "fontColor", rec.font_color)
    _put(d, "textAnchor", rec.text_anchor)
    _put(d, "dominantBaseline", rec.dominant_baseline)
    _put(d, "dy", rec.dy)
    _stroke(d, layer, require_width=True)
    _put(d, "transform", layer.transform)
    _put(d, "clipPath", clip_url_for(layer, clip_paths))

    if rec.text_path and rec.text_path in text_paths:
        d["textPath"] = rec.text_path
        _put(d, "startOffset", rec.start_offset)
    else:
        lines = split_lines(text)
        if len(lines) > 1:
            d["lineHeight"] = line_height
            d["lines"] = [
                {"text": line, "dy": calculate_line_dy(i, len(lines), font_size, line_height)}
                for i, line in enumerate(lines)
            ]
    return d


def _svg_image_group(
    layer: MergedLayer,
    clip_paths: Dict[str, str],
    render: RenderSettings,
) -> Dict[str, Any]:
    rec = layer.record
    d: Dict[str, Any] = {}
    _put(d, "svgImageId", rec.svg_image_id)
    d["svgContent"] = rec.svg_content or ""
    _put(d, "color", rec.color)
    _stroke(d, layer)
    d["transform"] = layer.transform
    d["innerTransform"] = layer.inner_transform
    d["transformOrigin"] = _point(layer.transform_origin)
    # rotation pivot in template units, for selection handles
    d["pivot"] = _point(scaled_transform_origin(layer, render))
    _put(d, "clipPath", clip_url_for(layer, clip_paths))
    if layer.missing_asset:
        d["missingAsset"] = True
    return d


def to_renderable(
    layer: MergedLayer,
    clip_paths: Optional[Dict[str, str]] = None,
    text_paths: Optional[Dict[str, str]] = None,
    settings: Optional[RenderSettings] = None,
) -> RenderableLayer:
    """Project a transformed ``MergedLayer`` into its renderer group."""
    clip_paths = clip_paths or {}
    text_paths = text_paths or {}
    render = settings or get_settings().settings.render
    if layer.type == LayerType.TEXT:
        return RenderableLayer(layer.id, layer.type,
                               text=_text_group(layer, clip_paths, text_paths, render))
    if layer.type == LayerType.SVG_IMAGE:
        return RenderableLayer(layer.id, layer.type, svg_image=_svg_image_group(layer, clip_paths, render))
    return RenderableLayer(layer.id, layer.type, shape=_shape_group(layer, clip_paths))


# ----------------------------
# Entry point
# ----------------------------

def render_template(
    template: Template,
    url_overrides: OverrideInput = None,
    live_edits: OverrideInput = None,
    *,
    font_registry: Optional[FontRegistry] = None,
    asset_store: Optional[UserAssetStore] = None,
    analyzer: Optional[CentroidAnalyzer] = None,
    settings: Optional[RenderSettings] = None,
) -> RenderResult:
    """Run the full pipeline for one template and override set.

    Args:
        template: Normalized template.
        url_overrides: Overrides decoded from the share URL.
        live_edits: Overrides from the current editing session.
        font_registry: Font lookup for font-family overrides.
        asset_store: Preloaded user/library SVG content.
        analyzer: Bounds/centroid analyzer for svgImage origins.
        settings: Geometry defaults; the global settings when omitted.

    Returns:
        ``RenderResult`` with one ``RenderableLayer`` per template layer
        (template order), the clip-path and textPath tables and the ids of
        layers whose user asset is missing.
    """
    render = settings or get_settings().settings.render
    merged = merge_layers(template, url_overrides, live_edits,
                          font_registry=font_registry, asset_store=asset_store)
    transformed = tuple(
        compile_transforms(layer, template.view_box, analyzer, render) for layer in merged.layers
    )
    clip_paths = resolve_clip_paths(transformed)
    text_paths = resolve_text_paths(transformed)
    layers = tuple(to_renderable(layer, clip_paths, text_paths, render) for layer in transformed)
    trace(f"rendered {template.id}: {len(layers)} layers, {len(clip_paths)} clips, "
          f"{len(text_paths)} text paths", "RENDER")
    return RenderResult(layers, clip_paths, text_paths, merged.missing_assets, transformed)
