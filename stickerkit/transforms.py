"""
transforms.py

Two-stage transforms for layers.

svgImage layers get an *outer* transform that places the icon's intrinsic
coordinate box (24x24 for most icon sets) at its resolved position and
scales it to the template-declared size, and an *inner* transform that
applies the user's rotation and scale around an origin inside that box.
Editing rotation or scale only ever changes the inner transform.

Text and shapes use a single outer transform.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Optional, Tuple

from stickerkit.centroid import CentroidAnalyzer
from stickerkit.coordinates import resolve_any_position, resolve_position
from stickerkit.debug_trace import trace_call, trace_exception
from stickerkit.models import LayerType, LinePosition, MergedLayer, Point, ViewBox
from stickerkit.settings import RenderSettings, get_settings
from stickerkit.shape_paths import compile_shape_path
from stickerkit.utils import finite, format_number as fmt, parse_view_box_attr

log = logging.getLogger(__name__)

_VIEWBOX_ATTR_RE = re.compile(r"viewBox\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
DEFAULT_INTRINSIC_SIZE = 24.0


def intrinsic_box(
    svg_content: Optional[str],
    default_size: float = DEFAULT_INTRINSIC_SIZE,
) -> Tuple[float, float, float, float]:
    """The icon's authoring box from its ``viewBox`` attribute.

    Returns:
        (x, y, width, height); a ``default_size`` square at the origin when
        the markup has no usable viewBox.
    """
    if svg_content:
        m = _VIEWBOX_ATTR_RE.search(svg_content)
        if m:
            parsed = parse_view_box_attr(m.group(1))
            if parsed is not None:
                return parsed
    size = finite(default_size, DEFAULT_INTRINSIC_SIZE)
    if size <= 0:
        size = DEFAULT_INTRINSIC_SIZE
    return (0.0, 0.0, size, size)


def _target_size(value, default: float) -> float:
    v = finite(value, default) if value is not None else default
    return v if v >= 0 else default


def base_scale(width: float, height: float, box_w: float, box_h: float) -> float:
    """Uniform scale fitting the intrinsic box into width x height.

    A degenerate box gives 1.
    """
    box_w, box_h = finite(box_w), finite(box_h)
    if box_w <= 0 or box_h <= 0:
        return 1.0
    return finite(min(width / box_w, height / box_h), 1.0)


def select_origin(
    svg_content: Optional[str],
    box_center: Point,
    analyzer: Optional[CentroidAnalyzer],
    threshold: float,
    layer_id: str = "",
) -> Point:
    """Rotation/scale origin inside the intrinsic box.

    The analyzer's centroid is used only when it recommends it and its
    confidence exceeds *threshold*; any analyzer failure means the box
    center.
    """
    if analyzer is None or not svg_content:
        return box_center
    try:
        if not analyzer.should_use_centroid_origin(svg_content):
            return box_center
        result = analyzer.calculate_centroid(svg_content)
    except Exception as e:
        log.warning("Centroid analysis failed for layer %s, using box center: %s", layer_id, e)
        trace_exception(f"centroid analysis for {layer_id}")
        return box_center
    if result.confidence <= threshold:
        return box_center
    return Point(finite(result.x, box_center.x), finite(result.y, box_center.y))


def svg_image_transforms(
    merged: MergedLayer,
    view_box: ViewBox,
    analyzer: Optional[CentroidAnalyzer],
    render: RenderSettings,
) -> MergedLayer:
    rec = merged.record
    bx, by, bw, bh = intrinsic_box(rec.svg_content, render.intrinsic_box_size)
    width = _target_size(rec.width, render.default_image_size)
    height = _target_size(rec.height, render.default_image_size)
    scale0 = base_scale(width, height, bw, bh)

    pos = resolve_position(rec.position, view_box)
    px, py = finite(pos.x), finite(pos.y)
    center = Point(finite(bx + bw / 2), finite(by + bh / 2))

    origin = select_origin(rec.svg_content, center, analyzer,
                           render.centroid_confidence_threshold, rec.id)
    rotation = finite(rec.rotation, 0.0)
    user_scale = finite(rec.scale, 1.0) if rec.scale is not None else 1.0

    outer = (f"translate({fmt(px)}, {fmt(py)}) scale({fmt(scale0)}) "
             f"translate({fmt(-center.x)}, {fmt(-center.y)})")
    inner = (f"translate({fmt(origin.x)}, {fmt(origin.y)}) rotate({fmt(rotation)}) "
             f"scale({fmt(user_scale)}) translate({fmt(-origin.x)}, {fmt(-origin.y)})")
    return dataclasses.replace(
        merged,
        position=Point(px, py),
        transform=outer,
        inner_transform=inner,
        transform_origin=origin,
    )


def text_transforms(merged: MergedLayer, view_box: ViewBox) -> MergedLayer:
    pos = merged.position
    if pos is None:
        pos = resolve_any_position(merged.record.position, view_box)
    if isinstance(pos, LinePosition):
        pos = pos.midpoint
    x, y = finite(pos.x), finite(pos.y)
    rotation = finite(merged.record.rotation, 0.0)
    outer = f"translate({fmt(x)}, {fmt(y)})"
    if rotation != 0:
        outer += f" rotate({fmt(rotation)})"
    return dataclasses.replace(
        merged, position=Point(x, y), transform=outer, inner_transform="",
        transform_origin=Point(x, y),
    )


def shape_transforms(merged: MergedLayer, view_box: ViewBox) -> MergedLayer:
    pos = merged.position
    if pos is None:
        pos = resolve_any_position(merged.record.position, view_box)
    path = merged.path if merged.path is not None else compile_shape_path(merged.record, pos)
    center = pos.midpoint if isinstance(pos, LinePosition) else pos
    cx, cy = finite(center.x), finite(center.y)
    rotation = finite(merged.record.rotation, 0.0)
    outer = ""
    if rotation != 0:
        outer = f"rotate({fmt(rotation)}, {fmt(cx)}, {fmt(cy)})"
    return dataclasses.replace(
        merged, position=pos, path=path, transform=outer, inner_transform="",
        transform_origin=Point(cx, cy),
    )


@trace_call("TRANSFORM")
def compile_transforms(
    merged: MergedLayer,
    view_box: ViewBox,
    analyzer: Optional[CentroidAnalyzer] = None,
    settings: Optional[RenderSettings] = None,
) -> MergedLayer:
    """Attach transform strings to a merged layer.

    Args:
        merged: Output of the merge engine.
        view_box: The template's viewBox.
        analyzer: Optional bounds/centroid analyzer for svgImage origins.
        settings: Geometry defaults; the global settings when omitted.

    Returns:
        A copy of *merged* with ``transform``, ``inner_transform`` and
        ``transform_origin`` set.  Every number in the transform strings
        is finite.
    """
    render = settings or get_settings().settings.render
    if merged.type == LayerType.SVG_IMAGE:
        return svg_image_transforms(merged, view_box, analyzer, render)
    if merged.type == LayerType.TEXT:
        return text_transforms(merged, view_box)
    return shape_transforms(merged, view_box)


def scaled_transform_origin(merged: MergedLayer, settings: Optional[RenderSettings] = None) -> Optional[Point]:
    """Map an svgImage's intrinsic-box origin into template coordinates."""
    if merged.type != LayerType.SVG_IMAGE or merged.transform_origin is None or merged.position is None:
        return merged.transform_origin
    render = settings or get_settings().settings.render
    rec = merged.record
    bx, by, bw, bh = intrinsic_box(rec.svg_content, render.intrinsic_box_size)
    scale0 = base_scale(_target_size(rec.width, render.default_image_size),
                        _target_size(rec.height, render.default_image_size), bw, bh)
    origin = merged.transform_origin
    return Point(
        finite(merged.position.x + (origin.x - (bx + bw / 2)) * scale0),
        finite(merged.position.y + (origin.y - (by + bh / 2)) * scale0),
    )
