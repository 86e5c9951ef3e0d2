"""
shape_paths.py

Compile shape layer geometry into SVG path data.

Every shape except ``line`` is center-anchored: the layer position is the
center of the drawn geometry.  Polygon ``points`` are offsets from that
center.  Coordinates are never rounded.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple, Union

from stickerkit.models import FlatLayerRecord, LinePosition, Point, ShapeSubtype
from stickerkit.utils import coerce_number, format_number as fmt, parse_points

log = logging.getLogger(__name__)

DEFAULT_SIZE = 100.0
DEFAULT_ELLIPSE_HEIGHT = 50.0
# Default triangle: apex 50 above center, base 25 below, 100 wide
TRIANGLE_APEX = 50.0
TRIANGLE_BASE = 25.0
TRIANGLE_HALF_WIDTH = 50.0


def _size(value: Any, default: float) -> float:
    """Width/height: absent or negative means *default*; 0 stays 0."""
    v = coerce_number(value)
    if v is None or v < 0:
        return default
    return v


def _radius(value: Any) -> Optional[float]:
    v = coerce_number(value)
    if v is None or v < 0:
        return None
    return v


def corner_radii(rx: Any, ry: Any, width: float, height: float) -> Tuple[float, float]:
    """Resolve rect corner radii.

    A missing radius takes the other one's value; both are clamped to half
    the corresponding side.
    """
    rx_v = _radius(rx)
    ry_v = _radius(ry)
    if rx_v is None and ry_v is None:
        return 0.0, 0.0
    if rx_v is None:
        rx_v = ry_v
    if ry_v is None:
        ry_v = rx_v
    return min(rx_v, width / 2), min(ry_v, height / 2)


# ─────────────────────────────────────────────────────────
# Primitive builders
# ─────────────────────────────────────────────────────────


def rect_path(cx: float, cy: float, width: float, height: float,
              rx: float = 0.0, ry: float = 0.0) -> str:
    """Rectangle centered on (cx, cy).

    Rounded corners use one quadratic curve per corner with the corner
    point as control point.
    """
    x = cx - width / 2
    y = cy - height / 2
    if rx > 0 or ry > 0:
        return (
            f"M{fmt(x + rx)},{fmt(y)} "
            f"L{fmt(x + width - rx)},{fmt(y)} "
            f"Q{fmt(x + width)},{fmt(y)} {fmt(x + width)},{fmt(y + ry)} "
            f"L{fmt(x + width)},{fmt(y + height - ry)} "
            f"Q{fmt(x + width)},{fmt(y + height)} {fmt(x + width - rx)},{fmt(y + height)} "
            f"L{fmt(x + rx)},{fmt(y + height)} "
            f"Q{fmt(x)},{fmt(y + height)} {fmt(x)},{fmt(y + height - ry)} "
            f"L{fmt(x)},{fmt(y + ry)} "
            f"Q{fmt(x)},{fmt(y)} {fmt(x + rx)},{fmt(y)} Z"
        )
    return (
        f"M{fmt(x)},{fmt(y)} "
        f"L{fmt(x + width)},{fmt(y)} "
        f"L{fmt(x + width)},{fmt(y + height)} "
        f"L{fmt(x)},{fmt(y + height)} Z"
    )


def ellipse_path(cx: float, cy: float, rx: float, ry: float) -> str:
    """Closed ellipse drawn as two half arcs."""
    return (
        f"M{fmt(cx - rx)},{fmt(cy)} "
        f"A{fmt(rx)},{fmt(ry)} 0 1,0 {fmt(cx + rx)},{fmt(cy)} "
        f"A{fmt(rx)},{fmt(ry)} 0 1,0 {fmt(cx - rx)},{fmt(cy)} Z"
    )


def circle_path(cx: float, cy: float, r: float) -> str:
    return ellipse_path(cx, cy, r, r)


def default_triangle_path(cx: float, cy: float) -> str:
    return (
        f"M{fmt(cx)},{fmt(cy - TRIANGLE_APEX)} "
        f"L{fmt(cx + TRIANGLE_HALF_WIDTH)},{fmt(cy + TRIANGLE_BASE)} "
        f"L{fmt(cx - TRIANGLE_HALF_WIDTH)},{fmt(cy + TRIANGLE_BASE)} Z"
    )


def polygon_path(cx: float, cy: float, points: Any) -> str:
    """Polygon from center offsets; the default triangle when no valid points."""
    pts = parse_points(points)
    if not pts:
        if points:
            log.warning("Polygon points %r contain no valid pairs, using default triangle", points)
        return default_triangle_path(cx, cy)
    parts = [f"M{fmt(cx + pts[0][0])},{fmt(cy + pts[0][1])}"]
    parts.extend(f"L{fmt(cx + px)},{fmt(cy + py)}" for px, py in pts[1:])
    parts.append("Z")
    return " ".join(parts)


def line_path(pos: LinePosition) -> str:
    return f"M{fmt(pos.x1)},{fmt(pos.y1)} L{fmt(pos.x2)},{fmt(pos.y2)}"


# ─────────────────────────────────────────────────────────
# Layer entry point
# ─────────────────────────────────────────────────────────


def compile_shape_path(layer: FlatLayerRecord, position: Union[Point, LinePosition]) -> str:
    """Compile a shape layer to path data.

    Args:
        layer: Shape layer record (template defaults or merged).
        position: Resolved position: the center for area shapes, the
            endpoints for lines.

    Returns:
        SVG path data.  Unknown subtypes render as rectangles.
    """
    subtype = layer.subtype

    if subtype == ShapeSubtype.LINE:
        if isinstance(position, LinePosition):
            return line_path(position)
        return line_path(LinePosition(position.x, position.y, position.x, position.y))

    center = position.midpoint if isinstance(position, LinePosition) else position
    cx, cy = center.x, center.y

    if subtype == ShapeSubtype.PATH:
        if isinstance(layer.path, str) and layer.path.strip():
            return layer.path
        log.warning("Path layer %s has no path data, rendering as rect", layer.id)
    elif subtype == ShapeSubtype.CIRCLE:
        return circle_path(cx, cy, _size(layer.width, DEFAULT_SIZE) / 2)
    elif subtype == ShapeSubtype.ELLIPSE:
        return ellipse_path(cx, cy,
                            _size(layer.width, DEFAULT_SIZE) / 2,
                            _size(layer.height, DEFAULT_ELLIPSE_HEIGHT) / 2)
    elif subtype == ShapeSubtype.POLYGON:
        return polygon_path(cx, cy, layer.points)
    elif subtype != ShapeSubtype.RECT:
        log.debug("Unknown shape subtype %r on layer %s, rendering as rect", subtype, layer.id)

    width = _size(layer.width, DEFAULT_SIZE)
    height = _size(layer.height, DEFAULT_SIZE)
    rx, ry = corner_radii(layer.rx, layer.ry, width, height)
    return rect_path(cx, cy, width, height, rx, ry)
