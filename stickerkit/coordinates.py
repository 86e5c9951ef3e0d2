"""
coordinates.py

Percentage and absolute coordinate resolution against a template viewBox.

``resolve_coordinate`` is total: malformed input degrades to 0 with a
warning instead of raising.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Optional, Union

from stickerkit.errors import CoordinateParseError
from stickerkit.models import LinePosition, Point, ViewBox

log = logging.getLogger(__name__)


# Named anchors, expressed as percentages of the viewBox
PERCENTAGE_POSITIONS: Dict[str, Dict[str, str]] = {
    "center":       {"x": "50%", "y": "50%"},
    "top":          {"x": "50%", "y": "25%"},
    "bottom":       {"x": "50%", "y": "75%"},
    "left":         {"x": "25%", "y": "50%"},
    "right":        {"x": "75%", "y": "50%"},
    "topLeft":      {"x": "25%", "y": "25%"},
    "topRight":     {"x": "75%", "y": "25%"},
    "bottomLeft":   {"x": "25%", "y": "75%"},
    "bottomRight":  {"x": "75%", "y": "75%"},
}


def percentage_position(x_pct: float, y_pct: float) -> Dict[str, str]:
    """Build a position dict from two percentages, e.g. ``(50, 25)``."""
    return {"x": f"{x_pct}%", "y": f"{y_pct}%"}


def is_percentage(value: Any) -> bool:
    return isinstance(value, str) and value.strip().endswith("%")


def parse_percentage(value: str) -> float:
    """Parse ``"50%"`` into the fraction ``0.5``.

    Raises:
        CoordinateParseError: If *value* is not a finite percentage.
    """
    if not is_percentage(value):
        raise CoordinateParseError(value)
    try:
        pct = float(value.strip()[:-1])
    except ValueError:
        raise CoordinateParseError(value) from None
    if not math.isfinite(pct):
        raise CoordinateParseError(value)
    return pct / 100.0


def parse_absolute(value: Any) -> float:
    """Parse a plain number or numeric string.

    Raises:
        CoordinateParseError: If *value* is not a finite number.
    """
    if isinstance(value, bool):
        raise CoordinateParseError(value)
    if isinstance(value, (int, float)):
        v = float(value)
    elif isinstance(value, str):
        try:
            v = float(value.strip())
        except ValueError:
            raise CoordinateParseError(value) from None
    else:
        raise CoordinateParseError(value)
    if not math.isfinite(v):
        raise CoordinateParseError(value)
    return v


def resolve_coordinate(value: Any, axis_length: float, axis_origin: float = 0.0) -> float:
    """Resolve one coordinate to an absolute value.

    Args:
        value: Number, ``"NN%"`` string, or numeric string.
        axis_length: ViewBox width (x axis) or height (y axis).
        axis_origin: ViewBox x (x axis) or y (y axis).

    Returns:
        The absolute coordinate; 0.0 for anything that cannot be parsed.
    """
    if value is None:
        log.debug("Missing coordinate, using 0")
        return 0.0
    try:
        if is_percentage(value):
            result = axis_origin + axis_length * parse_percentage(value)
        else:
            result = parse_absolute(value)
    except CoordinateParseError:
        log.warning("Unparseable coordinate %r, using 0", value)
        return 0.0
    if not math.isfinite(result):
        log.warning("Coordinate %r resolved to a non-finite value, using 0", value)
        return 0.0
    return result


def resolve_position(position: Optional[Mapping[str, Any]], view_box: ViewBox) -> Point:
    """Resolve an ``{x, y}`` position.  Missing axes resolve to 0."""
    position = position or {}
    return Point(
        resolve_coordinate(position.get("x"), view_box.width, view_box.x),
        resolve_coordinate(position.get("y"), view_box.height, view_box.y),
    )


def resolve_line_position(position: Optional[Mapping[str, Any]], view_box: ViewBox) -> LinePosition:
    """Resolve an ``{x1, y1, x2, y2}`` line position."""
    position = position or {}
    return LinePosition(
        resolve_coordinate(position.get("x1"), view_box.width, view_box.x),
        resolve_coordinate(position.get("y1"), view_box.height, view_box.y),
        resolve_coordinate(position.get("x2"), view_box.width, view_box.x),
        resolve_coordinate(position.get("y2"), view_box.height, view_box.y),
    )


def is_line_position(position: Any) -> bool:
    return isinstance(position, Mapping) and "x1" in position


def resolve_any_position(
    position: Optional[Mapping[str, Any]], view_box: ViewBox
) -> Union[Point, LinePosition]:
    """Resolve either position form, dispatching on the ``x1`` key."""
    if is_line_position(position):
        return resolve_line_position(position, view_box)
    return resolve_position(position, view_box)
