"""
utils.py

Number formatting, coercion and record helpers shared by the pipeline stages.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple


def format_number(value: Any) -> str:
    """Format a number for SVG path and transform strings.

    Integral values print without a fractional part, other values use the
    shortest round-trip representation.  Exponent notation is expanded so
    the result is always a plain SVG number token.  Non-finite or
    non-numeric input prints as ``"0"``.

    Args:
        value: Number to format.

    Returns:
        The formatted number.
    """
    v = finite(value)
    if v == 0:
        return "0"
    if v.is_integer():
        return str(int(v))
    text = repr(v)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


def finite(value: Any, fallback: float = 0.0) -> float:
    """Return *value* as a finite float, or *fallback*."""
    if isinstance(value, bool):
        return fallback
    try:
        v = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(v):
        return fallback
    return v


def coerce_number(value: Any) -> Optional[float]:
    """Coerce template input to a finite float.

    Accepts ints, floats and numeric strings.  Booleans, ``None`` and
    anything non-finite give ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        v = float(value)
    elif isinstance(value, str):
        try:
            v = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return v if math.isfinite(v) else None


def parse_points(points_str: Any) -> List[Tuple[float, float]]:
    """Parse a whitespace-separated ``"x,y"`` point list.

    Malformed pairs are skipped.

    Args:
        points_str: Point list such as ``"0,-50 50,25 -50,25"``.

    Returns:
        List of (x, y) tuples.
    """
    if not isinstance(points_str, str):
        return []
    result = []
    for pair in points_str.split():
        parts = pair.split(",")
        if len(parts) != 2:
            continue
        x = coerce_number(parts[0])
        y = coerce_number(parts[1])
        if x is None or y is None:
            continue
        result.append((x, y))
    return result


def format_points(points: List[Tuple[float, float]]) -> str:
    """Inverse of ``parse_points``."""
    return " ".join(f"{format_number(x)},{format_number(y)}" for x, y in points)


_VIEWBOX_SPLIT = re.compile(r"[\s,]+")


def parse_view_box_attr(value: Any) -> Optional[Tuple[float, float, float, float]]:
    """Parse an SVG ``viewBox`` attribute into (x, y, width, height).

    Returns ``None`` unless there are exactly four finite numbers and a
    positive width and height.
    """
    if not isinstance(value, str):
        return None
    parts = [p for p in _VIEWBOX_SPLIT.split(value.strip()) if p]
    if len(parts) != 4:
        return None
    nums = [coerce_number(p) for p in parts]
    if any(n is None for n in nums):
        return None
    x, y, w, h = nums
    if w <= 0 or h <= 0:
        return None
    return (x, y, w, h)


def camel_to_snake(name: str) -> str:
    """``strokeLinejoin`` -> ``stroke_linejoin``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """``stroke_linejoin`` -> ``strokeLinejoin``."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


# Canonical key order for serialized layer records
LAYER_KEY_ORDER = [
    "id", "type", "subtype", "position", "width", "height", "rx", "ry",
    "points", "path", "text", "label", "placeholder",
]


def sort_layer_keys(rec: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sort layer record keys in canonical order.

    Order: id, type, subtype, position, geometry, then content fields.
    Any keys not in this list are appended at the end in sorted order so
    serialization never depends on insertion order.

    Args:
        rec: The layer record dict

    Returns:
        New dict with keys sorted in canonical order
    """
    result = {}
    for key in LAYER_KEY_ORDER:
        if key in rec:
            result[key] = rec[key]
    for key in sorted(k for k in rec if k not in result):
        result[key] = rec[key]
    return result


_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def normalize_color(value: str) -> str:
    """Strip a color string and lowercase it when it is a hex color.

    Named colors, ``none`` and functional notations pass through stripped.
    """
    color = value.strip()
    if _HEX_COLOR_RE.match(color):
        return color.lower()
    return color
