"""
centroid.py

Default bounds/centroid analyzer for SVG icon markup.

Asymmetric artwork (arrows, stars, speech bubbles) rotates around its
visual mass rather than the center of its viewBox when the analyzer is
confident enough.  Curves are sampled into points so the shoelace centroid
works for arbitrary path data.
"""

from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from stickerkit.models import CentroidResult, Point
from stickerkit.utils import parse_view_box_attr

log = logging.getLogger(__name__)

DEFAULT_BOX = (0.0, 0.0, 24.0, 24.0)

# Confidence levels per detection strategy
POLYGON_CONFIDENCE = 0.85
SINGLE_PATH_CONFIDENCE = 0.8
BASIC_SHAPE_CONFIDENCE = 0.9
USE_CENTROID_MIN_CONFIDENCE = 0.7

# Strategy agreement thresholds (std-dev in SVG units)
LOW_VARIANCE = 2.0
MEDIUM_VARIANCE = 8.0

_COMMANDS = "MmLlHhVvCcSsQqTtAaZz"
_TOKEN_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_ARITY = {"M": 2, "L": 2, "T": 2, "H": 1, "V": 1, "C": 6, "S": 4, "Q": 4, "A": 7, "Z": 0}


class CentroidAnalyzer(Protocol):
    def calculate_centroid(self, svg_markup: str) -> CentroidResult: ...

    def should_use_centroid_origin(self, svg_markup: str) -> bool: ...


# ─────────────────────────────────────────────────────────
# Path sampling
# ─────────────────────────────────────────────────────────


def _cubic(p0, p1, p2, p3, samples: int = 10) -> List[Tuple[float, float]]:
    pts = []
    for k in range(1, samples + 1):
        t = k / samples
        mt = 1 - t
        x = mt ** 3 * p0[0] + 3 * mt * mt * t * p1[0] + 3 * mt * t * t * p2[0] + t ** 3 * p3[0]
        y = mt ** 3 * p0[1] + 3 * mt * mt * t * p1[1] + 3 * mt * t * t * p2[1] + t ** 3 * p3[1]
        pts.append((x, y))
    return pts


def _quadratic(p0, p1, p2, samples: int = 8) -> List[Tuple[float, float]]:
    pts = []
    for k in range(1, samples + 1):
        t = k / samples
        mt = 1 - t
        pts.append((mt * mt * p0[0] + 2 * mt * t * p1[0] + t * t * p2[0],
                    mt * mt * p0[1] + 2 * mt * t * p1[1] + t * t * p2[1]))
    return pts


def _linear(p0, p1, samples: int = 8) -> List[Tuple[float, float]]:
    return [(p0[0] + (p1[0] - p0[0]) * k / samples, p0[1] + (p1[1] - p0[1]) * k / samples)
            for k in range(1, samples + 1)]


def sample_path_points(d: str) -> List[Tuple[float, float]]:
    """Walk SVG path data and return sampled outline points.

    Handles absolute and relative M, L, H, V, C, S, Q, T, A and Z.  Cubic
    curves contribute 10 samples, quadratics and arcs 8 (arcs are
    approximated by their chord).
    """
    tokens = _TOKEN_RE.findall(d or "")
    points: List[Tuple[float, float]] = []
    cx, cy = 0.0, 0.0      # current point
    sx, sy = 0.0, 0.0      # subpath start (for Z)
    last_ctrl: Optional[Tuple[float, float]] = None
    last_cmd = ""
    i = 0

    while i < len(tokens):
        cmd = tokens[i]
        if cmd not in _COMMANDS:
            i += 1
            continue
        i += 1
        upper = cmd.upper()
        rel = cmd.islower()
        arity = _ARITY[upper]

        if arity == 0:
            if (cx, cy) != (sx, sy):
                points.append((sx, sy))
            cx, cy = sx, sy
            last_ctrl, last_cmd = None, upper
            continue

        first = True
        while i + arity <= len(tokens) and all(t not in _COMMANDS for t in tokens[i:i + arity]):
            args = [float(t) for t in tokens[i:i + arity]]
            i += arity
            ox, oy = (cx, cy) if rel else (0.0, 0.0)

            if upper == "M":
                cx, cy = ox + args[0], oy + args[1]
                if first:
                    sx, sy = cx, cy
                points.append((cx, cy))
                last_ctrl = None
            elif upper == "L":
                cx, cy = ox + args[0], oy + args[1]
                points.append((cx, cy))
                last_ctrl = None
            elif upper == "H":
                cx = (cx if rel else 0.0) + args[0]
                points.append((cx, cy))
                last_ctrl = None
            elif upper == "V":
                cy = (cy if rel else 0.0) + args[0]
                points.append((cx, cy))
                last_ctrl = None
            elif upper in ("C", "S"):
                if upper == "C":
                    c1 = (ox + args[0], oy + args[1])
                    c2 = (ox + args[2], oy + args[3])
                    end = (ox + args[4], oy + args[5])
                else:
                    if last_ctrl is not None and last_cmd in ("C", "S"):
                        c1 = (2 * cx - last_ctrl[0], 2 * cy - last_ctrl[1])
                    else:
                        c1 = (cx, cy)
                    c2 = (ox + args[0], oy + args[1])
                    end = (ox + args[2], oy + args[3])
                points.extend(_cubic((cx, cy), c1, c2, end))
                last_ctrl = c2
                cx, cy = end
            elif upper in ("Q", "T"):
                if upper == "Q":
                    ctrl = (ox + args[0], oy + args[1])
                    end = (ox + args[2], oy + args[3])
                else:
                    if last_ctrl is not None and last_cmd in ("Q", "T"):
                        ctrl = (2 * cx - last_ctrl[0], 2 * cy - last_ctrl[1])
                    else:
                        ctrl = (cx, cy)
                    end = (ox + args[0], oy + args[1])
                points.extend(_quadratic((cx, cy), ctrl, end))
                last_ctrl = ctrl
                cx, cy = end
            elif upper == "A":
                end = (ox + args[5], oy + args[6])
                points.extend(_linear((cx, cy), end))
                last_ctrl = None
                cx, cy = end

            last_cmd = upper
            first = False
            # Extra pairs after a moveto are implicit linetos
            if upper == "M":
                upper = "L"

    return points


def polygon_centroid(points: List[Tuple[float, float]]) -> Point:
    """Area centroid via the shoelace formula.

    Degenerate (near zero area) outlines use the vertex average.
    """
    if not points:
        return Point(0.0, 0.0)
    if len(points) == 1:
        return Point(*points[0])
    if len(points) == 2:
        return Point((points[0][0] + points[1][0]) / 2, (points[0][1] + points[1][1]) / 2)

    area = 0.0
    cx = 0.0
    cy = 0.0
    n = len(points)
    for k in range(n):
        x0, y0 = points[k]
        x1, y1 = points[(k + 1) % n]
        cross = x0 * y1 - x1 * y0
        area += cross
        cx += (x0 + x1) * cross
        cy += (y0 + y1) * cross
    area /= 2

    if abs(area) < 1e-6:
        ax = sum(p[0] for p in points) / n
        ay = sum(p[1] for p in points) / n
        return Point(ax if math.isfinite(ax) else 0.0, ay if math.isfinite(ay) else 0.0)

    x = cx / (6 * area)
    y = cy / (6 * area)
    return Point(x if math.isfinite(x) else 0.0, y if math.isfinite(y) else 0.0)


# ─────────────────────────────────────────────────────────
# Multi-path strategies
# ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PathAnalysis:
    center: Point
    area: float
    point_count: int


def analyze_path(d: str) -> PathAnalysis:
    pts = sample_path_points(d)
    if not pts:
        return PathAnalysis(Point(0.0, 0.0), 0.0, 0)
    xs = [p[0] for p in pts]
    ys = [p[1] for p in pts]
    w = max(xs) - min(xs)
    h = max(ys) - min(ys)
    return PathAnalysis(Point(min(xs) + w / 2, min(ys) + h / 2), w * h, len(pts))


def _weighted(paths: List[PathAnalysis], weights: List[float], fallback: Point) -> Point:
    total = sum(weights)
    if total <= 0:
        return fallback
    return Point(sum(p.center.x * w for p, w in zip(paths, weights)) / total,
                 sum(p.center.y * w for p, w in zip(paths, weights)) / total)


def multi_path_centroid(path_data: List[str]) -> Optional[Tuple[Point, float]]:
    """Combine per-path bounding-box centers.

    Equal, area and complexity weightings are computed.  When they agree
    closely the area-weighted center wins; moderate disagreement averages
    them; strong disagreement falls back to equal weighting with low
    confidence.

    Returns:
        Tuple of (centroid, confidence), or ``None`` when no path has area.
    """
    paths = [a for a in (analyze_path(d) for d in path_data) if a.point_count > 0 and a.area > 0]
    if not paths:
        return None
    if len(paths) == 1:
        return paths[0].center, SINGLE_PATH_CONFIDENCE

    equal = _weighted(paths, [1.0] * len(paths), Point(0.0, 0.0))
    by_area = _weighted(paths, [p.area for p in paths], equal)
    by_complexity = _weighted(paths, [float(p.point_count) for p in paths], equal)

    strategies = [equal, by_area, by_complexity]
    avg_x = sum(s.x for s in strategies) / 3
    avg_y = sum(s.y for s in strategies) / 3
    spread = math.sqrt(sum((s.x - avg_x) ** 2 + (s.y - avg_y) ** 2 for s in strategies) / 3)

    if spread < LOW_VARIANCE:
        return by_area, 0.9
    if spread < MEDIUM_VARIANCE:
        return Point(avg_x, avg_y), 0.7
    return equal, 0.5


# ─────────────────────────────────────────────────────────
# Analyzer
# ─────────────────────────────────────────────────────────


def _strip_ns(tag: str) -> str:
    """Remove any ``{namespace}`` prefix from a tag."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def detect_shape_type(root: ET.Element) -> str:
    tags = {_strip_ns(el.tag) for el in root.iter()}
    if any(_strip_ns(el.tag) == "path" and el.get("d") for el in root.iter()):
        return "complex-path"
    if "circle" in tags or "ellipse" in tags:
        return "circle"
    if "rect" in tags:
        return "rectangle"
    if "polygon" in tags or "polyline" in tags:
        return "polygon"
    if "line" in tags:
        return "line"
    return "unknown"


class PathCentroidAnalyzer:
    """Bounds/centroid analyzer working on raw SVG markup."""

    def calculate_centroid(self, svg_markup: str) -> CentroidResult:
        try:
            root = ET.fromstring(svg_markup)
        except ET.ParseError as e:
            log.debug("Cannot parse SVG for centroid analysis: %s", e)
            bx, by, bw, bh = DEFAULT_BOX
            center = Point(bx + bw / 2, by + bh / 2)
            return CentroidResult(center.x, center.y, "unknown", 0.0, False, center)

        bx, by, bw, bh = parse_view_box_attr(root.get("viewBox")) or DEFAULT_BOX
        bbox_center = Point(bx + bw / 2, by + bh / 2)
        shape_type = detect_shape_type(root)

        centroid = bbox_center
        use_centroid = False
        confidence = 0.0

        if shape_type == "polygon":
            polygon = next((el for el in root.iter() if _strip_ns(el.tag) == "polygon"), None)
            pts = _pairs(polygon.get("points", "")) if polygon is not None else []
            if pts:
                centroid = polygon_centroid(pts)
                use_centroid = True
                confidence = POLYGON_CONFIDENCE
        elif shape_type == "complex-path":
            data = [el.get("d") for el in root.iter() if _strip_ns(el.tag) == "path" and el.get("d")]
            result = multi_path_centroid(data)
            if result is None:
                pts = sample_path_points(data[0])
                if len(pts) >= 2:
                    result = polygon_centroid(pts), SINGLE_PATH_CONFIDENCE
            if result is not None:
                centroid, confidence = result
                use_centroid = True
        else:
            confidence = BASIC_SHAPE_CONFIDENCE

        return CentroidResult(centroid.x, centroid.y, shape_type, confidence, use_centroid, bbox_center)

    def should_use_centroid_origin(self, svg_markup: str) -> bool:
        result = self.calculate_centroid(svg_markup)
        return result.use_centroid and result.confidence > USE_CENTROID_MIN_CONFIDENCE


def _pairs(points: str) -> List[Tuple[float, float]]:
    """Parse a polygon ``points`` attribute with any comma/space mix."""
    values = [v for v in re.split(r"[,\s]+", points.strip()) if v]
    pairs = []
    for k in range(0, len(values) - 1, 2):
        try:
            x, y = float(values[k]), float(values[k + 1])
        except ValueError:
            continue
        if math.isfinite(x) and math.isfinite(y):
            pairs.append((x, y))
    return pairs
