"""Tests for shape_paths.py: center-anchored shape compilation to path data."""
from __future__ import annotations

import re

import pytest

from stickerkit.models import FlatLayerRecord, LinePosition, Point
from stickerkit.shape_paths import (
    compile_shape_path,
    corner_radii,
    default_triangle_path,
    polygon_path,
    rect_path,
)


def _shape(subtype, **kw) -> FlatLayerRecord:
    return FlatLayerRecord(id="s", type="shape", subtype=subtype, **kw)


# ─────────────────────────────────────────────────────────
# Rectangles
# ─────────────────────────────────────────────────────────


class TestRect:
    def test_rounded_rect_centered(self):
        # 100x40 with rx 10 centered at (100, 50); ry falls back to rx
        layer = _shape("rect", width=100, height=40, rx=10)
        assert compile_shape_path(layer, Point(100, 50)) == (
            "M60,30 L140,30 Q150,30 150,40 L150,60 Q150,70 140,70 "
            "L60,70 Q50,70 50,60 L50,40 Q50,30 60,30 Z"
        )

    def test_plain_rect(self):
        layer = _shape("rect", width=100, height=50)
        assert compile_shape_path(layer, Point(0, 0)) == "M-50,-25 L50,-25 L50,25 L-50,25 Z"

    def test_default_size(self):
        layer = _shape("rect")
        assert compile_shape_path(layer, Point(0, 0)) == "M-50,-50 L50,-50 L50,50 L-50,50 Z"

    def test_zero_width_kept(self):
        layer = _shape("rect", width=0, height=10)
        assert compile_shape_path(layer, Point(0, 0)) == "M0,-5 L0,-5 L0,5 L0,5 Z"

    def test_negative_width_uses_default(self):
        layer = _shape("rect", width=-5, height=10)
        assert compile_shape_path(layer, Point(0, 0)) == "M-50,-5 L50,-5 L50,5 L-50,5 Z"

    def test_fractional_coordinates_not_rounded(self):
        layer = _shape("rect", width=1, height=1)
        assert compile_shape_path(layer, Point(0.5, 0)) == "M0,-0.5 L1,-0.5 L1,0.5 L0,0.5 Z"

    def test_rect_path_helper_matches(self):
        assert rect_path(0, 0, 10, 10) == "M-5,-5 L5,-5 L5,5 L-5,5 Z"


class TestCornerRadii:
    def test_none(self):
        assert corner_radii(None, None, 100, 100) == (0.0, 0.0)

    def test_ry_from_rx(self):
        assert corner_radii(8, None, 100, 100) == (8.0, 8.0)

    def test_rx_from_ry(self):
        assert corner_radii(None, 6, 100, 100) == (6.0, 6.0)

    def test_clamped_to_half_side(self):
        assert corner_radii(100, None, 40, 20) == (20.0, 10.0)


# ─────────────────────────────────────────────────────────
# Curves, polygons, lines
# ─────────────────────────────────────────────────────────


class TestEllipse:
    def test_circle(self):
        layer = _shape("circle", width=100)
        assert compile_shape_path(layer, Point(50, 50)) == (
            "M0,50 A50,50 0 1,0 100,50 A50,50 0 1,0 0,50 Z"
        )

    def test_ellipse_defaults(self):
        layer = _shape("ellipse")
        assert compile_shape_path(layer, Point(0, 0)) == (
            "M-50,0 A50,25 0 1,0 50,0 A50,25 0 1,0 -50,0 Z"
        )


class TestPolygon:
    def test_points_are_center_offsets(self):
        layer = _shape("polygon", points="0,-10 10,10 -10,10")
        assert compile_shape_path(layer, Point(100, 100)) == "M100,90 L110,110 L90,110 Z"

    def test_missing_points_default_triangle(self):
        layer = _shape("polygon")
        assert compile_shape_path(layer, Point(0, 0)) == "M0,-50 L50,25 L-50,25 Z"

    def test_garbage_points_default_triangle(self):
        assert polygon_path(10, 10, "a,b c") == default_triangle_path(10, 10)

    def test_malformed_pairs_skipped(self):
        assert polygon_path(0, 0, "0,0 bad 10,0 5,x 10,10") == "M0,0 L10,0 L10,10 Z"


class TestLine:
    def test_endpoints(self):
        layer = _shape("line")
        assert compile_shape_path(layer, LinePosition(0, 0, 10, 20)) == "M0,0 L10,20"

    def test_point_position_degenerates(self):
        layer = _shape("line")
        assert compile_shape_path(layer, Point(3, 4)) == "M3,4 L3,4"


class TestPathAndFallbacks:
    def test_literal_path(self):
        layer = _shape("path", path="M0,0 C10,10 20,10 30,0")
        assert compile_shape_path(layer, Point(100, 100)) == "M0,0 C10,10 20,10 30,0"

    def test_empty_path_renders_rect(self):
        layer = _shape("path", path="   ")
        assert compile_shape_path(layer, Point(0, 0)) == "M-50,-50 L50,-50 L50,50 L-50,50 Z"

    def test_unknown_subtype_renders_rect(self):
        layer = _shape("hexagon", width=10, height=10)
        assert compile_shape_path(layer, Point(0, 0)) == "M-5,-5 L5,-5 L5,5 L-5,5 Z"


# ─────────────────────────────────────────────────────────
# Determinism across the subtype grid
# ─────────────────────────────────────────────────────────


@pytest.mark.parametrize("subtype", ["rect", "circle", "ellipse", "polygon", "line", "path", None])
@pytest.mark.parametrize("position", [Point(0, 0), Point(123.25, -7.5), LinePosition(1, 2, 3, 4)])
def test_compilation_is_deterministic(subtype, position):
    layer = _shape(subtype, width=40, height=30, rx=4, points="0,-5 5,5 -5,5", path="M0,0 L1,1")
    first = compile_shape_path(layer, position)
    assert first == compile_shape_path(layer, position)
    assert "nan" not in first and "inf" not in first


# ─────────────────────────────────────────────────────────
# Path grammar across sizes and corner radii
# ─────────────────────────────────────────────────────────


_PATH_GRAMMAR = re.compile(r"M(?:[MLAQZ]|-?\d+(?:\.\d+)?|[ ,])*")


@pytest.mark.parametrize("subtype", ["rect", "circle", "ellipse", "polygon", "line"])
@pytest.mark.parametrize("size", [0, 1, 100, 10000])
@pytest.mark.parametrize("rounded", [False, True])
def test_path_grammar(subtype, size, rounded):
    radius = size / 2 if rounded else 0
    layer = _shape(subtype, width=size, height=size, rx=radius, ry=radius)
    path = compile_shape_path(layer, Point(size, size))
    assert path
    assert _PATH_GRAMMAR.fullmatch(path), path
