"""Tests for pipeline.py: the renderer-facing projection."""
from __future__ import annotations

import pytest

from stickerkit.assets import InMemoryAssetStore
from stickerkit.fonts import StaticFontRegistry
from stickerkit.normalizer import normalize_template
from stickerkit.pipeline import calculate_line_dy, render_template, split_lines


def _layer(result, layer_id):
    return next(l for l in result.layers if l.id == layer_id)


# ─────────────────────────────────────────────────────────
# Whole template
# ─────────────────────────────────────────────────────────


class TestRenderTemplate:
    def test_layer_order_and_types(self, badge_template, render_settings):
        result = render_template(badge_template, settings=render_settings)
        assert [(l.id, l.type) for l in result.layers] == [
            ("bg", "shape"), ("arc", "shape"), ("title", "text"),
            ("curved", "text"), ("icon", "svgImage"),
        ]

    def test_exactly_one_group(self, badge_template, render_settings):
        for layer in render_template(badge_template, settings=render_settings).layers:
            groups = [g for g in (layer.shape, layer.text, layer.svg_image) if g is not None]
            assert len(groups) == 1

    def test_tables(self, badge_template, render_settings):
        result = render_template(badge_template, settings=render_settings)
        assert list(result.clip_paths) == ["bg"]
        assert result.text_paths == {"arc": "M50,150 Q200,20 350,150"}
        assert result.missing_assets == ()

    def test_deterministic(self, badge_template, render_settings):
        overrides = [{"id": "title", "text": "Same"}, {"id": "icon", "rotation": 10}]
        assert (render_template(badge_template, overrides, settings=render_settings)
                == render_template(badge_template, overrides, settings=render_settings))

    def test_to_dict(self, badge_template, render_settings):
        d = render_template(badge_template, settings=render_settings).to_dict()
        assert set(d) == {"layers", "clipPaths", "textPaths", "missingAssets"}
        assert d["layers"][2]["textInput"]["text"] == "Hello"
        assert d["layers"][4]["svgImage"]["svgImageId"] == "star"


# ─────────────────────────────────────────────────────────
# Groups
# ─────────────────────────────────────────────────────────


class TestShapeGroup:
    def test_fields(self, badge_template, render_settings):
        shape = _layer(render_template(badge_template, settings=render_settings), "bg").shape
        assert shape["subtype"] == "rect"
        assert shape["path"].startswith("M70,50 ")
        assert shape["fillColor"] == "#ffcc00"
        assert shape["strokeColor"] == "#000000"
        assert shape["strokeWidth"] == 2.0
        assert "transform" not in shape

    def test_structural_path_still_rendered(self, badge_template, render_settings):
        arc = _layer(render_template(badge_template, settings=render_settings), "arc").shape
        assert arc["path"] == "M50,150 Q200,20 350,150"


class TestTextGroup:
    def test_fields(self, badge_template, render_settings):
        text = _layer(render_template(badge_template, settings=render_settings), "title").text
        assert text["text"] == "Hello"
        assert (text["x"], text["y"]) == (200.0, 120.0)
        assert text["fontFamily"] == "Inter"
        assert text["fontSize"] == 16.0
        assert text["fontColor"] == "#333333"
        assert text["transform"] == "translate(200, 120)"
        assert text["clipPath"] == "url(#clip-bg)"
        assert "strokeColor" not in text

    def test_font_css_with_registry(self, badge_template, render_settings):
        result = render_template(badge_template, [{"id": "title", "font": "Lora"}],
                                 font_registry=StaticFontRegistry(), settings=render_settings)
        assert _layer(result, "title").text["fontFamily"] == '"Lora", Georgia, serif'

    def test_text_path(self, badge_template, render_settings):
        text = _layer(render_template(badge_template, settings=render_settings), "curved").text
        assert text["textPath"] == "arc"
        assert text["startOffset"] == "50%"
        assert "lines" not in text

    def test_stroke_only_with_width(self, badge_template, render_settings):
        result = render_template(badge_template, [
            {"id": "title", "strokeColor": "#fff", "strokeWidth": 0},
            {"id": "curved", "strokeColor": "#fff", "strokeWidth": 1.5},
        ], settings=render_settings)
        assert "strokeColor" not in _layer(result, "title").text
        assert _layer(result, "curved").text["strokeWidth"] == 1.5

    def test_multi_line(self, badge_template, render_settings):
        result = render_template(badge_template, [{"id": "title", "text": "a\nb", "fontSize": 10}],
                                 settings=render_settings)
        text = _layer(result, "title").text
        assert text["lineHeight"] == 1.2
        assert text["lines"] == [{"text": "a", "dy": -6.0}, {"text": "b", "dy": 12.0}]

    def test_text_path_ignores_dangling_reference(self, render_settings):
        tpl = normalize_template({"id": "x", "name": "X", "description": "", "category": "c",
                                  "layers": [{"id": "t", "type": "text", "text": "hi",
                                              "textPath": "missing"}]}, render_settings)
        text = render_template(tpl, settings=render_settings).layers[0].text
        assert "textPath" not in text


class TestSvgImageGroup:
    def test_fields(self, badge_template, render_settings):
        svg = _layer(render_template(badge_template, settings=render_settings), "icon").svg_image
        assert svg["svgImageId"] == "star"
        assert svg["svgContent"].startswith("<svg")
        assert svg["transform"] == "translate(200, 200) scale(2) translate(-12, -12)"
        assert svg["innerTransform"].startswith("translate(12, 12)")
        assert svg["transformOrigin"] == {"x": 12.0, "y": 12.0}
        assert svg["pivot"] == {"x": 200.0, "y": 200.0}
        assert "missingAsset" not in svg

    def test_missing_asset(self, badge_template, render_settings):
        result = render_template(badge_template, [{"id": "icon", "svgImageId": "user-svg-0badf00d"}],
                                 asset_store=InMemoryAssetStore(), settings=render_settings)
        assert result.missing_assets == ("icon",)
        assert _layer(result, "icon").svg_image["missingAsset"] is True


# ─────────────────────────────────────────────────────────
# Multi-line helpers
# ─────────────────────────────────────────────────────────


class TestLines:
    def test_split(self):
        assert split_lines("a\nb\n") == ["a", "b", ""]

    @pytest.mark.parametrize("index,total,expected", [
        (0, 1, 0.0),
        (0, 3, -20.0),
        (1, 3, 20.0),
        (2, 3, 20.0),
    ])
    def test_line_dy(self, index, total, expected):
        assert calculate_line_dy(index, total, 10, 2) == expected
