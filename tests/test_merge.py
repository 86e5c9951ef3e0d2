"""Tests for merge.py: three-tier precedence, fonts and asset resolution."""
from __future__ import annotations

import pytest

from stickerkit.assets import InMemoryAssetStore
from stickerkit.fonts import StaticFontRegistry
from stickerkit.merge import effective_overrides, index_overrides, merge_layers
from stickerkit.models import LayerOverride, Point
from stickerkit.normalizer import normalize_template


def _by_id(result):
    return {layer.id: layer for layer in result.layers}


# ─────────────────────────────────────────────────────────
# Precedence
# ─────────────────────────────────────────────────────────


class TestPrecedence:
    def test_template_defaults(self, badge_template):
        merged = _by_id(merge_layers(badge_template))
        assert merged["title"].record.font_size == 16.0
        assert merged["title"].record == badge_template.layer("title")

    def test_url_override(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "title", "fontSize": 24}]))
        assert merged["title"].record.font_size == 24.0

    def test_live_beats_url(self, badge_template):
        merged = _by_id(merge_layers(
            badge_template,
            [{"id": "title", "fontSize": 24}],
            [{"id": "title", "fontSize": 30}],
        ))
        assert merged["title"].record.font_size == 30.0

    def test_cleared_field_reverts_to_default(self, badge_template):
        merged = _by_id(merge_layers(badge_template, None, [{"id": "title", "fontSize": None}]))
        assert merged["title"].record.font_size == 16.0

    def test_cleared_live_field_falls_through_to_url(self, badge_template):
        merged = _by_id(merge_layers(
            badge_template,
            [{"id": "title", "fontSize": 24}],
            [{"id": "title", "fontSize": None}],
        ))
        assert merged["title"].record.font_size == 24.0

    def test_string_override_coerced(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "title", "fontSize": "22"}]))
        assert merged["title"].record.font_size == 22.0

    def test_uncoercible_override_ignored(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "title", "fontSize": "big"}]))
        assert merged["title"].record.font_size == 16.0

    def test_unmergeable_field_ignored(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "bg", "width": 10, "fillColor": "#00f"}]))
        assert merged["bg"].record.width == 300.0
        assert merged["bg"].record.fill_color == "#00f"

    def test_unknown_layer_ids_ignored(self, badge_template):
        result = merge_layers(badge_template, [{"id": "ghost", "text": "boo"}])
        assert [layer.id for layer in result.layers] == badge_template.layer_ids()

    def test_mapping_input(self, badge_template):
        merged = _by_id(merge_layers(badge_template, {"title": {"text": "Mapped"}}))
        assert merged["title"].record.text == "Mapped"

    def test_layer_override_objects(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [LayerOverride("title", {"text": "Obj"})]))
        assert merged["title"].record.text == "Obj"

    def test_renamed_override_keys(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "title", "textColor": "#f00"}]))
        assert merged["title"].record.font_color == "#f00"

    def test_requires_template(self):
        with pytest.raises(TypeError):
            merge_layers({"id": "not-a-template"})


# ─────────────────────────────────────────────────────────
# Derived geometry
# ─────────────────────────────────────────────────────────


class TestGeometry:
    def test_shape_position_and_path(self, badge_template):
        bg = _by_id(merge_layers(badge_template))["bg"]
        assert bg.position == Point(200.0, 150.0)
        assert bg.path.startswith("M70,50 ")

    def test_text_position(self, badge_template):
        title = _by_id(merge_layers(badge_template))["title"]
        assert title.position == Point(200.0, 120.0)

    def test_svg_image_position_left_to_transforms(self, badge_template):
        assert _by_id(merge_layers(badge_template))["icon"].position is None


# ─────────────────────────────────────────────────────────
# Fonts
# ─────────────────────────────────────────────────────────


class TestFonts:
    def test_font_override(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "title", "font": "Roboto"}],
                                     font_registry=StaticFontRegistry()))
        assert merged["title"].record.font_family == "Roboto"
        assert merged["title"].font.family == "Roboto"

    def test_unknown_font_falls_through(self, badge_template, caplog):
        with caplog.at_level("WARNING", logger="stickerkit.merge"):
            merged = _by_id(merge_layers(badge_template, [{"id": "title", "font": "Comic Papyrus"}],
                                         font_registry=StaticFontRegistry()))
        assert merged["title"].record.font_family == "Inter"
        assert merged["title"].font.family == "Inter"
        assert "Comic Papyrus" in caplog.text

    def test_unknown_live_font_uses_url_font(self, badge_template):
        merged = _by_id(merge_layers(
            badge_template,
            [{"id": "title", "fontFamily": "Lato"}],
            [{"id": "title", "font": "Nope"}],
            font_registry=StaticFontRegistry(),
        ))
        assert merged["title"].record.font_family == "Lato"

    def test_no_registry_keeps_default(self, badge_template):
        merged = _by_id(merge_layers(badge_template, [{"id": "title", "font": "Roboto"}]))
        assert merged["title"].record.font_family == "Inter"
        assert merged["title"].font is None


# ─────────────────────────────────────────────────────────
# Assets
# ─────────────────────────────────────────────────────────


class TestAssets:
    def test_user_asset_from_store(self, badge_template):
        store = InMemoryAssetStore()
        asset_id = store.add_svg('<svg viewBox="0 0 10 10"><circle r="5"/></svg>')
        result = merge_layers(badge_template, [{"id": "icon", "svgImageId": asset_id}],
                              asset_store=store)
        icon = _by_id(result)["icon"]
        assert icon.record.svg_image_id == asset_id
        assert icon.record.svg_content == '<svg viewBox="0 0 10 10"><circle r="5"/></svg>'
        assert result.missing_assets == ()

    def test_missing_user_asset_flagged(self, badge_template, caplog):
        with caplog.at_level("WARNING", logger="stickerkit.merge"):
            result = merge_layers(badge_template, [{"id": "icon", "svgImageId": "user-svg-deadbeef"}],
                                  asset_store=InMemoryAssetStore())
        icon = _by_id(result)["icon"]
        assert icon.missing_asset
        assert icon.record.svg_content == badge_template.layer("icon").svg_content
        assert result.missing_assets == ("icon",)
        assert "user-svg-deadbeef" in caplog.text

    def test_library_icon_swap(self, badge_template):
        store = InMemoryAssetStore()
        store.add_library_svg("heart", "<svg><path d='M0 0'/></svg>")
        icon = _by_id(merge_layers(badge_template, [{"id": "icon", "svgId": "heart"}],
                                   asset_store=store))["icon"]
        assert icon.record.svg_content == "<svg><path d='M0 0'/></svg>"

    def test_explicit_content_wins(self, badge_template):
        icon = _by_id(merge_layers(
            badge_template,
            [{"id": "icon", "svgImageId": "user-svg-deadbeef", "svgContent": "<svg/>"}],
            asset_store=InMemoryAssetStore(),
        ))["icon"]
        assert icon.record.svg_content == "<svg/>"
        assert not icon.missing_asset

    def test_override_content_sanitized(self, badge_template):
        icon = _by_id(merge_layers(badge_template, [{
            "id": "icon",
            "svgContent": '<svg onload="steal()"><script>alert(1)</script><circle r="5"/></svg>',
        }]))["icon"]
        assert "script" not in icon.record.svg_content
        assert "onload" not in icon.record.svg_content
        assert "<circle r=\"5\"/>" in icon.record.svg_content

    def test_unusable_override_content_ignored(self, badge_template, caplog):
        with caplog.at_level("WARNING", logger="stickerkit.merge"):
            icon = _by_id(merge_layers(
                badge_template, [{"id": "icon", "svgContent": "<div>not svg</div>"}],
            ))["icon"]
        assert icon.record.svg_content == badge_template.layer("icon").svg_content
        assert "svgContent" in caplog.text


# ─────────────────────────────────────────────────────────
# Override collapsing
# ─────────────────────────────────────────────────────────


class TestEffectiveOverrides:
    def test_combines_tiers(self, badge_template):
        result = effective_overrides(
            [{"id": "title", "fontSize": 24, "text": "url"}],
            [{"id": "title", "fontSize": None, "fontColor": "#f00"}],
            badge_template,
        )
        assert result == [LayerOverride("title", {"text": "url", "font_color": "#f00"})]

    def test_template_order_and_unknown_dropped(self, badge_template):
        result = effective_overrides(
            [{"id": "icon", "scale": 2}, {"id": "ghost", "text": "x"}],
            [{"id": "bg", "fillColor": "#000"}],
            badge_template,
        )
        assert [o.id for o in result] == ["bg", "icon"]

    def test_fully_cleared_layer_dropped(self):
        assert effective_overrides([{"id": "a", "text": "x"}], [{"id": "a", "text": None}]) == []

    def test_index_merges_duplicates(self):
        indexed = index_overrides([{"id": "a", "text": "x"}, {"id": "a", "dy": 2}])
        assert indexed["a"].fields == {"text": "x", "dy": 2}


def test_legacy_template_merges_like_current(render_settings):
    legacy = normalize_template({
        "id": "l", "name": "L", "description": "", "category": "c",
        "shapes": [], "textInputs": [{"id": "t", "default": "A", "fontSize": 12}],
    }, render_settings)
    merged = _by_id(merge_layers(legacy, [{"id": "t", "text": "B"}]))
    assert merged["t"].record.text == "B"
    assert merged["t"].record.font_size == 12.0
