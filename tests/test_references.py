"""Tests for references.py: clip-path and textPath tables."""
from __future__ import annotations

import pytest

from stickerkit.errors import LayerReferenceError
from stickerkit import references
from stickerkit.merge import merge_layers
from stickerkit.normalizer import normalize_template
from stickerkit.references import (
    clip_path_url,
    clip_url_for,
    editable_layers,
    find_reference_target,
    index_layers,
    is_structural_layer,
    resolve_clip_paths,
    resolve_text_paths,
)


def _layers(template, *overrides):
    return merge_layers(template, list(overrides) or None).layers


def _template(layers, render_settings):
    return normalize_template({"id": "r", "name": "R", "description": "", "category": "c",
                               "width": 200, "height": 200, "layers": layers}, render_settings)


class TestClipPaths:
    def test_clip_compiled_at_origin(self, badge_template):
        table = resolve_clip_paths(_layers(badge_template))
        assert table == {
            "bg": "M-130,-100 L130,-100 Q150,-100 150,-80 L150,80 Q150,100 130,100 "
                  "L-130,100 Q-150,100 -150,80 L-150,-80 Q-150,-100 -130,-100 Z",
        }

    def test_clip_url(self, badge_template):
        layers = _layers(badge_template)
        table = resolve_clip_paths(layers)
        title = next(l for l in layers if l.id == "title")
        assert clip_url_for(title, table) == "url(#clip-bg)"
        assert clip_path_url("x") == "url(#clip-x)"

    def test_dangling_and_incompatible_omitted(self, render_settings):
        tpl = _template([
            {"id": "oval", "type": "shape", "subtype": "ellipse"},
            {"id": "c", "type": "shape", "subtype": "circle", "width": 20},
            {"id": "a", "type": "text", "clip": "nope"},
            {"id": "b", "type": "text", "clip": "oval"},
            {"id": "d", "type": "text", "clip": "c"},
            {"id": "e", "type": "text", "clip": "a"},
        ], render_settings)
        table = resolve_clip_paths(_layers(tpl))
        assert list(table) == ["c"]
        assert table["c"] == "M-10,0 A10,10 0 1,0 10,0 A10,10 0 1,0 -10,0 Z"

    def test_first_reference_order(self, render_settings):
        tpl = _template([
            {"id": "p", "type": "shape", "subtype": "polygon", "points": "0,-1 1,1 -1,1"},
            {"id": "r", "type": "shape", "subtype": "rect", "width": 2, "height": 2},
            {"id": "t1", "type": "text", "clip": "r"},
            {"id": "t2", "type": "text", "clip": "p"},
            {"id": "t3", "type": "text", "clip": "r"},
        ], render_settings)
        assert list(resolve_clip_paths(_layers(tpl))) == ["r", "p"]


class TestTextPaths:
    def test_literal_path_data(self, badge_template):
        assert resolve_text_paths(_layers(badge_template)) == {"arc": "M50,150 Q200,20 350,150"}

    def test_non_path_target_omitted(self, render_settings):
        tpl = _template([
            {"id": "r", "type": "shape", "subtype": "rect"},
            {"id": "t", "type": "text", "textPath": "r"},
            {"id": "u", "type": "text", "textPath": "missing"},
        ], render_settings)
        assert resolve_text_paths(_layers(tpl)) == {}


class TestStrictLookup:
    def test_finds_target(self, badge_template):
        assert find_reference_target(_layers(badge_template), "clip", "bg").id == "bg"

    def test_missing_raises(self, badge_template):
        with pytest.raises(LayerReferenceError) as exc:
            find_reference_target(_layers(badge_template), "clip", "nothing")
        assert exc.value.kind == "clip"
        assert exc.value.ref_id == "nothing"

    def test_wrong_kind_raises(self, badge_template):
        with pytest.raises(LayerReferenceError):
            find_reference_target(_layers(badge_template), "textPath", "bg")

    def test_accepts_prebuilt_index(self, badge_template):
        by_id = index_layers(_layers(badge_template))
        assert find_reference_target(by_id, "textPath", "arc").id == "arc"

    def test_tables_index_layers_once(self, render_settings, monkeypatch):
        layers = [{"id": "frame", "type": "shape", "subtype": "circle", "width": 80},
                  {"id": "guide", "type": "shape", "subtype": "path", "path": "M0,0 L10,0"}]
        layers += [{"id": f"t{i}", "type": "text", "clip": "frame", "textPath": "guide"}
                   for i in range(50)]
        merged = _layers(_template(layers, render_settings))
        calls = []
        original = references.index_layers
        monkeypatch.setattr(references, "index_layers", lambda ls: calls.append(1) or original(ls))
        assert list(resolve_clip_paths(merged)) == ["frame"]
        assert resolve_text_paths(merged) == {"guide": "M0,0 L10,0"}
        assert len(calls) == 2


class TestEditable:
    def test_structural_path_hidden(self, badge_template):
        layers = _layers(badge_template)
        assert [l.id for l in editable_layers(layers)] == ["bg", "title", "curved", "icon"]

    def test_is_structural(self, badge_template):
        by_id = {l.id: l for l in _layers(badge_template)}
        assert is_structural_layer(by_id["arc"])
        assert not is_structural_layer(by_id["bg"])
        assert not is_structural_layer(by_id["curved"])
