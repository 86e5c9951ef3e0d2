"""Tests for templates.py: the directory-backed template provider."""
from __future__ import annotations

import json

import pytest
import yaml

from stickerkit.templates import DirectoryTemplateProvider, parse_template_text


def _raw(template_id, name, category, **kw):
    raw = {"id": template_id, "name": name, "description": "", "category": category,
           "layers": [{"id": "t", "type": "text", "text": name}]}
    raw.update(kw)
    return raw


@pytest.fixture
def template_dir(tmp_path, badge_raw):
    (tmp_path / "badge.yaml").write_text(yaml.safe_dump(badge_raw), encoding="utf-8")
    (tmp_path / "alpha.json").write_text(json.dumps(_raw("alpha", "Alpha", "zzz")), encoding="utf-8")
    (tmp_path / "beta.yml").write_text(yaml.safe_dump(_raw("beta", "Beta", "aaa")), encoding="utf-8")
    (tmp_path / "broken.yaml").write_text("id: broken\nlayers: [\n", encoding="utf-8")
    (tmp_path / "invalid.json").write_text(json.dumps({"id": "invalid"}), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    return tmp_path


class TestParseTemplateText:
    def test_yaml(self):
        assert parse_template_text("id: x\nname: y\n") == {"id": "x", "name": "y"}

    def test_json(self):
        assert parse_template_text('{"id": "x"}', ".json") == {"id": "x"}


class TestDirectoryTemplateProvider:
    def test_available_ids(self, template_dir):
        provider = DirectoryTemplateProvider(template_dir)
        assert provider.available_template_ids() == ["alpha", "badge", "beta", "broken", "invalid"]

    def test_load_yaml(self, template_dir, render_settings):
        tpl = DirectoryTemplateProvider(template_dir, render_settings).load_template("badge")
        assert tpl.id == "badge"
        assert tpl.layer_ids() == ["bg", "arc", "title", "curved", "icon"]

    def test_load_json_and_yml(self, template_dir, render_settings):
        provider = DirectoryTemplateProvider(template_dir, render_settings)
        assert provider.load_template("alpha").name == "Alpha"
        assert provider.load_template("beta").name == "Beta"

    def test_cached(self, template_dir, render_settings):
        provider = DirectoryTemplateProvider(template_dir, render_settings)
        assert provider.load_template("badge") is provider.load_template("badge")
        provider.clear_cache()
        assert provider.load_template("badge") is not None

    def test_missing(self, template_dir):
        assert DirectoryTemplateProvider(template_dir).load_template("nope") is None

    @pytest.mark.parametrize("template_id", ["../badge", "sub/badge", ".hidden", ""])
    def test_rejects_path_like_ids(self, template_dir, template_id):
        assert DirectoryTemplateProvider(template_dir).load_template(template_id) is None

    def test_unparseable_file(self, template_dir, caplog):
        with caplog.at_level("ERROR", logger="stickerkit.templates"):
            assert DirectoryTemplateProvider(template_dir).load_template("broken") is None
        assert "broken.yaml" in caplog.text

    def test_invalid_template(self, template_dir, render_settings):
        provider = DirectoryTemplateProvider(template_dir, render_settings)
        assert provider.load_template("invalid") is None

    def test_load_all_sorted(self, template_dir, render_settings):
        templates = DirectoryTemplateProvider(template_dir, render_settings).load_all_templates()
        assert [t.id for t in templates] == ["beta", "badge", "alpha"]

    def test_default_configured(self, template_dir, render_settings):
        provider = DirectoryTemplateProvider(template_dir, render_settings, default_template_id="alpha")
        assert provider.default_template().id == "alpha"

    def test_default_first_by_category(self, template_dir, render_settings):
        provider = DirectoryTemplateProvider(template_dir, render_settings, default_template_id="gone")
        assert provider.default_template().id == "beta"

    def test_declared_id_must_match_filename(self, tmp_path, badge_raw, caplog):
        (tmp_path / "renamed.yaml").write_text(yaml.safe_dump(badge_raw), encoding="utf-8")
        provider = DirectoryTemplateProvider(tmp_path)
        with caplog.at_level("ERROR", logger="stickerkit.templates"):
            assert provider.load_template("renamed") is None
        assert "declares id badge" in caplog.text
        assert provider.load_template("badge") is None
        assert provider.load_all_templates() == []

    def test_missing_directory(self, tmp_path):
        provider = DirectoryTemplateProvider(tmp_path / "absent")
        assert provider.available_template_ids() == []
        assert provider.default_template() is None
