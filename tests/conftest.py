"""Shared fixtures: an isolated settings directory and a sample template."""
from __future__ import annotations

import copy

import platformdirs
import pytest

from stickerkit.normalizer import normalize_template
from stickerkit.settings import RenderSettings, reset_settings

STAR_SVG = '<svg viewBox="0 0 24 24"><path d="M12 2 L22 22 L2 22 Z"/></svg>'

BADGE_RAW = {
    "id": "badge",
    "name": "Badge",
    "description": "Rounded badge with a title, curved caption and icon",
    "category": "badges",
    "width": 400,
    "height": 300,
    "layers": [
        {
            "id": "bg", "type": "shape", "subtype": "rect",
            "position": {"x": "50%", "y": "50%"},
            "width": 300, "height": 200, "rx": 20,
            "fillColor": "#ffcc00", "strokeColor": "#000000", "strokeWidth": 2,
        },
        {
            "id": "arc", "type": "shape", "subtype": "path",
            "path": "M50,150 Q200,20 350,150",
        },
        {
            "id": "title", "type": "text", "text": "Hello",
            "position": {"x": "50%", "y": "40%"},
            "fontFamily": "Inter", "fontSize": 16, "fontColor": "#333333",
            "clip": "bg",
        },
        {
            "id": "curved", "type": "text", "text": "Around the arc",
            "textPath": "arc", "startOffset": "50%",
        },
        {
            "id": "icon", "type": "svgImage", "svgImageId": "star",
            "svgContent": STAR_SVG,
            "position": {"x": 200, "y": 200}, "width": 48, "height": 48,
        },
    ],
}


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep the global settings manager away from the real config dir."""
    monkeypatch.setattr(platformdirs, "user_config_dir",
                        lambda app_name, *a, **kw: str(tmp_path / "config" / app_name))
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def render_settings():
    return RenderSettings()


@pytest.fixture
def badge_raw():
    return copy.deepcopy(BADGE_RAW)


@pytest.fixture
def badge_template(badge_raw, render_settings):
    template = normalize_template(badge_raw, render_settings)
    assert template is not None
    return template
