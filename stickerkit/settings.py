"""
settings.py

Persistent settings management for stickerkit.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/stickerkit/settings.toml
    - macOS: ~/Library/Application Support/stickerkit/settings.toml
    - Linux: ~/.config/stickerkit/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import platformdirs
import tomli_w

APP_NAME = "stickerkit"

log = logging.getLogger(__name__)

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def reset_settings() -> None:
    """Drop the singleton so the next ``get_settings()`` reloads from disk."""
    global _settings_manager
    _settings_manager = None


# =============================================================================
# Render Settings
# =============================================================================

def _positive(section: Dict[str, Any], key: str, default: float) -> float:
    """Read a size that must be a positive number."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
        log.warning("Ignoring invalid %s = %r in settings", key, value)
        return default
    return value


@dataclass
class RenderSettings:
    """Geometry defaults used by the normalizer and transform compiler.

    Defaults:
        default_viewbox_width: 500.0
        default_viewbox_height: 400.0
        template_padding: 20.0
        min_viewbox_width: 400.0
        min_viewbox_height: 400.0
        intrinsic_box_size: 24.0
        default_image_size: 24.0
        centroid_confidence_threshold: 0.7
        default_line_height: 1.2
    """
    default_viewbox_width: float = 500.0     # Default: 500 units
    default_viewbox_height: float = 400.0    # Default: 400 units
    template_padding: float = 20.0           # Padding around computed viewBoxes
    min_viewbox_width: float = 400.0         # Computed viewBoxes never shrink below this
    min_viewbox_height: float = 400.0
    intrinsic_box_size: float = 24.0         # Icon authoring box when an SVG has no viewBox
    default_image_size: float = 24.0         # svgImage width/height when the layer has none
    centroid_confidence_threshold: float = 0.7
    default_line_height: float = 1.2         # Multi-line text spacing in em


# =============================================================================
# URL Sync Settings
# =============================================================================

@dataclass
class SyncSettings:
    """Debounced URL synchronisation.

    Defaults:
        url_sync_delay_ms: 500
    """
    url_sync_delay_ms: int = 500   # Default: 500 milliseconds


# =============================================================================
# Logging Settings
# =============================================================================

@dataclass
class LoggingSettings:
    """Logging output.

    Defaults:
        level: "WARNING"
        log_file: "" (console only)
        trace: False
    """
    level: str = "WARNING"
    log_file: str = ""
    trace: bool = False


# =============================================================================
# Template Settings
# =============================================================================

@dataclass
class TemplateSettings:
    """Where templates are loaded from.

    Defaults:
        directory: "" (<config dir>/templates)
        default_template_id: "" (first template by category/name)
    """
    directory: str = ""
    default_template_id: str = ""


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        render: Geometry defaults.
        sync: URL sync timing.
        logging: Log level and destination.
        templates: Template source directory.
    """
    render: RenderSettings = field(default_factory=RenderSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    templates: TemplateSettings = field(default_factory=TemplateSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Union[str, Path]] = None):
        if settings_dir is None:
            self.settings_dir = Path(platformdirs.user_config_dir(app_name))
        else:
            self.settings_dir = Path(settings_dir)
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
            return AppSettings()

        return self._parse_toml(data)

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        r = data.get("render", {})
        rs = settings.render
        rs.default_viewbox_width = r.get("default_viewbox_width", rs.default_viewbox_width)
        rs.default_viewbox_height = r.get("default_viewbox_height", rs.default_viewbox_height)
        rs.template_padding = r.get("template_padding", rs.template_padding)
        rs.min_viewbox_width = r.get("min_viewbox_width", rs.min_viewbox_width)
        rs.min_viewbox_height = r.get("min_viewbox_height", rs.min_viewbox_height)
        rs.intrinsic_box_size = _positive(r, "intrinsic_box_size", rs.intrinsic_box_size)
        rs.default_image_size = _positive(r, "default_image_size", rs.default_image_size)
        rs.centroid_confidence_threshold = r.get(
            "centroid_confidence_threshold", rs.centroid_confidence_threshold)
        rs.default_line_height = r.get("default_line_height", rs.default_line_height)

        s = data.get("sync", {})
        settings.sync.url_sync_delay_ms = s.get("url_sync_delay_ms", settings.sync.url_sync_delay_ms)

        lg = data.get("logging", {})
        settings.logging.level = lg.get("level", settings.logging.level)
        settings.logging.log_file = lg.get("log_file", settings.logging.log_file)
        settings.logging.trace = lg.get("trace", settings.logging.trace)

        t = data.get("templates", {})
        settings.templates.directory = t.get("directory", settings.templates.directory)
        settings.templates.default_template_id = t.get(
            "default_template_id", settings.templates.default_template_id)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "render": {
                "default_viewbox_width": s.render.default_viewbox_width,
                "default_viewbox_height": s.render.default_viewbox_height,
                "template_padding": s.render.template_padding,
                "min_viewbox_width": s.render.min_viewbox_width,
                "min_viewbox_height": s.render.min_viewbox_height,
                "intrinsic_box_size": s.render.intrinsic_box_size,
                "default_image_size": s.render.default_image_size,
                "centroid_confidence_threshold": s.render.centroid_confidence_threshold,
                "default_line_height": s.render.default_line_height,
            },
            "sync": {
                "url_sync_delay_ms": s.sync.url_sync_delay_ms,
            },
            "logging": {
                "level": s.logging.level,
                "log_file": s.logging.log_file,
                "trace": s.logging.trace,
            },
            "templates": {
                "directory": s.templates.directory,
                "default_template_id": s.templates.default_template_id,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        return tomli_w.dumps(self._to_toml_dict())

    def get_templates_dir(self) -> Path:
        """Get the resolved template directory path.

        Returns:
            Path to the template directory. Falls back to
            ``<settings_dir>/templates`` if the setting is empty.
        """
        if self.settings.templates.directory:
            return Path(self.settings.templates.directory)
        return self.settings_dir / "templates"

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
