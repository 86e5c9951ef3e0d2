"""
templates.py

Template provider backed by a directory of YAML or JSON files.

Each template lives in ``<id>.yaml``, ``<id>.yml`` or ``<id>.json``.
Loading is synchronous; callers load the template before running the
pipeline.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

import yaml

from stickerkit.models import Template
from stickerkit.normalizer import normalize_template
from stickerkit.settings import RenderSettings

log = logging.getLogger(__name__)

TEMPLATE_SUFFIXES = (".yaml", ".yml", ".json")


class TemplateProvider(Protocol):
    def load_template(self, template_id: str) -> Optional[Template]: ...

    def load_all_templates(self) -> List[Template]: ...


def parse_template_text(text: str, suffix: str = ".yaml"):
    """Parse template source; JSON for ``.json``, YAML otherwise."""
    if suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


class DirectoryTemplateProvider:
    """Loads and caches normalized templates from a directory.

    Args:
        directory: Folder holding the template files.
        settings: Geometry defaults handed to the normalizer.
        default_template_id: Template used when a URL names an unknown one;
            the first template by (category, name) when empty.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        settings: Optional[RenderSettings] = None,
        default_template_id: str = "",
    ):
        self.directory = Path(directory)
        self.settings = settings
        self.default_template_id = default_template_id
        self._cache: Dict[str, Optional[Template]] = {}

    def _find_file(self, template_id: str) -> Optional[Path]:
        if not template_id or "/" in template_id or "\\" in template_id or template_id.startswith("."):
            return None
        for suffix in TEMPLATE_SUFFIXES:
            candidate = self.directory / f"{template_id}{suffix}"
            if candidate.is_file():
                return candidate
        return None

    def _load_file(self, path: Path) -> Optional[Template]:
        try:
            raw = parse_template_text(path.read_text(encoding="utf-8"), path.suffix.lower())
        except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
            log.error("Cannot read template %s: %s", path, e)
            return None
        template = normalize_template(raw, self.settings)
        if template is None:
            log.error("Skipping invalid template file %s", path)
        return template

    def load_template(self, template_id: str) -> Optional[Template]:
        """Load one template by id.

        Returns:
            The normalized template, or ``None`` when it does not exist,
            cannot be parsed or validated, or declares a different id.
        """
        if template_id in self._cache:
            return self._cache[template_id]
        path = self._find_file(template_id)
        if path is None:
            log.info("Template %s not found in %s", template_id, self.directory)
            return None
        template = self._load_file(path)
        if template is not None and template.id != template_id:
            # share URLs carry the declared id, which must find this file again
            log.error("Skipping template file %s: it declares id %s", path, template.id)
            template = None
        self._cache[template_id] = template
        return template

    def available_template_ids(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        ids = {p.stem for p in self.directory.iterdir()
               if p.is_file() and p.suffix.lower() in TEMPLATE_SUFFIXES}
        return sorted(ids)

    def load_all_templates(self) -> List[Template]:
        """All valid templates sorted by category, then name."""
        templates = [t for t in (self.load_template(i) for i in self.available_template_ids()) if t]
        return sorted(templates, key=lambda t: (t.category, t.name))

    def default_template(self) -> Optional[Template]:
        if self.default_template_id:
            template = self.load_template(self.default_template_id)
            if template is not None:
                return template
        templates = self.load_all_templates()
        return templates[0] if templates else None

    def clear_cache(self) -> None:
        self._cache.clear()
