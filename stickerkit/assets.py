"""
assets.py

Content-addressed ids for user-uploaded assets and an in-memory store.

User uploads get ``user-svg-<hash>`` / ``user-font-<hash>`` ids where the
hash is the first 8 hex characters of the SHA-256 of the normalized
content, so the same upload always yields the same id in a share URL.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Dict, Optional, Protocol, Union

from stickerkit.errors import HashCollisionError, InvalidSvgError
from stickerkit.svg_validation import MAX_SVG_SIZE_BYTES, validate_and_sanitize_svg

log = logging.getLogger(__name__)

SVG_PREFIX = "user-svg-"
FONT_PREFIX = "user-font-"
ASSET_HASH_LENGTH = 8

_PREFIXES = {"svg": SVG_PREFIX, "font": FONT_PREFIX}


def normalize_svg_for_hashing(svg_content: str) -> str:
    """Collapse formatting differences that do not change the drawing."""
    s = re.sub(r">\s+<", "><", svg_content)
    s = re.sub(r"\s+", " ", s)
    s = re.sub(r"\s*=\s*", "=", s)
    s = re.sub(r"\s+>", ">", s)
    s = re.sub(r"<!--.*?-->", "", s, flags=re.DOTALL)
    return s.strip()


def generate_asset_hash(content: Union[str, bytes]) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
    return hashlib.sha256(data).hexdigest()[:ASSET_HASH_LENGTH]


def create_asset_id(asset_hash: str, asset_type: str) -> str:
    try:
        return _PREFIXES[asset_type] + asset_hash
    except KeyError:
        raise ValueError(f"Unknown asset type {asset_type!r}") from None


def generate_asset_id(content: Union[str, bytes], asset_type: str) -> str:
    """Hash *content* (normalized first for SVG) into a namespaced id."""
    if asset_type == "svg":
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        content = normalize_svg_for_hashing(content)
    return create_asset_id(generate_asset_hash(content), asset_type)


def is_user_svg_id(asset_id: Optional[str]) -> bool:
    return isinstance(asset_id, str) and asset_id.startswith(SVG_PREFIX)


def is_user_font_id(asset_id: Optional[str]) -> bool:
    return isinstance(asset_id, str) and asset_id.startswith(FONT_PREFIX)


def is_user_asset_id(asset_id: Optional[str]) -> bool:
    return is_user_svg_id(asset_id) or is_user_font_id(asset_id)


def extract_hash_from_asset_id(asset_id: str) -> Optional[str]:
    if is_user_svg_id(asset_id):
        return asset_id[len(SVG_PREFIX):]
    if is_user_font_id(asset_id):
        return asset_id[len(FONT_PREFIX):]
    return None


class UserAssetStore(Protocol):
    def get_asset_content(self, asset_id: str) -> Optional[str]: ...

    def is_user_asset_id(self, asset_id: str) -> bool: ...


class InMemoryAssetStore:
    """Preloaded asset contents keyed by id.

    Holds both user uploads (content-addressed ids) and library icons
    (registered under their catalogue ids).
    """

    def __init__(self, max_svg_bytes: int = MAX_SVG_SIZE_BYTES):
        self.max_svg_bytes = max_svg_bytes
        self._svgs: Dict[str, str] = {}
        self._normalized: Dict[str, str] = {}
        self._fonts: Dict[str, bytes] = {}

    def add_svg(self, svg_content: str) -> str:
        """Sanitize and store an uploaded SVG and return its id.

        Scripts and event handlers are stripped before hashing.
        Re-uploading identical (after normalization) content returns the
        existing id.

        Raises:
            InvalidSvgError: If the markup is malformed or too large.
            HashCollisionError: If the id already holds different content.
        """
        sanitized, errors = validate_and_sanitize_svg(svg_content, self.max_svg_bytes)
        if sanitized is None:
            log.warning("Rejecting SVG upload: %s", "; ".join(errors))
            raise InvalidSvgError(errors)
        svg_content = sanitized
        normalized = normalize_svg_for_hashing(svg_content)
        asset_id = create_asset_id(generate_asset_hash(normalized), "svg")
        existing = self._normalized.get(asset_id)
        if existing is not None and existing != normalized:
            log.error("Rejecting upload: %s already holds different content", asset_id)
            raise HashCollisionError(asset_id)
        self._svgs[asset_id] = svg_content
        self._normalized[asset_id] = normalized
        return asset_id

    def add_font(self, font_data: bytes) -> str:
        """Store uploaded font bytes and return their id.

        Raises:
            HashCollisionError: If the id already holds different bytes.
        """
        asset_id = create_asset_id(generate_asset_hash(font_data), "font")
        existing = self._fonts.get(asset_id)
        if existing is not None and existing != font_data:
            raise HashCollisionError(asset_id)
        self._fonts[asset_id] = bytes(font_data)
        return asset_id

    def add_library_svg(self, svg_id: str, svg_content: str) -> None:
        """Register a library icon under its catalogue id."""
        if is_user_asset_id(svg_id):
            raise ValueError(f"Library ids may not use a user asset prefix: {svg_id}")
        self._svgs[svg_id] = svg_content

    def get_asset_content(self, asset_id: str) -> Optional[str]:
        return self._svgs.get(asset_id)

    def get_font_data(self, asset_id: str) -> Optional[bytes]:
        return self._fonts.get(asset_id)

    def is_user_asset_id(self, asset_id: str) -> bool:
        return is_user_asset_id(asset_id)

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._svgs or asset_id in self._fonts
