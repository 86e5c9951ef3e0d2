"""
url_codec.py

Encode sticker state into share URLs and back.

Wire format: ``<version>.<payload>`` where payload is the compact JSON of
the state, zlib-compressed and base64url-encoded without padding.  Share
routes take the form ``/<encoded>.sticker``.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import time
import zlib
from typing import Optional, Protocol
from urllib.parse import unquote

from stickerkit.errors import CodecError
from stickerkit.models import UrlState
from stickerkit.normalizer import coerce_override
from stickerkit.schemas import validate_url_state

log = logging.getLogger(__name__)

FORMAT_VERSION = "1"
STICKER_SUFFIX = ".sticker"
_STICKER_PATH_RE = re.compile(r"^/(.+)\.sticker$")
# Upper bound on decompressed payloads; share URLs are small
MAX_PAYLOAD_BYTES = 1 << 20


class UrlStateCodec(Protocol):
    def encode(self, state: UrlState) -> str: ...

    def decode(self, text: str) -> Optional[UrlState]: ...


def now_ms() -> int:
    return int(time.time() * 1000)


class JsonUrlCodec:
    """Compact, deterministic URL codec.

    ``decode`` never raises: malformed, truncated or incompatible input
    gives ``None`` and the caller falls back to template defaults.
    """

    version = FORMAT_VERSION

    def encode(self, state: UrlState) -> str:
        """Serialize *state* into a versioned, URL-safe string.

        Override values are coerced to their field types first so the
        result always passes decoding.

        Raises:
            ValueError: If a value still cannot be represented as JSON.
        """
        state = UrlState(state.selected_template_id,
                         [coerce_override(o) for o in state.layers],
                         state.last_modified)
        payload = json.dumps(state.to_dict(), sort_keys=True, separators=(",", ":"),
                             ensure_ascii=False, allow_nan=False)
        packed = zlib.compress(payload.encode("utf-8"), 9)
        body = base64.urlsafe_b64encode(packed).decode("ascii").rstrip("=")
        return f"{self.version}.{body}"

    def decode(self, text: str) -> Optional[UrlState]:
        try:
            return self._decode_strict(text)
        except CodecError as e:
            log.info("Discarding URL state: %s", e)
            return None

    def _decode_strict(self, text: str) -> UrlState:
        if not isinstance(text, str) or "." not in text:
            raise CodecError("missing version prefix")
        version, _, body = text.partition(".")
        if version != self.version:
            raise CodecError(f"unsupported format version {version!r}")
        try:
            packed = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
        except (binascii.Error, ValueError) as e:
            raise CodecError(f"bad base64: {e}") from e
        try:
            decompressor = zlib.decompressobj()
            raw = decompressor.decompress(packed, MAX_PAYLOAD_BYTES)
            if decompressor.unconsumed_tail or not decompressor.eof:
                raise CodecError("payload truncated or too large")
        except zlib.error as e:
            raise CodecError(f"bad compressed data: {e}") from e
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CodecError(f"bad JSON: {e}") from e

        ok, errors = validate_url_state(data)
        if not ok:
            raise CodecError("; ".join(errors))
        try:
            return UrlState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CodecError(str(e)) from e


def sticker_path(encoded: str) -> str:
    """Route for an encoded state."""
    return f"/{encoded}{STICKER_SUFFIX}"


def parse_sticker_path(path: str) -> Optional[str]:
    """Extract the encoded state from a ``/<encoded>.sticker`` route."""
    if not isinstance(path, str):
        return None
    m = _STICKER_PATH_RE.match(path)
    if not m:
        return None
    return unquote(m.group(1))
