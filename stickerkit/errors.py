"""
errors.py

Exception taxonomy for the sticker pipeline.

Most of these are raised only by the strict helpers; the public pipeline
entry points recover from bad *data* (returning 0, ``None`` or omitting
output) and only let genuine caller mistakes propagate.
"""

from __future__ import annotations

from typing import List, Optional


class StickerError(Exception):
    """Base class for all stickerkit errors."""


class CoordinateParseError(StickerError, ValueError):
    """A coordinate or percentage string could not be parsed."""

    def __init__(self, value: object):
        super().__init__(f"Cannot parse coordinate value {value!r}")
        self.value = value


class TemplateValidationError(StickerError):
    """A raw template is missing required fields or has the wrong shape.

    Args:
        template_id: Id of the offending template, when it has one.
        errors: Human readable validation messages.
    """

    def __init__(self, template_id: Optional[str], errors: List[str]):
        label = template_id or "<unknown>"
        super().__init__(f"Template {label} is invalid: {'; '.join(errors)}")
        self.template_id = template_id
        self.errors = list(errors)


class LayerReferenceError(StickerError):
    """A clip, textPath, font or asset reference points at nothing usable."""

    def __init__(self, kind: str, ref_id: str):
        super().__init__(f"Unresolved {kind} reference {ref_id!r}")
        self.kind = kind
        self.ref_id = ref_id


class CodecError(StickerError):
    """URL state could not be decoded."""


class HashCollisionError(StickerError):
    """Two different uploaded assets produced the same deterministic id."""

    def __init__(self, asset_id: str):
        super().__init__(f"Asset id {asset_id} already holds different content")
        self.asset_id = asset_id


class InvalidSvgError(StickerError, ValueError):
    """Uploaded SVG markup is malformed, oversized or unsafe."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)
