"""
stickerkit

Template-to-render pipeline for shareable vector sticker designs.

Stages:
    normalizer   raw template (YAML/JSON, current or legacy) -> Template
    merge        template defaults + URL overrides + live edits -> MergedLayer
    transforms   resolved positions -> outer/inner transform strings
    pipeline     -> RenderableLayer list plus clip-path and textPath tables
    url_codec    sticker state <-> compact share URL
    document     per-document edit state with debounced URL sync
"""

from stickerkit.assets import InMemoryAssetStore, generate_asset_id
from stickerkit.centroid import PathCentroidAnalyzer
from stickerkit.document import StickerDocument
from stickerkit.errors import (
    CodecError,
    CoordinateParseError,
    HashCollisionError,
    InvalidSvgError,
    LayerReferenceError,
    StickerError,
    TemplateValidationError,
)
from stickerkit.fonts import StaticFontRegistry
from stickerkit.merge import merge_layers
from stickerkit.models import (
    FlatLayerRecord,
    LayerOverride,
    LayerType,
    RenderableLayer,
    ShapeSubtype,
    Template,
    UrlState,
    ViewBox,
)
from stickerkit.normalizer import normalize_template
from stickerkit.pipeline import RenderResult, render_template
from stickerkit.svg_validation import validate_and_sanitize_svg
from stickerkit.templates import DirectoryTemplateProvider
from stickerkit.url_codec import JsonUrlCodec

__version__ = "0.1.0"

__all__ = [
    "CodecError",
    "CoordinateParseError",
    "DirectoryTemplateProvider",
    "FlatLayerRecord",
    "HashCollisionError",
    "InvalidSvgError",
    "InMemoryAssetStore",
    "JsonUrlCodec",
    "LayerOverride",
    "LayerReferenceError",
    "LayerType",
    "PathCentroidAnalyzer",
    "RenderResult",
    "RenderableLayer",
    "ShapeSubtype",
    "StaticFontRegistry",
    "StickerDocument",
    "StickerError",
    "Template",
    "TemplateValidationError",
    "UrlState",
    "ViewBox",
    "generate_asset_id",
    "merge_layers",
    "normalize_template",
    "render_template",
    "validate_and_sanitize_svg",
]
