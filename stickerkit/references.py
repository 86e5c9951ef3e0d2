"""
references.py

Clip-path and textPath definition tables.

Clip paths are compiled from their target shape's geometry re-originated
at (0, 0), because a clip applies in the clipped layer's local space.
TextPath targets are ``path`` shapes with literal data; those layers are
structural and never offered for editing.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from stickerkit.errors import LayerReferenceError
from stickerkit.models import LayerType, MergedLayer, Point, ShapeSubtype
from stickerkit.shape_paths import compile_shape_path

log = logging.getLogger(__name__)

ORIGIN = Point(0.0, 0.0)


def clip_path_id(target_id: str) -> str:
    return f"clip-{target_id}"


def clip_path_url(target_id: str) -> str:
    """Value for a renderer's ``clip-path`` attribute."""
    return f"url(#{clip_path_id(target_id)})"


def index_layers(layers: Iterable[MergedLayer]) -> Dict[str, MergedLayer]:
    return {layer.id: layer for layer in layers}


def find_reference_target(
    layers: Union[Sequence[MergedLayer], Mapping[str, MergedLayer]],
    kind: str,
    ref_id: str,
) -> MergedLayer:
    """Strict lookup of a clip or textPath target.

    *layers* may be a prebuilt id index from ``index_layers``.

    Raises:
        LayerReferenceError: If the target is missing or of the wrong kind.
    """
    by_id = layers if isinstance(layers, Mapping) else index_layers(layers)
    target = by_id.get(ref_id)
    if target is None or target.type != LayerType.SHAPE:
        raise LayerReferenceError(kind, ref_id)
    if kind == "clip" and target.subtype not in ShapeSubtype.CLIPPABLE:
        raise LayerReferenceError(kind, ref_id)
    if kind == "textPath" and not is_structural_layer(target):
        raise LayerReferenceError(kind, ref_id)
    return target


def resolve_clip_paths(layers: Sequence[MergedLayer]) -> Dict[str, str]:
    """Map each referenced clip target id to its path at the origin.

    Only rect, circle and polygon shapes qualify.  Dangling or
    incompatible references are left out.  Entries follow the order of
    first reference.
    """
    table: Dict[str, str] = {}
    by_id = index_layers(layers)
    for layer in layers:
        ref = layer.record.clip
        if not ref or ref in table:
            continue
        try:
            target = find_reference_target(by_id, "clip", ref)
        except LayerReferenceError as e:
            log.debug("Layer %s: %s", layer.id, e)
            continue
        table[ref] = compile_shape_path(target.record, ORIGIN)
    return table


def is_structural_layer(layer: MergedLayer) -> bool:
    """A path shape with literal data, used only as a textPath guide."""
    rec = layer.record
    return (
        rec.type == LayerType.SHAPE
        and rec.subtype == ShapeSubtype.PATH
        and isinstance(rec.path, str)
        and bool(rec.path.strip())
    )


def resolve_text_paths(layers: Sequence[MergedLayer]) -> Dict[str, str]:
    """Map each referenced textPath target id to its literal path data."""
    table: Dict[str, str] = {}
    by_id = index_layers(layers)
    for layer in layers:
        ref = layer.record.text_path
        if not ref or ref in table:
            continue
        try:
            target = find_reference_target(by_id, "textPath", ref)
        except LayerReferenceError as e:
            log.debug("Layer %s: %s", layer.id, e)
            continue
        table[ref] = target.record.path
    return table


def editable_layers(layers: Sequence[MergedLayer]) -> List[MergedLayer]:
    """Layers a user may edit: everything except structural path guides."""
    return [layer for layer in layers if not is_structural_layer(layer)]


def clip_url_for(layer: MergedLayer, clip_table: Dict[str, str]) -> Optional[str]:
    ref = layer.record.clip
    if ref and ref in clip_table:
        return clip_path_url(ref)
    return None
