"""
document.py

Per-document context object.

A ``StickerDocument`` owns one template, the overrides that came from the
share URL and the user's live edits.  It is the single writer of that
state; ``render()`` is a memoized pure function of it.  Every edit also
(re)starts a debounced timer that serializes the current state into a new
share URL, so only the latest state is ever published.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from stickerkit.assets import UserAssetStore
from stickerkit.centroid import CentroidAnalyzer
from stickerkit.debug_trace import trace, trace_call
from stickerkit.fonts import FontRegistry
from stickerkit.merge import OverrideInput, effective_overrides, index_overrides
from stickerkit.models import OVERRIDE_KEY_ALIASES, LayerOverride, LayerType, Template, UrlState
from stickerkit.normalizer import coerce_field
from stickerkit.pipeline import RenderResult, render_template
from stickerkit.references import editable_layers
from stickerkit.settings import AppSettings, get_settings
from stickerkit.templates import TemplateProvider
from stickerkit.url_codec import JsonUrlCodec, UrlStateCodec, now_ms, parse_sticker_path, sticker_path
from stickerkit.utils import camel_to_snake

log = logging.getLogger(__name__)


# ----------------------------
# UI event → field mapping
# ----------------------------

UPDATE_EVENTS: Dict[str, Dict[str, str]] = {
    LayerType.TEXT: {
        "update:modelValue": "text",
        "update:selectedFont": "font",
        "update:fontSize": "font_size",
        "update:fontWeight": "font_weight",
        "update:textColor": "font_color",
        "update:textStrokeColor": "stroke_color",
        "update:textStrokeWidth": "stroke_width",
        "update:textStrokeLinejoin": "stroke_linejoin",
        "update:startOffset": "start_offset",
        "update:dy": "dy",
        "update:dominantBaseline": "dominant_baseline",
        "update:lineHeight": "line_height",
        "update:rotation": "rotation",
    },
    LayerType.SHAPE: {
        "update:fillColor": "fill_color",
        "update:strokeColor": "stroke_color",
        "update:strokeWidth": "stroke_width",
        "update:strokeLinejoin": "stroke_linejoin",
    },
    LayerType.SVG_IMAGE: {
        "update:svgContent": "svg_content",
        "update:svgId": "svg_image_id",
        "update:color": "color",
        "update:strokeColor": "stroke_color",
        "update:strokeWidth": "stroke_width",
        "update:strokeLinejoin": "stroke_linejoin",
        "update:rotation": "rotation",
        "update:scale": "scale",
    },
}

# Every update event has a reset twin, except replacing the text itself
RESET_EVENTS: Dict[str, Dict[str, str]] = {
    layer_type: {
        "reset:" + event.split(":", 1)[1]: name
        for event, name in events.items()
        if event != "update:modelValue"
    }
    for layer_type, events in UPDATE_EVENTS.items()
}


def _field_name(name: str) -> str:
    snake = camel_to_snake(name)
    return OVERRIDE_KEY_ALIASES.get(snake, snake)


TimerFactory = Callable[[float, Callable[[], None]], Any]


class StickerDocument:
    """Editable sticker state for one open template.

    Args:
        template: The selected, normalized template.
        url_overrides: Overrides decoded from the share URL.
        font_registry: Font lookup for font edits.
        asset_store: Preloaded user/library SVG content.
        analyzer: Bounds/centroid analyzer for svgImage origins.
        codec: URL state codec.
        settings: Application settings; the global settings when omitted.
        on_url_change: Called with the new ``/<encoded>.sticker`` route
            after the debounce delay.  No sync happens without it.
        timer_factory: ``threading.Timer`` compatible factory.
        clock: Millisecond timestamp source for ``lastModified``.
    """

    def __init__(
        self,
        template: Template,
        url_overrides: OverrideInput = None,
        *,
        font_registry: Optional[FontRegistry] = None,
        asset_store: Optional[UserAssetStore] = None,
        analyzer: Optional[CentroidAnalyzer] = None,
        codec: Optional[UrlStateCodec] = None,
        settings: Optional[AppSettings] = None,
        on_url_change: Optional[Callable[[str], None]] = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], int] = now_ms,
    ):
        if not isinstance(template, Template):
            raise TypeError(f"StickerDocument needs a Template, got {type(template).__name__}")
        self.template = template
        self.font_registry = font_registry
        self.asset_store = asset_store
        self.analyzer = analyzer
        self.codec = codec or JsonUrlCodec()
        self.settings = settings or get_settings().settings
        self.on_url_change = on_url_change
        self._timer_factory = timer_factory
        self._clock = clock

        self._lock = threading.RLock()
        self._url: Dict[str, LayerOverride] = self._known_only(index_overrides(url_overrides))
        self._live: Dict[str, LayerOverride] = {}
        self._revision = 0
        self._cache: Optional[Tuple[int, RenderResult]] = None
        self._timer = None

    # ----------------------------
    # Construction from a URL
    # ----------------------------

    @classmethod
    def from_url(
        cls,
        path_or_encoded: str,
        provider: TemplateProvider,
        codec: Optional[UrlStateCodec] = None,
        **kwargs,
    ) -> "StickerDocument":
        """Open the document a share URL describes.

        A URL that cannot be decoded, or that names an unknown template,
        opens the provider's default template instead and schedules a URL
        rewrite.

        Raises:
            LookupError: If the provider has no usable template at all.
        """
        codec = codec or JsonUrlCodec()
        encoded = path_or_encoded
        if isinstance(path_or_encoded, str) and path_or_encoded.startswith("/"):
            encoded = parse_sticker_path(path_or_encoded)

        state = codec.decode(encoded) if encoded else None
        template = provider.load_template(state.selected_template_id) if state else None
        if template is not None:
            return cls(template, state.layers, codec=codec, **kwargs)

        if state is not None:
            log.warning("URL names unknown template %s, loading defaults", state.selected_template_id)
        template = provider.default_template()
        if template is None:
            raise LookupError("No templates available")
        doc = cls(template, codec=codec, **kwargs)
        doc.request_url_sync()
        return doc

    def _known_only(self, overrides: Dict[str, LayerOverride]) -> Dict[str, LayerOverride]:
        known = set(self.template.layer_ids())
        for layer_id in overrides:
            if layer_id not in known:
                log.debug("Dropping URL override for unknown layer %s", layer_id)
        return {k: v for k, v in overrides.items() if k in known}

    # ----------------------------
    # Edits
    # ----------------------------

    @property
    def revision(self) -> int:
        return self._revision

    def _changed(self) -> None:
        self._revision += 1
        self.request_url_sync()

    def update_layer(self, layer_id: str, **fields: Any) -> bool:
        """Apply a live edit.

        Field names may be snake_case or camelCase.  A value of ``None``
        resets that field to the template default.

        Returns:
            ``False`` if the template has no such layer.
        """
        if self.template.layer(layer_id) is None:
            log.warning("Ignoring edit for unknown layer %s", layer_id)
            return False
        with self._lock:
            live = self._live.setdefault(layer_id, LayerOverride(layer_id))
            for name, value in fields.items():
                name = _field_name(name)
                if value is None:
                    self._reset_locked(layer_id, name)
                    continue
                coerced = value if name == "font" else coerce_field(name, value, layer_id)
                if coerced is not None:
                    live.set(name, coerced)
            self._changed()
        trace(f"edit {layer_id}: {sorted(fields)}", "EDIT")
        return True

    def update_layers(self, updates: Mapping[str, Mapping[str, Any]]) -> None:
        for layer_id, fields in updates.items():
            self.update_layer(layer_id, **dict(fields))

    def _reset_locked(self, layer_id: str, name: str) -> None:
        # Resetting clears every tier so the template default shows through
        for tier in (self._live, self._url):
            override = tier.get(layer_id)
            if override is not None:
                override.clear(name)
        if name == "font":
            self._reset_locked(layer_id, "font_family")

    def reset_field(self, layer_id: str, name: str) -> bool:
        """Revert one field of one layer to the template default."""
        if self.template.layer(layer_id) is None:
            log.warning("Ignoring reset for unknown layer %s", layer_id)
            return False
        with self._lock:
            self._reset_locked(layer_id, _field_name(name))
            self._changed()
        return True

    def reset_layer(self, layer_id: str) -> bool:
        """Revert every field of a layer."""
        if self.template.layer(layer_id) is None:
            return False
        with self._lock:
            self._live.pop(layer_id, None)
            self._url.pop(layer_id, None)
            self._changed()
        return True

    def apply_event(self, layer_id: str, event: str, value: Any = None) -> bool:
        """Route an ``update:<prop>`` / ``reset:<prop>`` UI event.

        Returns:
            ``False`` for unknown layers or events the layer type does not
            support.
        """
        record = self.template.layer(layer_id)
        if record is None:
            log.warning("Event %s for unknown layer %s", event, layer_id)
            return False
        if event.startswith("reset:"):
            name = RESET_EVENTS.get(record.type, {}).get(event)
            if name is None:
                log.warning("Unsupported event %s for %s layer", event, record.type)
                return False
            return self.reset_field(layer_id, name)
        name = UPDATE_EVENTS.get(record.type, {}).get(event)
        if name is None:
            log.warning("Unsupported event %s for %s layer", event, record.type)
            return False
        return self.update_layer(layer_id, **{name: value})

    # ----------------------------
    # Derived state
    # ----------------------------

    def overrides(self) -> Tuple[Dict[str, LayerOverride], Dict[str, LayerOverride]]:
        """Copies of the (url, live) override tiers."""
        with self._lock:
            return ({k: v.copy() for k, v in self._url.items()},
                    {k: v.copy() for k, v in self._live.items()})

    @trace_call("RENDER")
    def render(self) -> RenderResult:
        """Render the current state, reusing the last result if unchanged."""
        with self._lock:
            if self._cache is not None and self._cache[0] == self._revision:
                return self._cache[1]
            revision = self._revision
            url, live = self.overrides()
        result = render_template(
            self.template, url.values(), live.values(),
            font_registry=self.font_registry,
            asset_store=self.asset_store,
            analyzer=self.analyzer,
            settings=self.settings.render,
        )
        with self._lock:
            if revision == self._revision:
                self._cache = (revision, result)
        return result

    def editable_layer_ids(self):
        return [layer.id for layer in editable_layers(self.render().merged)]

    def url_state(self) -> UrlState:
        """The state a share URL for this document carries."""
        url, live = self.overrides()
        return UrlState(
            selected_template_id=self.template.id,
            layers=effective_overrides(url.values(), live.values(), self.template),
            last_modified=self._clock(),
        )

    def encoded_state(self) -> str:
        return self.codec.encode(self.url_state())

    def share_path(self) -> str:
        return sticker_path(self.encoded_state())

    # ----------------------------
    # Debounced URL sync
    # ----------------------------

    def request_url_sync(self) -> None:
        """Restart the debounce timer; the latest state wins."""
        if self.on_url_change is None:
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            delay = max(self.settings.sync.url_sync_delay_ms, 0) / 1000.0
            timer = self._timer_factory(delay, lambda: self._fire_url_sync(timer))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire_url_sync(self, timer) -> None:
        with self._lock:
            if self._timer is not timer:
                # superseded by a later edit or cancelled
                return
            self._timer = None
        self._publish()

    def _publish(self) -> None:
        try:
            path = self.share_path()
        except ValueError as e:
            log.error("Cannot encode document state: %s", e)
            return
        if self.on_url_change is not None:
            self.on_url_change(path)

    def flush_url_sync(self) -> bool:
        """Publish a pending sync immediately.

        Returns:
            ``True`` if a sync was pending.
        """
        with self._lock:
            timer = self._timer
            if timer is None:
                return False
            timer.cancel()
            self._timer = None
        self._publish()
        return True

    def cancel_url_sync(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def has_pending_sync(self) -> bool:
        return self._timer is not None
