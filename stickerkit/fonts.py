"""
fonts.py

Static font registry used to resolve font-family strings carried in URLs.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol, Union

from stickerkit.models import FontConfig

GOOGLE_FONTS_CSS = "https://fonts.googleapis.com/css2?family={family}:wght@{weights}&display=swap"


def _google(name: str, category: str, weights, fallback: str) -> FontConfig:
    query = name.replace(" ", "+")
    return FontConfig(
        name=name,
        family=name,
        weights=tuple(weights),
        category=category,
        source="google",
        font_url=GOOGLE_FONTS_CSS.format(family=query, weights=";".join(str(w) for w in weights)),
        fallback=fallback,
    )


AVAILABLE_FONTS: List[FontConfig] = [
    # Sans-serif
    _google("Inter", "sans-serif", (300, 400, 500, 600, 700), "system-ui, sans-serif"),
    _google("Roboto", "sans-serif", (300, 400, 500, 700), "Arial, sans-serif"),
    _google("Open Sans", "sans-serif", (300, 400, 600, 700), "Arial, sans-serif"),
    _google("Lato", "sans-serif", (300, 400, 700), "Arial, sans-serif"),
    _google("Poppins", "sans-serif", (300, 400, 500, 600, 700), "Arial, sans-serif"),
    _google("Montserrat", "sans-serif", (300, 400, 500, 600, 700), "Arial, sans-serif"),
    # Serif
    _google("Playfair Display", "serif", (400, 700), "Georgia, serif"),
    _google("Merriweather", "serif", (300, 400, 700), "Georgia, serif"),
    _google("Lora", "serif", (400, 500, 600, 700), "Georgia, serif"),
    # Monospace
    _google("JetBrains Mono", "monospace", (400, 700), "Menlo, monospace"),
    _google("Fira Code", "monospace", (400, 500, 700), "Monaco, monospace"),
    # Display
    _google("Oswald", "display", (400, 500, 700), "Arial, sans-serif"),
    _google("Bebas Neue", "display", (400,), "Arial, sans-serif"),
    # Handwriting
    _google("Dancing Script", "handwriting", (400, 700), "cursive"),
    _google("Pacifico", "handwriting", (400,), "cursive"),
    _google("Caveat", "handwriting", (400, 700), "cursive"),
    # System
    FontConfig("Arial", "Arial", (400, 700), "sans-serif", "system", None, "sans-serif"),
    FontConfig("Georgia", "Georgia", (400, 700), "serif", "system", None, "serif"),
    FontConfig("Courier New", "Courier New", (400, 700), "monospace", "system", None, "monospace"),
]

DEFAULT_FONT: FontConfig = AVAILABLE_FONTS[0]


class FontRegistry(Protocol):
    def find_font(self, family_or_name: str) -> Optional[FontConfig]: ...


class StaticFontRegistry:
    """In-memory font lookup by family or display name (case-insensitive).

    Args:
        fonts: Fonts to register; the built-in table when omitted.
    """

    def __init__(self, fonts: Optional[Iterable[FontConfig]] = None):
        self._fonts: List[FontConfig] = list(AVAILABLE_FONTS if fonts is None else fonts)
        self._index: Dict[str, FontConfig] = {}
        for font in self._fonts:
            self._register_keys(font)

    def _register_keys(self, font: FontConfig) -> None:
        for key in (font.family, font.name):
            self._index.setdefault(key.strip().lower(), font)

    def register(self, font: FontConfig) -> None:
        """Add a font, e.g. a user upload.  Existing names keep their entry."""
        self._fonts.append(font)
        self._register_keys(font)

    def find_font(self, family_or_name: str) -> Optional[FontConfig]:
        if not isinstance(family_or_name, str):
            return None
        # CSS stacks like '"Lato", Arial, sans-serif' match on the first family
        first = family_or_name.split(",")[0].strip().strip("'\"")
        return self._index.get(first.lower())

    def fonts(self, category: Optional[str] = None) -> List[FontConfig]:
        if category is None:
            return list(self._fonts)
        return [f for f in self._fonts if f.category == category]


def font_family_css(font: Union[FontConfig, str, None]) -> str:
    """CSS ``font-family`` value with the font's fallback stack."""
    if font is None:
        font = DEFAULT_FONT
    if isinstance(font, str):
        return font
    return f'"{font.family}", {font.fallback}'
