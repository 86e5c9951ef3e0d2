"""
svg_validation.py

Validation and sanitization for SVG markup that does not come from a
template: user uploads and ``svgContent`` carried by share URLs.

Sanitizing removes ``<script>`` elements, ``on*`` event handler attributes
and ``javascript:`` URLs while leaving the rest of the markup untouched, so
content-addressed ids stay stable for clean uploads.  The result must then
parse as XML with an ``<svg>`` root.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

log = logging.getLogger(__name__)

MAX_SVG_SIZE_BYTES = 100_000

# Handlers need leading whitespace so attributes such as font-family match nothing
DANGEROUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\s+on\w+\s*=", re.IGNORECASE),
    re.compile(r"<!ENTITY", re.IGNORECASE),
]

_SCRIPT_RE = re.compile(r"<script\b[^>]*?(?:/>|>.*?</script\s*>)", re.IGNORECASE | re.DOTALL)
_UNCLOSED_SCRIPT_RE = re.compile(r"<script\b.*", re.IGNORECASE | re.DOTALL)
_HANDLER_QUOTED_RE = re.compile(r"""\s+on\w+\s*=\s*(?:"[^"]*"|'[^']*')""", re.IGNORECASE)
_HANDLER_BARE_RE = re.compile(r"\s+on\w+\s*=\s*[^\s>\"']*", re.IGNORECASE)
_JS_URL_RE = re.compile(r"javascript:[^\"']*", re.IGNORECASE)

# Nested tricks such as "<scr<script></script>ipt>" need more than one pass
_MAX_PASSES = 5


def check_dangerous_content(svg_content: str) -> bool:
    """True when *svg_content* still contains scripts, handlers or js URLs."""
    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(svg_content):
            log.debug("Dangerous content in SVG: %s", pattern.pattern)
            return True
    return False


def sanitize_svg_content(svg_content: str) -> str:
    """Strip dangerous constructs, repeating until the markup is stable."""
    sanitized = svg_content
    for _ in range(_MAX_PASSES):
        previous = sanitized
        sanitized = _SCRIPT_RE.sub("", sanitized)
        sanitized = _UNCLOSED_SCRIPT_RE.sub("", sanitized)
        sanitized = _HANDLER_QUOTED_RE.sub(" ", sanitized)
        sanitized = _HANDLER_BARE_RE.sub(" ", sanitized)
        sanitized = _JS_URL_RE.sub("", sanitized)
        if sanitized == previous:
            break
    return sanitized


def _local_name(name: str) -> str:
    return name.rsplit("}", 1)[-1].lower()


def _unsafe_nodes(root: ET.Element) -> List[str]:
    """Scripts, handlers and js URLs that only show up once entities are decoded."""
    found = []
    for elem in root.iter():
        tag = _local_name(elem.tag) if isinstance(elem.tag, str) else ""
        if tag in ("script", "foreignobject"):
            found.append(f"<{tag}>")
        for name, value in elem.attrib.items():
            attr = _local_name(name)
            if attr.startswith("on"):
                found.append(f"{tag}@{attr}")
            elif "".join(value.split()).lower().startswith("javascript:"):
                found.append(f"{tag}@{attr}")
    return found


def validate_svg_structure(svg_content: str) -> Tuple[bool, List[str]]:
    """Check that *svg_content* is well-formed XML with an ``<svg>`` root
    and nothing executable left in the parsed tree.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    try:
        root = ET.fromstring(svg_content)
    except ET.ParseError as e:
        return False, [f"Invalid SVG: XML parse error ({e})"]
    if _local_name(root.tag) != "svg":
        return False, ["Invalid SVG: no <svg> root element"]
    unsafe = _unsafe_nodes(root)
    if unsafe:
        return False, [f"Invalid SVG: executable content in {', '.join(unsafe)}"]
    return True, []


def validate_and_sanitize_svg(
    svg_content: str,
    max_size_bytes: int = MAX_SVG_SIZE_BYTES,
) -> Tuple[Optional[str], List[str]]:
    """Sanitize *svg_content*, then validate what is left.

    Args:
        svg_content: Untrusted SVG markup.
        max_size_bytes: Upper bound on the UTF-8 size of the sanitized markup.

    Returns:
        Tuple of (sanitized markup or ``None``, list_of_error_messages)
    """
    if not isinstance(svg_content, str):
        return None, [f"Invalid SVG: expected text, got {type(svg_content).__name__}"]

    sanitized = sanitize_svg_content(svg_content)
    size = len(sanitized.encode("utf-8"))
    if size > max_size_bytes:
        return None, [f"SVG too large: {size / 1000:.1f}KB (max {max_size_bytes / 1000:g}KB)"]

    if check_dangerous_content(sanitized):
        return None, ["Invalid SVG: contains scripts or event handlers"]
    ok, errors = validate_svg_structure(sanitized)
    if not ok:
        return None, errors
    if sanitized != svg_content:
        log.info("Removed scripts or event handlers from SVG content")
    return sanitized, []
