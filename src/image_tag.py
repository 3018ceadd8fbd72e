"""HTML <img> tag rendering for static map URLs."""

from __future__ import annotations

from html import escape
from typing import Any, Mapping, Optional


DEFAULT_ATTRS = {
    "alt": "Google Map",
    "loading": "lazy",
}


def generate_image_tag(url: str, attrs: Optional[Mapping[str, Any]] = None) -> str:
    """Return `<img src="...">` with default attributes overridden by `attrs`.

    True renders a bare attribute name; False and None drop the attribute.
    """
    merged = dict(DEFAULT_ATTRS)
    merged.update(attrs or {})

    parts = []
    for key, value in merged.items():
        if value is None or isinstance(value, bool):
            if value:
                parts.append(f" {key}")
            continue
        parts.append(f' {key}="{escape(str(value), quote=True)}"')

    return f'<img src="{escape(url, quote=True)}"{"".join(parts)}>'
