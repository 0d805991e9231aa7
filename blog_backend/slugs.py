from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^\w-]+", re.ASCII)


def slugify(value: str) -> str:
    """
    Lowercase, turn whitespace runs into single hyphens, drop everything
    outside ``[a-z0-9_-]``.
    """
    slug = _WHITESPACE.sub("-", (value or "").lower())
    return _NON_SLUG.sub("", slug)
