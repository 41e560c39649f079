import re
import unicodedata
from typing import Callable

# Latin letters, digits and the Arabic block are kept; everything else
# collapses into a single hyphen.
_SLUG_SEPARATORS = re.compile(r"[^a-z0-9\u0600-\u06FF]+")


def normalize_slug(value: str) -> str:
    if not value:
        return ""

    value = unicodedata.normalize("NFKC", value)
    value = value.strip().lower()
    value = _SLUG_SEPARATORS.sub("-", value)

    return value.strip("-")


def generate_unique_slug(value: str, exists: Callable[[str], bool]) -> str:
    base = normalize_slug(value)
    if not base:
        raise ValueError("Cannot build a slug from an empty value")

    slug = base
    suffix = 1
    while exists(slug):
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug
