"""Existing-metadata scan of raw page HTML.

Pulls the ``<title>``, meta description and Open Graph title/description out
of a page with regular expressions.  ``<meta>`` matching tolerates either
attribute order (``content`` before or after ``name``/``property``) and
either quote style.  All values are HTML-entity decoded; missing tags give
an empty string.
"""

import html
import re

from metagen.models.result import ExistingPageMetadata

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)

_META_TAG_RE = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)

# name="..." / property="..." / content="..." inside a single <meta> tag
_ATTR_RE = re.compile(
    r"""(?<![\w-])(name|property|content)\s*=\s*(?:"([^"]*)"|'([^']*)')""",
    re.IGNORECASE,
)

_WHITESPACE_RE = re.compile(r"\s+")


def _clean(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", html.unescape(value)).strip()


def _meta_tags(page_html: str) -> dict:
    """Map lower-cased ``name``/``property`` keys to their ``content`` value.

    The first occurrence of a key wins.
    """
    found: dict = {}
    for tag in _META_TAG_RE.findall(page_html):
        attrs = {}
        for attr, double_quoted, single_quoted in _ATTR_RE.findall(tag):
            attrs.setdefault(attr.lower(), double_quoted or single_quoted)
        if "content" not in attrs:
            continue
        for key_attr in ("name", "property"):
            key = attrs.get(key_attr, "").strip().lower()
            if key and key not in found:
                found[key] = attrs["content"]
    return found


def extract_existing_metadata(page_html: str) -> ExistingPageMetadata:
    """Return the metadata already declared in *page_html*."""
    if not page_html:
        return ExistingPageMetadata()

    title_match = _TITLE_RE.search(page_html)
    metas = _meta_tags(page_html)

    return ExistingPageMetadata(
        title=_clean(title_match.group(1)) if title_match else "",
        description=_clean(metas.get("description", "")),
        og_title=_clean(metas.get("og:title", "")),
        og_description=_clean(metas.get("og:description", "")),
    )
