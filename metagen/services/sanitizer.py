import html
import re

from bs4 import BeautifulSoup, Comment

_WHITESPACE_RE = re.compile(r"\s+")

# Tags whose entire subtree is dropped before text extraction
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "iframe",
    # Template elements may contain raw JS template markup
    "template",
}


def sanitize(html_text: str) -> BeautifulSoup:
    """Parse *html_text* and drop script/style blocks and comments, contents included."""
    soup = BeautifulSoup(html_text, "lxml")

    for tag in soup.find_all(_REMOVE_TAGS):
        tag.decompose()

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    return soup


def html_to_text(html_text: str) -> str:
    """Return the visible text of *html_text* with runs of whitespace collapsed.

    ``&``, ``<`` and ``>`` in the text stay escaped, so markup that a page
    shows as text (``&lt;b&gt;``) is not turned into a tag.  The function is
    therefore idempotent: running it on its own output changes nothing.
    """
    if not html_text or not html_text.strip():
        return ""
    text = sanitize(html_text).get_text(separator=" ")
    return html.escape(_WHITESPACE_RE.sub(" ", text).strip(), quote=False)
