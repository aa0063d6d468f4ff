"""
Clean-up pass run on HTML before it is converted to Markdown.

Non-content nodes are dropped, presentational attributes are stripped and images are
rewritten into inline Markdown image tokens.
"""

from bs4 import BeautifulSoup, NavigableString, Tag

REMOVED_TAGS = ["script", "style"]
STRIPPED_ATTRIBUTES = ("class", "id")
CODE_TAGS = ("pre", "code")
LANGUAGE_PREFIX = "language-"
DEFAULT_ALT_TEXT = "Image"


class MarkdownToken(NavigableString):
    """Text node that already holds Markdown and must be emitted verbatim."""


def class_tokens(tag: Tag) -> list[str]:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes.split()
    return list(classes)


def image_token(tag: Tag) -> str:
    alt = tag.get("alt") or DEFAULT_ALT_TEXT
    src = tag.get("src") or ""
    return f"![{alt}]({src})"


def preprocess_html(html: str) -> BeautifulSoup:
    """Parse ``html`` and clean the tree for conversion.

    Steps, in order:
        1. Remove every ``<script>`` and ``<style>`` subtree.
        2. Strip ``class`` and ``id`` attributes. ``language-*`` class tokens on ``<pre>`` and
           ``<code>`` survive so code blocks keep their language tag.
        3. Replace every ``<img>`` with a ``![alt](src)`` token, ``alt`` defaulting to ``Image``.
    """
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(REMOVED_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        languages = [token for token in class_tokens(tag) if token.startswith(LANGUAGE_PREFIX)] if tag.name in CODE_TAGS else []
        for attribute in STRIPPED_ATTRIBUTES:
            if attribute in tag.attrs:
                del tag[attribute]
        if languages:
            tag["class"] = languages

    for image in soup.find_all("img"):
        image.replace_with(MarkdownToken(image_token(image)))

    return soup
