import re
from collections.abc import Mapping
from typing import Any

from bs4 import NavigableString, Tag
from markdownify import ATX, SETEXT, MarkdownConverter
from pydantic import ValidationError

from resilient_fetch.config.config import ConversionOptions
from resilient_fetch.errors.config import ConfigurationError
from resilient_fetch.errors.markdown import MarkdownConversionError
from resilient_fetch.markdown.preprocess import MarkdownToken, class_tokens, preprocess_html
from resilient_fetch.shared.logging import BASE_LOGGER

logger = BASE_LOGGER.getChild("markdown")

LANGUAGE_PATTERN = re.compile(r"^language-([\w+#-]+)$")
WHITESPACE_PATTERN = re.compile(r"\s+")
ALIGNMENT_CELL = ":---:"

FALLBACK_TEMPLATE = "[Conversion Error] Unable to convert content\n\nOriginal HTML:\n```html\n{html}\n```"


def code_language(pre: Tag) -> str:
    """Language named by a ``language-xxx`` class on the block's ``<code>`` (or the ``<pre>`` itself)."""
    for candidate in (pre.find("code"), pre):
        if not isinstance(candidate, Tag):
            continue
        for token in class_tokens(candidate):
            if match := LANGUAGE_PATTERN.match(token):
                return match.group(1)
    return ""


def cell_text(cell: Tag) -> str:
    parts = [str(node) for node in cell.descendants if type(node) is NavigableString or isinstance(node, MarkdownToken)]
    return WHITESPACE_PATTERN.sub(" ", "".join(parts)).strip()


def pipe_row(cells: list[str]) -> str:
    # Cell text is emitted as-is: a literal "|" inside a cell is not escaped.
    return f"| {' | '.join(cells)} |"


class DocumentConverter(MarkdownConverter):
    """markdownify converter with overrides for code blocks, tables and emphasis.

    markdownify dispatches on ``convert_<tag>`` methods, so each override below replaces the
    generic rule for its tag and every other tag keeps the stock behaviour.
    """

    def __init__(self, options: ConversionOptions | None = None):
        self.conversion_options = options or ConversionOptions()
        super().__init__(
            heading_style=ATX if self.conversion_options.heading_style == "atx" else SETEXT,
            bullets=self.conversion_options.bullet_list_marker,
        )

    def convert_document(self, html: str) -> str:
        """Preprocess and convert ``html``.

        Raises:
            MarkdownConversionError: If the document cannot be parsed or walked.
        """
        try:
            soup = preprocess_html(html)
            return self.convert_soup(soup)
        except Exception as e:
            msg = f"Error converting HTML to Markdown: {type(e).__name__} - {e}"
            raise MarkdownConversionError(msg) from e

    def process_text(self, el, parent_tags=None):
        if isinstance(el, MarkdownToken):
            return str(el)
        return super().process_text(el, parent_tags=parent_tags)

    def _delimit(self, text: str, delimiter: str, parent_tags) -> str:
        if "_noformat" in parent_tags:
            return text
        stripped = text.strip()
        if not stripped:
            return text
        leading = " " if text[:1].isspace() else ""
        trailing = " " if text[-1:].isspace() else ""
        return f"{leading}{delimiter}{stripped}{delimiter}{trailing}"

    def convert_em(self, el, text, parent_tags):
        return self._delimit(text, self.conversion_options.em_delimiter, parent_tags)

    convert_i = convert_em

    def convert_strong(self, el, text, parent_tags):
        return self._delimit(text, self.conversion_options.strong_delimiter, parent_tags)

    convert_b = convert_strong

    def convert_hr(self, el, text, parent_tags):
        return f"\n\n{self.conversion_options.hr}\n\n"

    def convert_code(self, el, text, parent_tags):
        if "pre" in parent_tags:
            return text
        return super().convert_code(el, text, parent_tags)

    def convert_pre(self, el, text, parent_tags):
        content = text.strip()
        if not content:
            return ""

        if self.conversion_options.code_block_style == "indented":
            body = "\n".join(f"    {line}" if line.strip() else "" for line in content.split("\n"))
            return f"\n\n{body}\n\n"

        fence = self.conversion_options.fence
        return f"\n\n{fence}{code_language(el)}\n{content}\n{fence}\n\n"

    def convert_table(self, el, text, parent_tags):
        # Only this table's own rows and cells; nested tables stay inside their cell.
        header_cells = el.select(":scope > thead > tr > th")
        if not header_cells:
            first_row = el.find("tr")
            header_cells = first_row.find_all("th", recursive=False) if first_row else []

        body_rows = el.select(":scope > tbody > tr") or el.select(":scope > tr")
        rows = [[cell_text(cell) for cell in row.find_all("td", recursive=False)] for row in body_rows]
        rows = [row for row in rows if row]

        headers = [cell_text(cell) for cell in header_cells]
        if not headers and not rows:
            return ""
        if not headers:
            headers = [""] * max(len(row) for row in rows)

        lines = [pipe_row(headers), pipe_row([ALIGNMENT_CELL] * len(headers))]
        lines.extend(pipe_row(row) for row in rows)
        return "\n\n" + "\n".join(lines) + "\n\n"


def convert_to_markdown(html: str, options: ConversionOptions | Mapping[str, Any] | None = None) -> str:
    """Convert an HTML document to Markdown.

    Never raises for bad markup: when the document cannot be converted, the result is an error
    marker followed by the original HTML in a fenced ``html`` block.

    Args:
        html: The HTML to convert.
        options: Conversion options, as a model or a mapping of overrides.

    Returns:
        The Markdown text.

    Raises:
        ConfigurationError: If ``options`` do not validate.
    """
    if not isinstance(options, ConversionOptions):
        try:
            options = ConversionOptions.model_validate(options or {})
        except ValidationError as e:
            msg = f"Invalid conversion options: {e}"
            raise ConfigurationError(msg) from e

    try:
        return DocumentConverter(options).convert_document(html)
    except MarkdownConversionError:
        logger.exception("Markdown conversion failed, returning the original HTML")
        return FALLBACK_TEMPLATE.format(html=html)
