"""Custom exceptions for HTML to Markdown conversion."""


class MarkdownConversionError(Exception):
    """Error converting HTML to Markdown.

    Raised inside the converter when the document tree cannot be walked. The public
    conversion function catches it and returns a fallback document instead, so callers
    never see it.

    Example:
        >>> try:
        ...     markdown = converter.convert_soup(soup)
        ... except RecursionError as e:
        ...     raise MarkdownConversionError("Document nesting is too deep") from e
    """
