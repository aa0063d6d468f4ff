"""Custom exceptions for the web client and URL handling."""


class WebClientError(Exception):
    """Base class for web client errors.

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str):
        """Initializes the WebClientError.

        Args:
            message: The error message.
        """
        self.message = message
        super().__init__(self.message)


class WebClientTransportError(WebClientError):
    """Error performing a single HTTP attempt.

    Raised by transports for connection, DNS, TLS and timeout failures. The fetch
    orchestrator treats it as a retryable failure and never lets it escape a fetch call.

    Example:
        >>> import requests
        >>> try:
        ...     requests.get("http://unreachable.invalid", timeout=1)
        ... except requests.RequestException as e:
        ...     raise WebClientTransportError(f"GET failed: {e}") from e
    """


class WebClientUnknownError(WebClientTransportError):
    """An unexpected error occurred while performing an HTTP attempt.

    Wraps anything a transport raises that is not a known request failure, so a
    single misbehaving attempt is still handled as a retryable failure.

    Example:
        >>> try:
        ...     session.get(url, headers=headers, timeout=timeout)
        ... except Exception as e:
        ...     raise WebClientUnknownError(f"Unexpected error fetching {url}: {e}") from e
    """


class WebClientCancelledError(WebClientError):
    """A fetch was cancelled through its cancellation token."""


class URLValidationError(WebClientError):
    """Base class for URLs rejected before any network activity.

    These represent caller misuse rather than transient conditions, so they are raised
    instead of being folded into a failure record.

    Attributes:
        url: The rejected URL.
    """

    def __init__(self, message: str, url: str):
        self.url = url
        super().__init__(message)


class InvalidURLError(URLValidationError):
    """The URL cannot be parsed or has no host.

    Example:
        >>> from urllib.parse import urlsplit
        >>> if not urlsplit("not a url").hostname:
        ...     raise InvalidURLError("URL has no host", "not a url")
    """


class DisallowedProtocolError(URLValidationError):
    """The URL scheme is not one of the allowed protocols (``http`` and ``https`` by default)."""


class BlockedDomainError(URLValidationError):
    """The URL host is blocked, has a blocked top-level domain, or is missing from a non-empty allow list."""


class URLTooLongError(URLValidationError):
    """The URL exceeds the configured maximum length."""
