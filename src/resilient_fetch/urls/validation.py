from urllib.parse import urlsplit

from resilient_fetch.config.config import SecurityOptions
from resilient_fetch.errors.web import (
    BlockedDomainError,
    DisallowedProtocolError,
    InvalidURLError,
    URLTooLongError,
)
from resilient_fetch.shared.logging import BASE_LOGGER, TRACE

logger = BASE_LOGGER.getChild("validation")


def host_matches(host: str, domain: str) -> bool:
    """True when ``host`` is ``domain`` or one of its subdomains."""
    domain = domain.lstrip(".")
    return host == domain or host.endswith(f".{domain}")


def validate_url(url: str, security: SecurityOptions | None = None) -> str:
    """Check that ``url`` may be fetched at all.

    Args:
        url: The URL a caller asked to fetch.
        security: Validation rules; built-in defaults when omitted.

    Returns:
        The URL, unchanged.

    Raises:
        URLTooLongError: If the URL is longer than ``max_url_length``.
        InvalidURLError: If the URL cannot be parsed or has no host.
        DisallowedProtocolError: If the scheme is not allowed.
        BlockedDomainError: If the host has a blocked TLD, is blocked, or is not on a non-empty allow list.
    """
    security = security or SecurityOptions()

    if len(url) > security.max_url_length:
        msg = f"URL is {len(url)} characters long, the limit is {security.max_url_length}"
        raise URLTooLongError(msg, url)

    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
        _ = parts.port
    except ValueError as e:
        msg = f"URL cannot be parsed: {e}"
        raise InvalidURLError(msg, url) from e

    if not parts.scheme:
        msg = f"URL has no scheme: {url}"
        raise InvalidURLError(msg, url)

    if parts.scheme.lower() not in security.allowed_protocols:
        msg = f"Protocol '{parts.scheme}' is not allowed, expected one of {', '.join(security.allowed_protocols)}"
        raise DisallowedProtocolError(msg, url)

    if not host:
        msg = f"URL has no host: {url}"
        raise InvalidURLError(msg, url)

    if any(host.endswith(f".{tld.lstrip('.')}") for tld in security.blocked_tlds):
        msg = f"Host {host} uses a blocked top-level domain"
        raise BlockedDomainError(msg, url)

    if any(host_matches(host, domain) for domain in security.blocked_domains):
        msg = f"Host {host} is blocked"
        raise BlockedDomainError(msg, url)

    if security.allowed_domains and not any(host_matches(host, domain) for domain in security.allowed_domains):
        msg = f"Host {host} is not in the allowed domains"
        raise BlockedDomainError(msg, url)

    logger.log(TRACE, f"URL passed validation: {url}")
    return url
