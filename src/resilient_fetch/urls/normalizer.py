"""Canonical URL form used to compare and de-duplicate candidate URLs."""
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def build_netloc(parts: SplitResult, host: str, port: int | None) -> str:
    """Rebuild a network location from ``parts`` with a replacement host and port, keeping user-info."""
    userinfo = ""
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        userinfo = f"{userinfo}@"

    if ":" in host:
        host = f"[{host}]"

    netloc = f"{userinfo}{host}"
    if port is not None:
        netloc = f"{netloc}:{port}"
    return netloc


def normalize_url(url: str) -> str:
    """Canonicalize ``url`` into a comparable form.

    The host is lowercased, a port equal to the scheme default is dropped, trailing slashes are
    stripped from the path (a bare ``/`` is kept), and query parameters with empty values are
    removed. Scheme, user-info, the rest of the path and the fragment are left alone.

    Never raises: anything that cannot be parsed as an absolute URL is returned unchanged.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url

    if not parts.scheme or not parts.hostname:
        return url

    if port is not None and DEFAULT_PORTS.get(parts.scheme.lower()) == port:
        port = None

    path = parts.path
    if path != "/":
        path = path.rstrip("/")

    query = parts.query
    if query:
        params = [(key, value) for key, value in parse_qsl(query, keep_blank_values=True) if value != ""]
        query = urlencode(params)

    netloc = build_netloc(parts, parts.hostname.lower(), port)
    return urlunsplit((parts.scheme, netloc, path, query, parts.fragment))
