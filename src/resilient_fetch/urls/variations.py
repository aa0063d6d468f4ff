import ipaddress
from urllib.parse import urlsplit, urlunsplit

from resilient_fetch.clients.dns import AliasResolver
from resilient_fetch.shared.logging import BASE_LOGGER
from resilient_fetch.urls.normalizer import build_netloc, normalize_url

logger = BASE_LOGGER.getChild("variations")

WEB_SCHEMES = ("http", "https")


def _with_scheme(url: str, scheme: str) -> str:
    parts = urlsplit(url)
    if parts.scheme.lower() not in WEB_SCHEMES:
        return url
    return urlunsplit((scheme, *parts[1:]))


def _with_host(url: str, host: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, build_netloc(parts, host, parts.port), parts.path, parts.query, parts.fragment))


def _toggle_www(host: str) -> str:
    if host.startswith("www."):
        return host[len("www.") :]
    return f"www.{host}"


def _parse_host(url: str) -> str | None:
    try:
        parts = urlsplit(url)
        if parts.port is not None and not parts.hostname:
            return None
    except ValueError:
        return None
    return parts.hostname


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def subdomain_alternatives(host: str) -> list[str]:
    """Hosts obtained by dropping the leftmost label of ``host``, bare and with ``www.``.

    Only hosts with more than two labels qualify, and IP literals never do.
    """
    labels = host.split(".")
    if len(labels) <= 2 or _is_ip_literal(host):
        return []

    parent = ".".join(labels[1:])
    return [parent, f"www.{parent}"]


def dedupe(urls: list[str]) -> list[str]:
    """Drop repeated entries, keeping the first occurrence of each."""
    return list(dict.fromkeys(urls))


async def generate_url_variations(url: str, resolver: AliasResolver | None = None) -> list[str]:
    """Build the ordered list of URLs to try for ``url``.

    The list always starts with ``url`` itself, followed by its normalized form, the ``https``
    and ``http`` variants and, for named hosts, the ``www.`` toggled variant. Hosts discovered by ``resolver`` and
    by dropping the leftmost subdomain are appended after that base set.

    Args:
        url: The caller-supplied URL.
        resolver: Optional DNS alias lookup. Without one, no DNS queries are made.

    Returns:
        A non-empty list of distinct URLs whose first element is ``url``.
    """
    variations = [url, normalize_url(url)]

    host = _parse_host(url)
    if not host:
        return dedupe(variations)

    variations.extend([_with_scheme(url, "https"), _with_scheme(url, "http")])
    if not _is_ip_literal(host):
        variations.append(_with_host(url, _toggle_www(host)))

    alternate_hosts: list[str] = []
    if resolver is not None:
        try:
            alternate_hosts.extend(await resolver.aliases(host))
        except Exception as e:
            logger.debug(f"Alias lookup failed for {host}: {type(e).__name__} - {e}")
    alternate_hosts.extend(subdomain_alternatives(host))

    variations.extend(_with_host(url, alternate) for alternate in alternate_hosts if alternate != host)

    result = dedupe(variations)
    logger.debug(f"Generated {len(result)} URL variations for {url}")
    return result
