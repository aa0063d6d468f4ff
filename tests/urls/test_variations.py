import pytest

from resilient_fetch.urls.variations import dedupe, generate_url_variations, subdomain_alternatives


class StaticResolver:
    def __init__(self, aliases):
        self._aliases = aliases
        self.lookups = []

    async def aliases(self, hostname):
        self.lookups.append(hostname)
        return list(self._aliases)


class BrokenResolver:
    async def aliases(self, hostname):
        msg = "resolver exploded"
        raise RuntimeError(msg)


async def test_base_variations_in_order():
    variations = await generate_url_variations("https://example.com/page")

    assert variations == [
        "https://example.com/page",
        "http://example.com/page",
        "https://www.example.com/page",
    ]


async def test_www_prefix_is_stripped():
    variations = await generate_url_variations("http://www.example.com/")

    assert variations == ["http://www.example.com/", "https://www.example.com/", "http://example.com/"]


async def test_normalized_form_follows_original():
    variations = await generate_url_variations("http://Example.com:80/docs/")

    assert variations[0] == "http://Example.com:80/docs/"
    assert variations[1] == "http://example.com/docs"


async def test_subdomain_alternatives_are_appended():
    variations = await generate_url_variations("https://docs.example.com/guide")

    assert variations[-2:] == ["https://example.com/guide", "https://www.example.com/guide"]


async def test_resolver_aliases_come_before_subdomain_alternatives():
    resolver = StaticResolver(["cdn.provider.net"])

    variations = await generate_url_variations("https://docs.example.com/", resolver)

    assert resolver.lookups == ["docs.example.com"]
    assert variations.index("https://cdn.provider.net/") < variations.index("https://example.com/")


async def test_resolver_failure_is_swallowed():
    with_broken = await generate_url_variations("https://docs.example.com/", BrokenResolver())
    without = await generate_url_variations("https://docs.example.com/")

    assert with_broken == without


async def test_ipv4_literal_has_no_host_variations():
    variations = await generate_url_variations("http://192.168.1.10/status")

    assert variations == ["http://192.168.1.10/status", "https://192.168.1.10/status"]


async def test_ipv6_literal_has_no_host_variations():
    variations = await generate_url_variations("http://[::1]:8080/x")

    assert variations == ["http://[::1]:8080/x", "https://[::1]:8080/x"]


async def test_unparseable_url_yields_itself():
    assert await generate_url_variations("not a url") == ["not a url"]


@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/page",
        "http://www.example.com",
        "https://a.b.c.example.co.uk/x?y=1",
        "https://example.com:8443/",
        "mailto:someone@example.com",
    ],
)
async def test_variations_are_non_empty_unique_and_start_with_input(url):
    variations = await generate_url_variations(url, StaticResolver(["alias.example.net"]))

    assert variations
    assert variations[0] == url
    assert len(variations) == len(set(variations))


def test_subdomain_alternatives():
    assert subdomain_alternatives("docs.example.com") == ["example.com", "www.example.com"]
    assert subdomain_alternatives("example.com") == []
    assert subdomain_alternatives("10.0.0.1") == []


def test_dedupe_keeps_first_occurrence():
    assert dedupe(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
