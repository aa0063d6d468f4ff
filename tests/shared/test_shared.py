import asyncio
import logging
import random
import socket

import orjson
import pytest

from resilient_fetch.clients.dns import NullAliasResolver, SystemAliasResolver
from resilient_fetch.errors.web import WebClientCancelledError
from resilient_fetch.shared.cancellation import CancellationToken
from resilient_fetch.shared.logging import BASE_LOGGER, TRACE, StructuredFormatter, configure_logging, resolve_level
from resilient_fetch.shared.user_agents import USER_AGENTS, select_user_agent


def test_user_agent_selection_is_deterministic_for_a_seed():
    first = [select_user_agent(random.Random(42)) for _ in range(3)]
    rng = random.Random(42)
    expected = USER_AGENTS[random.Random(42).randrange(len(USER_AGENTS))]

    assert first == [expected] * 3
    assert select_user_agent(rng) == expected


def test_user_agent_comes_from_table():
    rng = random.Random(0)

    assert all(select_user_agent(rng) in USER_AGENTS for _ in range(20))
    assert select_user_agent(rng, ("only",)) == "only"


def test_structured_formatter_emits_json():
    record = logging.LogRecord("resilient-fetch.web_client", logging.WARNING, __file__, 1, "Attempt %d failed", (2,), None)
    record.metadata = {"url": "https://example.com/"}

    entry = orjson.loads(StructuredFormatter().format(record))

    assert entry["level"] == "warning"
    assert entry["message"] == "Attempt 2 failed"
    assert entry["metadata"] == {"url": "https://example.com/", "logger": "resilient-fetch.web_client"}
    assert "timestamp" in entry


def test_resolve_level():
    assert resolve_level("trace") == TRACE
    assert resolve_level("WARN") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError):
        resolve_level("loud")


def test_configure_logging_sets_package_level():
    previous = BASE_LOGGER.level
    try:
        configure_logging("debug")
        assert BASE_LOGGER.level == logging.DEBUG
    finally:
        BASE_LOGGER.setLevel(previous)


async def test_token_sleep_returns_after_delay():
    await CancellationToken().sleep(0.01)


async def test_token_sleep_is_interrupted_by_cancel():
    token = CancellationToken()
    asyncio.get_running_loop().call_later(0.01, token.cancel)

    with pytest.raises(WebClientCancelledError):
        await asyncio.wait_for(token.sleep(30), timeout=2)


async def test_token_guard_returns_result():
    async def work():
        return 42

    assert await CancellationToken().guard(work()) == 42


async def test_token_guard_abandons_work_on_cancel():
    token = CancellationToken()
    started = asyncio.Event()

    async def never_finishes():
        started.set()
        await asyncio.Event().wait()

    asyncio.get_running_loop().call_later(0.01, token.cancel)

    with pytest.raises(WebClientCancelledError):
        await asyncio.wait_for(token.guard(never_finishes()), timeout=2)
    assert started.is_set()


async def test_null_resolver_finds_nothing():
    assert await NullAliasResolver().aliases("example.com") == []


async def test_system_resolver_returns_canonical_names(monkeypatch):
    def fake_lookup(hostname):
        return "Edge.CDN.example.net.", ["www.example.com", "alias.example.com"], ["203.0.113.7"]

    monkeypatch.setattr(socket, "gethostbyname_ex", fake_lookup)

    assert await SystemAliasResolver().aliases("www.example.com") == ["edge.cdn.example.net", "alias.example.com"]


async def test_system_resolver_swallows_lookup_errors(monkeypatch):
    def failing_lookup(hostname):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr(socket, "gethostbyname_ex", failing_lookup)

    assert await SystemAliasResolver().aliases("nope.invalid") == []
