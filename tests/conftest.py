import asyncio

import pytest

from resilient_fetch.clients.transport import TransportResponse
from resilient_fetch.config.config import AppConfig, FetchOptions, RetryPolicy
from resilient_fetch.errors.web import WebClientTransportError

HTML = "text/html; charset=utf-8"


class FakeTransport:
    """Scripted transport: each URL maps to a list of outcomes consumed one per call.

    An outcome is a ``(status, content_type, body)`` tuple, an exception instance to raise, or
    ``"hang"`` to block until cancelled. URLs without a script fail with a transport error.
    """

    def __init__(self, script: dict | None = None):
        self.script = {url: list(outcomes) for url, outcomes in (script or {}).items()}
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def get(self, url: str, headers: dict[str, str], timeout: float) -> TransportResponse:
        self.calls.append((url, dict(headers)))
        outcomes = self.script.get(url)
        if not outcomes:
            msg = f"Error fetching {url}: ConnectionError - refused"
            raise WebClientTransportError(msg)

        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if outcome == "hang":
            await asyncio.Event().wait()
        if isinstance(outcome, Exception):
            raise outcome

        status, content_type, body = outcome
        return TransportResponse(status_code=status, headers={"Content-Type": content_type}, text=body)

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


@pytest.fixture
def fast_config():
    """Config with three attempts per variation and no backoff waits."""
    return AppConfig(fetch=FetchOptions(timeout_ms=1000, retry_policy=RetryPolicy(attempts=3, min_timeout_ms=0)))


@pytest.fixture
def fake_transport():
    return FakeTransport()
