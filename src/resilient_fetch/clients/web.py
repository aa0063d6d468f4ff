import asyncio
import random
import time
import uuid
from collections.abc import Mapping
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from resilient_fetch.clients.dns import AliasResolver, SystemAliasResolver
from resilient_fetch.clients.transport import RequestsTransport, Transport
from resilient_fetch.config.config import AppConfig, FetchOptions, merge_fetch_options
from resilient_fetch.errors.web import WebClientCancelledError, WebClientTransportError
from resilient_fetch.markdown.converter import convert_to_markdown
from resilient_fetch.shared.cancellation import CancellationToken
from resilient_fetch.shared.logging import BASE_LOGGER
from resilient_fetch.shared.user_agents import USER_AGENTS, select_user_agent
from resilient_fetch.urls.validation import validate_url
from resilient_fetch.urls.variations import generate_url_variations

logger = BASE_LOGGER.getChild("web_client")

HTML_CONTENT_TYPE = "text/html"


class FetchRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="The URL the caller asked for.")
    options: FetchOptions = Field(..., description="Fully merged options for this call.")


class FetchAttemptResult(BaseModel):
    """Outcome of one request against one URL variation. Never leaves the orchestration loop."""

    succeeded: bool
    http_status: int | None = None
    headers: dict[str, str] | None = None
    content_type: str = ""
    raw_body: str | None = None
    error: str | None = None


class FetchSuccess(BaseModel):
    success: Literal[True] = True
    fetch_id: str
    url: str = Field(..., description="The URL variation that succeeded.")
    status: int
    headers: dict[str, str]
    content_type: str
    content: str = Field(..., description="The response body, converted to Markdown for HTML responses.")
    duration_ms: int


class FetchFailure(BaseModel):
    success: Literal[False] = False
    error: Literal[True] = True
    fetch_id: str
    message: str
    attempted_urls: list[str]
    duration_ms: int
    last_status: int | None = Field(None, description="HTTP status of the last failed attempt, if a response was received.")
    cancelled: bool = False


FetchOutcome: TypeAlias = FetchSuccess | FetchFailure


class WebClient:
    """
    A client for fetching documents over HTTP(S) and converting HTML responses to Markdown.

    Each fetch walks an ordered list of URL variations. Every variation gets its own retry budget
    with exponential backoff between attempts, and the first successful response ends the call.
    Ordinary network trouble never raises: every call resolves to a `FetchSuccess` or a
    `FetchFailure`. Only caller misuse (an invalid or disallowed URL, malformed options) raises.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        transport: Transport | None = None,
        resolver: AliasResolver | None = None,
        rng: random.Random | None = None,
    ):
        """Initializes the WebClient.

        Args:
            config: Process configuration. Built-in defaults when omitted.
            transport: HTTP transport. A `RequestsTransport` when omitted.
            resolver: DNS alias resolver. When omitted, a system resolver is used if the config enables DNS aliases.
            rng: Random source used to pick User-Agent strings.
        """
        self.config = config or AppConfig()
        self._owns_transport = transport is None
        self.transport: Transport = transport or RequestsTransport()
        if resolver is None and self.config.dns_aliases:
            resolver = SystemAliasResolver()
        self.resolver = resolver
        self.rng = rng or random.Random()
        logger.debug("WebClient initialized")

    def close(self) -> None:
        if self._owns_transport and isinstance(self.transport, RequestsTransport):
            self.transport.close()

    def build_request(self, url: str, options: FetchOptions | Mapping[str, Any] | None = None) -> FetchRequest:
        """Merge ``options`` onto the configured defaults and validate ``url``.

        Raises:
            ConfigurationError: If the merged options are invalid.
            URLValidationError: If the URL may not be fetched.
        """
        merged = merge_fetch_options(self.config.fetch, options)
        validate_url(url, self.config.security)
        return FetchRequest(url=url, options=merged)

    async def fetch(
        self,
        url: str,
        options: FetchOptions | Mapping[str, Any] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> FetchOutcome:
        """
        Fetches a URL, falling back through its variations until one succeeds.

        Args:
            url: The URL to fetch.
            options: Per-call overrides merged onto the configured fetch options.
            cancel_token: Token that aborts the whole call, including in-flight requests and backoff waits.

        Returns:
            A `FetchSuccess` for the first variation that answered with a 2xx status, otherwise a `FetchFailure`.

        Raises:
            ConfigurationError: If the merged options are invalid.
            URLValidationError: If the URL may not be fetched. Raised before any network activity.
        """
        request = self.build_request(url, options)
        return await self.execute(request, cancel_token=cancel_token)

    async def execute(self, request: FetchRequest, cancel_token: CancellationToken | None = None) -> FetchOutcome:
        token = cancel_token or CancellationToken()
        fetch_id = str(uuid.uuid4())
        started = time.perf_counter()

        options = request.options
        policy = options.retry_policy
        headers = self._request_headers(options)

        variations = await generate_url_variations(request.url, self.resolver)
        attempted: list[str] = []
        last_attempt: FetchAttemptResult | None = None

        logger.info(
            f"[{fetch_id}] Fetching {request.url} across {len(variations)} URL variations, {policy.attempts} attempts each",
            extra={"metadata": {"fetch_id": fetch_id, "variations": variations}},
        )

        try:
            for variation in variations:
                for attempt_index in range(policy.attempts):
                    token.raise_if_cancelled()
                    if attempt_index == 0:
                        attempted.append(variation)
                    last_attempt = await self._attempt(variation, headers, options, token)

                    if last_attempt.succeeded:
                        return self._success(fetch_id, started, variation, last_attempt, options)

                    logger.warning(
                        f"[{fetch_id}] Attempt {attempt_index + 1}/{policy.attempts} for {variation} failed: {last_attempt.error}",
                        extra={"metadata": {"fetch_id": fetch_id, "url": variation, "attempt": attempt_index, "status": last_attempt.http_status}},
                    )

                    if attempt_index + 1 < policy.attempts:
                        await token.sleep(policy.delay_seconds(attempt_index))
        except WebClientCancelledError:
            logger.warning(f"[{fetch_id}] Fetch of {request.url} cancelled after trying {len(attempted)} URL variations")
            return self._failure(fetch_id, started, f"Fetch of {request.url} was cancelled", attempted, last_attempt, cancelled=True)

        reason = last_attempt.error if last_attempt else "no URL variations"
        logger.error(f"[{fetch_id}] All URL variations failed for {request.url}: {reason}")
        return self._failure(fetch_id, started, f"All URL variations failed for {request.url}: {reason}", attempted, last_attempt)

    def _request_headers(self, options: FetchOptions) -> dict[str, str]:
        headers = dict(options.headers)
        if not any(name.lower() == "user-agent" for name in headers):
            headers["User-Agent"] = select_user_agent(self.rng) if self.config.rotate_user_agents else USER_AGENTS[0]
        return headers

    async def _attempt(self, url: str, headers: dict[str, str], options: FetchOptions, token: CancellationToken) -> FetchAttemptResult:
        try:
            async with asyncio.timeout(options.timeout_seconds):
                response = await token.guard(self.transport.get(url, headers, options.timeout_seconds))
        except TimeoutError:
            return FetchAttemptResult(succeeded=False, error=f"Request to {url} timed out after {options.timeout_ms} ms")
        except WebClientCancelledError:
            raise
        except WebClientTransportError as e:
            return FetchAttemptResult(succeeded=False, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error from transport while fetching {url}")
            return FetchAttemptResult(succeeded=False, error=f"An unexpected error occurred while fetching {url}: {type(e).__name__} - {e}")

        if not response.ok:
            return FetchAttemptResult(
                succeeded=False,
                http_status=response.status_code,
                headers=response.headers,
                content_type=response.content_type,
                error=f"HTTP error! status: {response.status_code}",
            )

        return FetchAttemptResult(
            succeeded=True,
            http_status=response.status_code,
            headers=response.headers,
            content_type=response.content_type,
            raw_body=response.text,
        )

    def _success(self, fetch_id: str, started: float, url: str, attempt: FetchAttemptResult, options: FetchOptions) -> FetchSuccess:
        headers = attempt.headers or {}
        content_type = attempt.content_type
        content = attempt.raw_body or ""

        if options.convert_to_markdown and HTML_CONTENT_TYPE in content_type.lower():
            content = convert_to_markdown(content, self.config.markdown)

        duration_ms = _elapsed_ms(started)
        logger.info(
            f"[{fetch_id}] Successfully fetched {url} in {duration_ms} ms",
            extra={"metadata": {"fetch_id": fetch_id, "url": url, "status": attempt.http_status, "duration_ms": duration_ms}},
        )
        return FetchSuccess(
            fetch_id=fetch_id,
            url=url,
            status=attempt.http_status or 200,
            headers=headers,
            content_type=content_type,
            content=content,
            duration_ms=duration_ms,
        )

    def _failure(
        self,
        fetch_id: str,
        started: float,
        message: str,
        attempted: list[str],
        last_attempt: FetchAttemptResult | None,
        cancelled: bool = False,
    ) -> FetchFailure:
        return FetchFailure(
            fetch_id=fetch_id,
            message=message,
            attempted_urls=attempted,
            duration_ms=_elapsed_ms(started),
            last_status=last_attempt.http_status if last_attempt else None,
            cancelled=cancelled,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
