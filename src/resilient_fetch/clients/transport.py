import asyncio
from typing import Protocol

import requests
from pydantic import BaseModel, Field, field_validator

from resilient_fetch.errors.web import WebClientTransportError, WebClientUnknownError
from resilient_fetch.shared.logging import BASE_LOGGER

logger = BASE_LOGGER.getChild("transport")


class TransportResponse(BaseModel):
    status_code: int = Field(..., description="The HTTP status code.")
    headers: dict[str, str] = Field(default_factory=dict, description="Response headers, names lowercased.")
    text: str = Field("", description="The decoded response body.")

    @field_validator("headers")
    @classmethod
    def lowercase_names(cls, headers: dict[str, str]) -> dict[str, str]:
        return {name.lower(): value for name, value in headers.items()}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class Transport(Protocol):
    """The narrow HTTP contract the fetch orchestrator depends on."""

    async def get(self, url: str, headers: dict[str, str], timeout: float) -> TransportResponse:
        """Perform a GET request.

        Raises:
            WebClientTransportError: For connection, DNS, TLS and timeout failures.
        """
        ...


class RequestsTransport:
    """
    Transport backed by the `requests` library.

    The blocking request runs in a worker thread so the event loop stays free. Cancelling the
    awaiting task abandons the thread's result; the ``timeout`` passed to requests bounds how
    long the thread itself can run.
    """

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()

    def _get(self, url: str, headers: dict[str, str], timeout: float) -> TransportResponse:
        try:
            response = self.session.get(url, headers=headers, timeout=timeout)
            text = response.text
        except requests.exceptions.RequestException as e:
            msg = f"Error fetching {url}: {type(e).__name__} - {e}"
            raise WebClientTransportError(msg) from e
        except Exception as e:  # Catch any other unexpected error during fetch
            msg = f"An unexpected error occurred while fetching {url}: {type(e).__name__} - {e}"
            logger.exception(msg)
            raise WebClientUnknownError(msg) from e

        return TransportResponse(status_code=response.status_code, headers=dict(response.headers), text=text)

    async def get(self, url: str, headers: dict[str, str], timeout: float) -> TransportResponse:
        logger.debug(f"GET {url}")
        return await asyncio.to_thread(self._get, url, headers, timeout)

    def close(self) -> None:
        self.session.close()
