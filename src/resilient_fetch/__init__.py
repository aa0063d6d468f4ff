"""Resilient Fetch - fetch web pages through URL variations, retries and Markdown conversion.

This package fetches a URL by walking an ordered list of its variations (normalized form,
scheme swaps, ``www.`` toggles, DNS aliases and parent domains) with per-variation retries
and backoff, and converts HTML responses into Markdown.
"""

import functools
from collections.abc import Mapping
from typing import Any

from resilient_fetch.clients.web import FetchFailure, FetchOutcome, FetchSuccess, WebClient
from resilient_fetch.config.config import AppConfig, ConversionOptions, FetchOptions, SecurityOptions, load_config
from resilient_fetch.markdown.converter import convert_to_markdown
from resilient_fetch.shared.cancellation import CancellationToken
from resilient_fetch.urls.normalizer import normalize_url
from resilient_fetch.urls.validation import validate_url
from resilient_fetch.urls.variations import generate_url_variations

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "CancellationToken",
    "ConversionOptions",
    "FetchFailure",
    "FetchOptions",
    "FetchOutcome",
    "FetchSuccess",
    "SecurityOptions",
    "WebClient",
    "convert_to_markdown",
    "default_config",
    "fetch",
    "generate_url_variations",
    "get_version",
    "normalize_url",
    "validate_url",
]


def get_version() -> str:
    return __version__


@functools.cache
def default_config() -> AppConfig:
    """Process-wide configuration, loaded from the environment and config files on first use."""
    return load_config()


async def fetch(
    url: str,
    options: FetchOptions | Mapping[str, Any] | None = None,
    *,
    cancel_token: CancellationToken | None = None,
) -> FetchOutcome:
    """Fetch ``url`` with the process configuration. See `WebClient.fetch`."""
    client = WebClient(config=default_config())
    try:
        return await client.fetch(url, options, cancel_token=cancel_token)
    finally:
        client.close()
