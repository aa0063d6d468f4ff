import asyncio
import sys

import click

from resilient_fetch import get_version
from resilient_fetch.clients.dns import SystemAliasResolver
from resilient_fetch.clients.web import FetchSuccess, WebClient
from resilient_fetch.config.config import AppConfig, load_config
from resilient_fetch.errors.config import ConfigurationError
from resilient_fetch.errors.web import URLValidationError
from resilient_fetch.markdown.converter import convert_to_markdown
from resilient_fetch.shared.logging import BASE_LOGGER, configure_logging
from resilient_fetch.urls.normalizer import normalize_url
from resilient_fetch.urls.variations import generate_url_variations

logger = BASE_LOGGER.getChild("main")

EXIT_OK = 0
EXIT_FETCH_FAILED = 1
EXIT_USAGE_ERROR = 2


def _load_config(config_file: str | None) -> AppConfig:
    try:
        return load_config(config_file)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_USAGE_ERROR)


def _parse_headers(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            msg = f"expected NAME:VALUE, got {value!r}"
            raise click.BadParameter(msg, ctx=ctx, param=param)
        headers[name.strip()] = content.strip()
    return headers


@click.group()
@click.version_option(get_version(), prog_name="resilient-fetch")
def cli():
    """Fetch web pages resiliently and convert them to Markdown."""


@cli.command()
@click.argument("url")
@click.option("--timeout-ms", type=click.IntRange(min=1), default=None, help="Per-attempt timeout in milliseconds")
@click.option("--retries", type=click.IntRange(min=1), default=None, help="Attempts per URL variation")
@click.option("--raw", is_flag=True, default=False, help="Return HTML as-is instead of converting it to Markdown")
@click.option("--header", "headers", multiple=True, callback=_parse_headers, help="Extra request header as NAME:VALUE")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full fetch outcome as JSON")
@click.option("--config-file", type=str, default=None, envvar="FETCH_CONFIG_FILE", help="Path to the config file")
@click.option("--debug", is_flag=True, default=False, envvar="DEBUG", help="Enable debug logging")
@click.option("--json-logs", is_flag=True, default=False, help="Emit logs as JSON records")
def fetch(
    url: str,
    timeout_ms: int | None,
    retries: int | None,
    raw: bool,
    headers: dict[str, str],
    as_json: bool,
    config_file: str | None,
    debug: bool,
    json_logs: bool,
):
    """
    Fetch URL, trying its variations until one answers.

    Exits 0 on success, 1 when every variation failed and 2 when the URL or the
    configuration is rejected.
    """
    config = _load_config(config_file)
    configure_logging("debug" if debug else config.log_level, structured=json_logs)

    options: dict = {"timeout_ms": timeout_ms, "max_retries": retries, "headers": headers or None}
    if raw:
        options["convert_to_markdown"] = False

    client = WebClient(config=config)
    try:
        outcome = asyncio.run(client.fetch(url, options))
    except (URLValidationError, ConfigurationError) as e:
        logger.error(f"Refusing to fetch {url}: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_USAGE_ERROR)
    finally:
        client.close()

    if as_json:
        click.echo(outcome.model_dump_json(indent=2))
    elif isinstance(outcome, FetchSuccess):
        click.echo(outcome.content)
    else:
        click.echo(outcome.message, err=True)

    sys.exit(EXIT_OK if outcome.success else EXIT_FETCH_FAILED)


@cli.command()
@click.argument("url")
def normalize(url: str):
    """Print the normalized form of URL."""
    click.echo(normalize_url(url))


@cli.command()
@click.argument("url")
@click.option("--dns", is_flag=True, default=False, help="Include CNAME aliases from the system resolver")
def variations(url: str, dns: bool):
    """Print the URL variations that would be tried for URL, one per line."""
    resolver = SystemAliasResolver() if dns else None
    for variation in asyncio.run(generate_url_variations(url, resolver)):
        click.echo(variation)


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("--config-file", type=str, default=None, envvar="FETCH_CONFIG_FILE", help="Path to the config file")
def convert(source, config_file: str | None):
    """Convert an HTML file (or stdin) to Markdown."""
    config = _load_config(config_file)
    click.echo(convert_to_markdown(source.read(), config.markdown))


if __name__ == "__main__":
    cli()
