import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator, model_validator

from resilient_fetch.errors.config import ConfigurationError
from resilient_fetch.shared.logging import BASE_LOGGER, LOG_LEVELS

logger = BASE_LOGGER.getChild("config")

DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
}

DEFAULT_BLOCKED_TLDS = [".tk", ".ml", ".ga", ".cf", ".gq"]

CONFIG_FILE_NAMES = ("resilient-fetch.yaml", "resilient-fetch.json")

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


class RetryPolicy(BaseModel):
    attempts: int = Field(3, ge=1, description="Attempts made against each URL variation before moving on.")
    backoff_factor: float = Field(2.0, ge=1.0, description="Multiplier applied to the wait after every failed attempt.")
    min_timeout_ms: int = Field(1000, ge=0, description="Wait before the first retry, in milliseconds.")

    def delay_seconds(self, attempt_index: int) -> float:
        """Wait after the failed attempt ``attempt_index`` (0-based): ``min_timeout × factor^attempt_index``."""
        return self.min_timeout_ms * self.backoff_factor**attempt_index / 1000


class FetchOptions(BaseModel):
    """Options for a single fetch call.

    ``max_retries`` is an alias of ``retry_policy.attempts``: it is accepted on input and
    reported on output, but the retry policy is the single place the budget is stored.
    """

    model_config = ConfigDict(extra="forbid")

    timeout_ms: int = Field(10000, gt=0, description="Per-attempt timeout in milliseconds.")
    convert_to_markdown: bool = Field(True, description="Convert text/html responses to Markdown.")
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS), description="Request headers.")
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy, description="Retry and backoff settings.")

    @model_validator(mode="before")
    @classmethod
    def fold_max_retries(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return fold_retry_budget(data)
        return data

    @field_validator("headers")
    @classmethod
    def latin1_headers(cls, headers: dict[str, str]) -> dict[str, str]:
        # HTTP/1.1 header fields are sent as latin-1
        for name, value in headers.items():
            try:
                name.encode("latin-1")
                value.encode("latin-1")
            except UnicodeEncodeError:
                msg = f"Header {name!r} must contain only latin-1 characters"
                raise ValueError(msg) from None
        return headers

    @computed_field
    @property
    def max_retries(self) -> int:
        return self.retry_policy.attempts

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class SecurityOptions(BaseModel):
    allowed_protocols: list[str] = Field(default_factory=lambda: ["http", "https"], description="URL schemes that may be fetched.")
    allowed_domains: list[str] = Field(default_factory=list, description="When non-empty, only these domains (and subdomains) may be fetched.")
    blocked_domains: list[str] = Field(default_factory=list, description="Domains (and subdomains) that may never be fetched.")
    blocked_tlds: list[str] = Field(default_factory=lambda: list(DEFAULT_BLOCKED_TLDS), description="Top-level domains that are refused.")
    max_url_length: int = Field(2048, gt=0, description="Longest URL accepted.")

    @field_validator("allowed_protocols", "allowed_domains", "blocked_domains", "blocked_tlds")
    @classmethod
    def lowercase_entries(cls, values: list[str]) -> list[str]:
        return [value.strip().lower().rstrip(":") for value in values if value.strip()]


class ConversionOptions(BaseModel):
    heading_style: Literal["atx", "setext"] = Field("atx", description="`#` prefixed headings or underlined headings.")
    bullet_list_marker: Literal["-", "*", "+"] = Field("-", description="Marker used for unordered list items.")
    code_block_style: Literal["fenced", "indented"] = Field("fenced", description="How <pre> blocks are emitted.")
    fence: str = Field("```", pattern=r"^(`{3,}|~{3,})$", description="Fence used for fenced code blocks.")
    em_delimiter: Literal["_", "*"] = Field("_", description="Delimiter for emphasis.")
    strong_delimiter: Literal["**", "__"] = Field("**", description="Delimiter for strong emphasis.")
    hr: str = Field("---", description="Horizontal rule.")


class AppConfig(BaseModel):
    fetch: FetchOptions = Field(default_factory=FetchOptions, description="Defaults for every fetch call.")
    security: SecurityOptions = Field(default_factory=SecurityOptions, description="URL validation rules.")
    markdown: ConversionOptions = Field(default_factory=ConversionOptions, description="Markdown conversion options.")
    log_level: str = Field("info", description="One of error, warn, info, debug, trace.")
    rotate_user_agents: bool = Field(True, description="Pick a random User-Agent per call instead of the first table entry.")
    dns_aliases: bool = Field(False, description="Look up CNAME aliases when generating URL variations.")

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in LOG_LEVELS:
            msg = f"log_level must be one of {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return level

    def with_fetch_options(self, overrides: FetchOptions | Mapping[str, Any] | None) -> Self:
        """Return a copy whose fetch defaults have ``overrides`` merged in."""
        return self.model_copy(update={"fetch": merge_fetch_options(self.fetch, overrides)})


def fold_retry_budget(data: Mapping[str, Any]) -> dict[str, Any]:
    """Move a ``max_retries`` key into ``retry_policy.attempts`` within one layer of options."""
    folded = dict(data)
    if "max_retries" not in folded:
        return folded

    max_retries = folded.pop("max_retries")
    if max_retries is None:
        return folded

    policy = folded.get("retry_policy") or {}
    policy = policy.model_dump(exclude_unset=True) if isinstance(policy, RetryPolicy) else dict(policy)

    attempts = policy.get("attempts")
    if attempts is not None and attempts != max_retries:
        msg = f"max_retries ({max_retries}) and retry_policy.attempts ({attempts}) disagree"
        raise ValueError(msg)

    policy["attempts"] = max_retries
    folded["retry_policy"] = policy
    return folded


def merge_options(base: Mapping[str, Any], *overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge option layers onto ``base``, later layers winning.

    Nested mappings are merged key by key, lists become a de-duplicated union in first-seen
    order, other values are overwritten. ``None`` never overwrites anything.
    """
    merged: dict[str, Any] = dict(base)

    for layer in overrides:
        if not layer:
            continue
        for key, value in layer.items():
            current = merged.get(key)
            if value is None:
                continue
            if isinstance(current, list) and isinstance(value, list):
                merged[key] = list(dict.fromkeys([*current, *value]))
            elif isinstance(current, Mapping) and isinstance(value, Mapping):
                merged[key] = merge_options(current, value)
            else:
                merged[key] = value

    return merged


def merge_fetch_options(defaults: FetchOptions, overrides: FetchOptions | Mapping[str, Any] | None) -> FetchOptions:
    """Merge caller overrides onto default fetch options.

    Raises:
        ConfigurationError: If the merged options do not validate.
    """
    if overrides is None:
        return defaults

    try:
        layer = overrides.model_dump(exclude_unset=True, exclude={"max_retries"}) if isinstance(overrides, FetchOptions) else fold_retry_budget(overrides)
        merged = merge_options(defaults.model_dump(exclude={"max_retries"}), layer)
        return FetchOptions.model_validate(merged)
    except (ValidationError, ValueError) as e:
        msg = f"Invalid fetch options: {e}"
        raise ConfigurationError(msg) from e


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from e


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean, got {raw!r}"
    raise ConfigurationError(msg)


def _parse_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_env_config(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read configuration overrides from ``FETCH_*`` environment variables. Empty variables are ignored."""
    environ = os.environ if environ is None else environ

    def get(name: str) -> str | None:
        value = environ.get(name)
        return value if value and value.strip() else None

    fetch: dict[str, Any] = {}
    security: dict[str, Any] = {}
    config: dict[str, Any] = {}

    if raw := get("FETCH_TIMEOUT"):
        fetch["timeout_ms"] = _parse_int("FETCH_TIMEOUT", raw)
    if raw := get("FETCH_MAX_RETRIES"):
        fetch["max_retries"] = _parse_int("FETCH_MAX_RETRIES", raw)
    if raw := get("FETCH_CONVERT_TO_MARKDOWN"):
        fetch["convert_to_markdown"] = _parse_bool("FETCH_CONVERT_TO_MARKDOWN", raw)
    if raw := get("FETCH_ALLOWED_DOMAINS"):
        security["allowed_domains"] = _parse_list(raw)
    if raw := get("FETCH_BLOCKED_DOMAINS"):
        security["blocked_domains"] = _parse_list(raw)
    if raw := get("FETCH_LOG_LEVEL"):
        config["log_level"] = raw
    if raw := get("FETCH_DNS_ALIASES"):
        config["dns_aliases"] = _parse_bool("FETCH_DNS_ALIASES", raw)

    if fetch:
        config["fetch"] = fetch
    if security:
        config["security"] = security
    return config


def find_config_file(cwd: Path | None = None, home: Path | None = None) -> Path | None:
    """Return the first config file found in the working directory, then the home directory."""
    cwd = cwd or Path.cwd()
    home = home or Path.home()

    candidates = [cwd / name for name in CONFIG_FILE_NAMES] + [home / f".{name}" for name in CONFIG_FILE_NAMES]
    return next((path for path in candidates if path.is_file()), None)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON config file into a mapping."""
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        msg = f"Could not load config from {path}: {e}"
        raise ConfigurationError(msg) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Config file {path} must contain a mapping, got {type(data).__name__}"
        raise ConfigurationError(msg)

    logger.debug(f"Loaded config file {path}")
    return data


def load_config(
    config_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
) -> AppConfig:
    """Build the process configuration.

    Priority: environment variables > config file > built-in defaults.

    Args:
        config_file: Explicit config file. When omitted the working directory and home directory are searched.
        environ: Environment to read instead of ``os.environ``.
        cwd: Directory searched first for a config file.
        home: Directory searched second for a dot-prefixed config file.

    Raises:
        ConfigurationError: If a source cannot be read or the merged configuration is invalid.
    """
    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            msg = f"Config file not found: {path}"
            raise ConfigurationError(msg)
    else:
        path = find_config_file(cwd=cwd, home=home)

    file_config = load_config_file(path) if path else {}
    env_config = load_env_config(environ)

    try:
        layers = [_fold_fetch_layer(layer) for layer in (file_config, env_config)]
        defaults = AppConfig().model_dump(exclude={"fetch": {"max_retries"}})
        return AppConfig.model_validate(merge_options(defaults, *layers))
    except (ValidationError, ValueError) as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigurationError(msg) from e


def _fold_fetch_layer(layer: dict[str, Any]) -> dict[str, Any]:
    fetch = layer.get("fetch")
    if not isinstance(fetch, Mapping):
        return layer
    return {**layer, "fetch": fold_retry_budget(fetch)}
