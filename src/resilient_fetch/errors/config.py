"""Custom exceptions for configuration loading."""


class ConfigurationError(Exception):
    """Error raised when configuration sources cannot be loaded or validated.

    This covers unreadable or malformed config files, environment variables that do not
    parse (for example a non-numeric ``FETCH_TIMEOUT``), and option overrides that fail
    validation.

    Example:
        >>> import os
        >>> raw = os.environ.get("FETCH_TIMEOUT", "ten seconds")
        >>> try:
        ...     timeout = int(raw)
        ... except ValueError as e:
        ...     raise ConfigurationError(f"FETCH_TIMEOUT must be an integer, got {raw!r}") from e

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)
