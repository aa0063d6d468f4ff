"""Static User-Agent table used for outgoing requests."""
import random

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0",
    "resilient-fetch/0.1 (+https://pypi.org/project/resilient-fetch/)",
)


def select_user_agent(rng: random.Random, table: tuple[str, ...] = USER_AGENTS) -> str:
    """Pick a User-Agent from ``table`` using the caller's random source."""
    return table[rng.randrange(len(table))]
