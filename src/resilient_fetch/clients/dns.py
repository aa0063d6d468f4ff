"""
Optional DNS enrichment for URL variations.

Resolvers only ever add alternate hostnames. Every lookup failure is reported as
"no aliases", so callers never depend on a resolver for correctness.
"""

import asyncio
import socket
from typing import Protocol

from resilient_fetch.shared.logging import BASE_LOGGER

logger = BASE_LOGGER.getChild("dns")


class AliasResolver(Protocol):
    async def aliases(self, hostname: str) -> list[str]: ...


class NullAliasResolver:
    """Resolver that never finds aliases."""

    async def aliases(self, hostname: str) -> list[str]:
        return []


class SystemAliasResolver:
    """Looks up the canonical name and aliases of a host through the system resolver.

    For a host served through a CNAME chain this yields the chain's canonical target, which is
    the hostname the CNAME lookup would return. The blocking lookup runs in a worker thread and
    is bounded by ``timeout`` seconds.
    """

    def __init__(self, timeout: float = 2.0):
        self.timeout = timeout

    async def aliases(self, hostname: str) -> list[str]:
        try:
            canonical, aliases, _ = await asyncio.wait_for(asyncio.to_thread(socket.gethostbyname_ex, hostname), timeout=self.timeout)
        except (OSError, TimeoutError, UnicodeError) as e:
            logger.debug(f"No DNS aliases for {hostname}: {type(e).__name__} - {e}")
            return []

        names = [canonical, *aliases]
        found = [name.rstrip(".").lower() for name in names if name and name.rstrip(".").lower() != hostname.lower()]
        return list(dict.fromkeys(found))
