"""Decide whether a call goes straight to the provider or through the host."""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from .. import config
from .host import HostProxy, HttpHostProxy

# Host integrations that cannot make network calls from the embedded UI
PROXYING_IDES: FrozenSet[str] = frozenset({"vscode"})


@dataclass(frozen=True)
class HostContext:
    """The host process this code runs inside, if any."""
    ide: str
    proxy: HostProxy


class RequestRouter:
    """Routes each call to the direct or the proxied path.

    Both paths take the same inputs and produce the same outputs; only the
    transport differs.
    """

    def __init__(self, host: Optional[HostContext] = None):
        """
        Initialize router.

        Args:
            host: Host context, None for a headless process
        """
        self.host = host

    def should_request_directly(self) -> bool:
        """True when this process performs network calls itself."""
        if self.host is None:
            return True
        return self.host.ide not in PROXYING_IDES

    @property
    def proxy(self) -> HostProxy:
        """The host proxy; only valid when ``should_request_directly`` is False."""
        if self.host is None:
            raise RuntimeError("No host process to proxy through")
        return self.host.proxy


# Global router instance
_router: Optional[RequestRouter] = None


def get_router() -> RequestRouter:
    """Get the global router, built from LLM_HOST_IDE / LLM_HOST_URL on first use."""
    global _router
    if _router is None:
        host = None
        if config.HOST_IDE and config.HOST_URL:
            host = HostContext(ide=config.HOST_IDE, proxy=HttpHostProxy(config.HOST_URL))
        _router = RequestRouter(host)
    return _router
