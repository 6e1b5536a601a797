"""Home-network reachability gate.

Block/allow commands only make sense while the caller can reach the home
controller (normally: while on the home network). The gate answers that as
a point-in-time boolean.

Without a configured controller host the gate reports the last state it was
told about, starting out reachable; API callers flip it with
``mark_reachable()`` / ``mark_unreachable()``. With a host configured it
probes the controller over HTTPS and remembers the answer for ``cache_ttl``
seconds.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

import httpx
from cachetools import TTLCache

logger = logging.getLogger(__name__)

_UNCONFIGURED = "<unconfigured>"


@dataclass
class ReachabilityConfig:
    """Configuration for the reachability gate."""

    # Controller host (e.g., "192.168.1.1" or "unifi.lan"); None disables probing
    host: Optional[str] = None

    # Seconds before a probe gives up
    probe_timeout: float = 3.0

    # Seconds a probe result (or a mark_* call) is trusted
    cache_ttl: int = 30

    # Home controllers usually serve self-signed certificates
    verify_tls: bool = False


class ReachabilityGate:
    """Point-in-time "can we reach the controller" signal.

    Usage:
        gate = ReachabilityGate(ReachabilityConfig(host="192.168.1.1"))
        if gate.is_reachable:
            ...
    """

    def __init__(
        self,
        config: Optional[ReachabilityConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ReachabilityConfig()
        self._transport = transport
        self._state: TTLCache[str, bool] = TTLCache(
            maxsize=8, ttl=self.config.cache_ttl, timer=timer
        )
        self._manual_state = True

    @property
    def host(self) -> Optional[str]:
        return self.config.host

    @property
    def is_reachable(self) -> bool:
        """Whether control commands can be issued right now."""
        if self.config.host is None:
            return self._manual_state

        cached = self._state.get(self.config.host)
        if cached is not None:
            return cached

        reachable = self._probe(self.config.host)
        self._state[self.config.host] = reachable
        return reachable

    def configure(self, host: Optional[str]) -> None:
        """Point the gate at a (new) controller host; assume reachable until told otherwise."""
        logger.info(f"Reachability gate configured for host: {host}")
        self.config.host = host
        self._state.clear()
        self._manual_state = True
        if host is not None:
            self._state[host] = True

    def mark_reachable(self) -> None:
        """Record that a controller call just succeeded."""
        if not self._current():
            logger.info("Controller marked reachable after successful call")
        self._set(True)

    def mark_unreachable(self) -> None:
        """Record that a controller call just failed with a network error."""
        if self._current():
            logger.info("Controller marked unreachable after network error")
        self._set(False)

    def _current(self) -> bool:
        if self.config.host is None:
            return self._manual_state
        return self._state.get(self.config.host, True)

    def _set(self, reachable: bool) -> None:
        self._manual_state = reachable
        self._state[self.config.host or _UNCONFIGURED] = reachable

    def _probe(self, host: str) -> bool:
        """Probe the controller. Any HTTP response counts as reachable.

        Args:
            host: Controller host name or address

        Returns:
            True if the controller answered
        """
        url = f"https://{host}/"
        try:
            with httpx.Client(
                timeout=self.config.probe_timeout,
                verify=self.config.verify_tls,
                transport=self._transport,
            ) as client:
                resp = client.get(url)
            logger.debug(f"Reachability probe {url}: HTTP {resp.status_code}")
            return True
        except httpx.TimeoutException:
            logger.info(f"Reachability probe {url} timed out")
            return False
        except httpx.TransportError as e:
            logger.info(f"Reachability probe {url} failed: {e}")
            return False
