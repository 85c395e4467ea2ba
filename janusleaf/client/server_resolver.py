import datetime
import logging
import threading
from typing import List, Optional, Sequence

import requests

from janusleaf.core.clock import Clock, utcnow

logger = logging.getLogger(__name__)

CACHE_VALIDITY = datetime.timedelta(minutes=5)
HEALTH_TIMEOUT_SECONDS = 5


class ServerResolver:
    """
    Picks the first reachable API server from an ordered list.

    The choice is cached for `cache_validity`; a failure reported against the
    cached server drops the cache so the next call probes again. When no
    server answers its health check the first one is returned anyway.
    """

    def __init__(
        self,
        servers: Sequence[str],
        session: Optional[requests.Session] = None,
        clock: Clock = utcnow,
        cache_validity: datetime.timedelta = CACHE_VALIDITY,
        health_timeout: float = HEALTH_TIMEOUT_SECONDS,
    ):
        if not servers:
            raise ValueError("At least one server URL is required")
        self.servers: List[str] = [s.rstrip("/") for s in servers]
        self.session = session or requests.Session()
        self.clock = clock
        self.cache_validity = cache_validity
        self.health_timeout = health_timeout
        self._lock = threading.Lock()
        self._cached: Optional[str] = None
        self._checked_at: Optional[datetime.datetime] = None

    def _cache_valid(self) -> bool:
        return (
            self._cached is not None
            and self._checked_at is not None
            and self.clock() - self._checked_at < self.cache_validity
        )

    def resolve(self) -> str:
        """Returns the base URL to use, probing servers if the cache expired."""
        if self._cache_valid():
            return self._cached

        with self._lock:
            # Another caller may have probed while we waited
            if self._cache_valid():
                return self._cached

            for server in self.servers:
                if self.is_healthy(server):
                    logger.info(f"Using server {server}")
                    self._cached = server
                    self._checked_at = self.clock()
                    return server

            logger.warning(f"No server responded, defaulting to {self.servers[0]}")
            return self.servers[0]

    def is_healthy(self, server: str) -> bool:
        try:
            response = self.session.get(f"{server}/health", timeout=self.health_timeout)
        except requests.RequestException as e:
            logger.debug(f"Health check failed for {server}: {e}")
            return False
        return response.status_code == 200

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
            self._checked_at = None

    def report_failure(self, server: str) -> None:
        """Drops the cached choice if it is the server that just failed."""
        with self._lock:
            if self._cached == server.rstrip("/"):
                logger.warning(f"Server {server} reported as failing, re-probing on next call")
                self._cached = None
                self._checked_at = None
