import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from janusleaf.client.server_resolver import ServerResolver
from janusleaf.core.errors import Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenStore(ABC):
    @abstractmethod
    def get(self) -> Optional[TokenPair]:
        ...

    @abstractmethod
    def save(self, tokens: TokenPair) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class InMemoryTokenStore(TokenStore):
    def __init__(self, tokens: Optional[TokenPair] = None):
        self._tokens = tokens
        self._lock = threading.Lock()

    def get(self) -> Optional[TokenPair]:
        with self._lock:
            return self._tokens

    def save(self, tokens: TokenPair) -> None:
        with self._lock:
            self._tokens = tokens

    def clear(self) -> None:
        with self._lock:
            self._tokens = None


class TokenRefresher(ABC):
    """Capability handed to API clients that need to renew an expired access token."""

    @abstractmethod
    def refresh(self) -> TokenPair:
        """
        Exchanges the stored refresh token for a new pair and stores it.

        Raises:
            Unauthorized: If there is no refresh token or it was rejected.
        """


class AuthApiTokenRefresher(TokenRefresher):
    """Refreshes tokens through `POST /auth/refresh`."""

    def __init__(self, resolver: ServerResolver, store: TokenStore, session: Optional[requests.Session] = None):
        self.resolver = resolver
        self.store = store
        self.session = session or requests.Session()

    def refresh(self) -> TokenPair:
        current = self.store.get()
        if current is None:
            raise Unauthorized("No refresh token available")

        server = self.resolver.resolve()
        try:
            response = self.session.post(
                f"{server}/auth/refresh",
                json={"refresh_token": current.refresh_token},
                timeout=self.resolver.health_timeout,
            )
        except requests.RequestException as e:
            self.resolver.report_failure(server)
            raise Unauthorized(f"Token refresh failed: {e}") from e

        if response.status_code != 200:
            raise Unauthorized("Session expired. Please log in again.")

        data = response.json()
        tokens = TokenPair(access_token=data["access_token"], refresh_token=data["refresh_token"])
        self.store.save(tokens)
        logger.debug("Access token refreshed")
        return tokens
