import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

import requests

from janusleaf.client.server_resolver import ServerResolver
from janusleaf.client.tokens import TokenRefresher, TokenStore
from janusleaf.core.errors import NotFound, Unauthorized, VersionConflict

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


class JournalApiClient:
    """
    Authenticated client for the journal, analysis and inspiration endpoints.

    A 401 triggers exactly one token refresh followed by one retry. If the
    refresh fails the stored tokens are cleared and Unauthorized is raised.
    """

    def __init__(
        self,
        resolver: ServerResolver,
        store: TokenStore,
        refresher: TokenRefresher,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.resolver = resolver
        self.store = store
        self.refresher = refresher
        self.session = session or requests.Session()
        self.timeout = timeout

    def list_entries(self, skip: int = 0, limit: int = 100) -> List[Dict[str, Any]]:
        return self._request("GET", "/journals/all", params={"skip": skip, "limit": limit})

    def get_entry(self, entry_id: UUID) -> Dict[str, Any]:
        return self._request("GET", f"/journals/{entry_id}")

    def create_entry(self, title: Optional[str] = None, body: Optional[str] = None, entry_date: Optional[str] = None) -> Dict[str, Any]:
        payload = {"title": title, "body": body, "entry_date": entry_date}
        return self._request("POST", "/journals", json={k: v for k, v in payload.items() if v is not None})

    def update_body(self, entry_id: UUID, body: str, expected_version: Optional[int] = None) -> Dict[str, Any]:
        return self._request(
            "PUT", f"/journals/{entry_id}/body", json={"body": body, "expected_version": expected_version}
        )

    def update_metadata(self, entry_id: UUID, title: str, expected_version: Optional[int] = None) -> Dict[str, Any]:
        return self._request(
            "PUT", f"/journals/{entry_id}/metadata", json={"title": title, "expected_version": expected_version}
        )

    def delete_entry(self, entry_id: UUID) -> None:
        self._request("DELETE", f"/journals/{entry_id}")

    def get_quote(self) -> Optional[Dict[str, Any]]:
        """The user's quote, or None while it has not been generated yet."""
        try:
            return self._request("GET", "/inspiration")
        except NotFound:
            return None

    def pending_analysis_count(self) -> int:
        return self._request("GET", "/analysis/pending")["pending"]

    def _request(self, method: str, path: str, **kwargs) -> Any:
        tokens = self.store.get()
        if tokens is None:
            raise Unauthorized("Not logged in")

        response = self._send(method, path, tokens.access_token, **kwargs)
        if response.status_code == 401:
            logger.debug(f"{method} {path} returned 401, refreshing token")
            try:
                tokens = self.refresher.refresh()
            except Unauthorized:
                self.store.clear()
                raise
            response = self._send(method, path, tokens.access_token, **kwargs)
            if response.status_code == 401:
                self.store.clear()
                raise Unauthorized("Session expired. Please log in again.")

        return self._handle(response)

    def _send(self, method: str, path: str, access_token: str, **kwargs) -> requests.Response:
        server = self.resolver.resolve()
        try:
            return self.session.request(
                method,
                f"{server}{path}",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException:
            self.resolver.report_failure(server)
            raise

    @staticmethod
    def _handle(response: requests.Response) -> Any:
        if response.status_code == 404:
            raise NotFound(_detail(response, "Not found"))
        if response.status_code == 409:
            body = _json(response)
            raise VersionConflict(body.get("expected_version", -1), body.get("current_version", -1))
        if response.status_code == 401:
            raise Unauthorized(_detail(response, "Unauthorized"))
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _json(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _detail(response: requests.Response, default: str) -> str:
    return _json(response).get("detail") or default
