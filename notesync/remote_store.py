"""
Remote note stores.

The remote store is the primary, shared document store. Stores are
synchronous (they run in a worker thread via asyncio.to_thread) and report
every availability problem as BackendUnavailable, which is the only error
that makes the gateway fall back to the local store.

Wire format for HttpRemoteStore: a note is the JSON of Note.to_dict().

    POST   /v1/notes                 create, returns the stored note
    GET    /v1/notes/{id}            read, 404 if absent
    PUT    /v1/notes/{id}            create-or-replace, returns the stored note
    DELETE /v1/notes/{id}            delete, 404 if absent
    GET    /v1/notes?owner_id={id}   {"notes": [...]}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable
from urllib.parse import urlparse

import httpx

from .errors import AccessDenied, BackendUnavailable
from .types import Note

if TYPE_CHECKING:
    from .config import StoreConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@runtime_checkable
class RemoteStoreProtocol(Protocol):
    """
    Interface for the primary note store.

    Implementations raise BackendUnavailable when the store cannot be used,
    and AccessDenied when the store itself refuses the caller.
    """

    def create(self, note: Note) -> Note:
        ...

    def get(self, note_id: str) -> Optional[Note]:
        ...

    def update(self, note: Note) -> Note:
        """Create or replace the note with this id."""
        ...

    def delete(self, note_id: str) -> bool:
        ...

    def query_by_owner(self, owner_id: str) -> list[Note]:
        ...


class OfflineRemoteStore:
    """Used when no remote URL is configured: every call is unavailable."""

    def _unavailable(self) -> BackendUnavailable:
        return BackendUnavailable("No remote store configured")

    def create(self, note: Note) -> Note:
        raise self._unavailable()

    def get(self, note_id: str) -> Optional[Note]:
        raise self._unavailable()

    def update(self, note: Note) -> Note:
        raise self._unavailable()

    def delete(self, note_id: str) -> bool:
        raise self._unavailable()

    def query_by_owner(self, owner_id: str) -> list[Note]:
        raise self._unavailable()

    def close(self) -> None:
        pass


class HttpRemoteStore:
    """
    HTTP client for a notes service.

    Args:
        api_url: Base URL of the service (HTTPS unless localhost)
        api_key: Bearer token, optional
        timeout: Request timeout in seconds
        client: Pre-built httpx.Client (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        self._api_url = api_url.rstrip("/")

        # Refuse non-HTTPS for remote APIs (bearer token would be sent in cleartext)
        if api_key and not self._api_url.startswith("https://"):
            host = urlparse(self._api_url).hostname or ""
            if host not in ("localhost", "127.0.0.1", "::1"):
                raise ValueError(
                    f"Remote store URL must use HTTPS (got {self._api_url}). "
                    "Use HTTPS to protect API credentials, or use localhost for local development."
                )

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        if client is None:
            client = httpx.Client(base_url=self._api_url, timeout=timeout)
        client.headers.update(headers)
        self._client = client

    def _request(
        self, method: str, path: str, *, note_id: str = "", **kwargs: Any,
    ) -> Optional[httpx.Response]:
        """
        Send a request and map failures onto the error taxonomy.

        Returns None for 404.
        """
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BackendUnavailable(f"{method} {path} failed: {e}") from e

        status = resp.status_code
        if status == 404:
            return None
        if status == 403:
            raise AccessDenied(note_id, "remote caller")
        if status == 429:
            raise BackendUnavailable(f"{method} {path} rate limited")
        if status >= 400:
            raise BackendUnavailable(f"{method} {path} returned {status}")
        return resp

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise BackendUnavailable(f"Malformed response from {resp.request.url}") from e

    def _note_from(self, resp: httpx.Response) -> Note:
        data = self._decode(resp)
        try:
            return Note.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise BackendUnavailable(f"Malformed note in response: {e}") from e

    def create(self, note: Note) -> Note:
        """POST /v1/notes -> stored note."""
        resp = self._request("POST", "/v1/notes", note_id=note.id, json=note.to_dict())
        if resp is None:
            raise BackendUnavailable("POST /v1/notes returned 404")
        return self._note_from(resp)

    def get(self, note_id: str) -> Optional[Note]:
        """GET /v1/notes/{id} -> note, or None if absent."""
        resp = self._request("GET", f"/v1/notes/{note_id}", note_id=note_id)
        if resp is None:
            return None
        return self._note_from(resp)

    def update(self, note: Note) -> Note:
        """PUT /v1/notes/{id} -> stored note."""
        resp = self._request(
            "PUT", f"/v1/notes/{note.id}", note_id=note.id, json=note.to_dict(),
        )
        if resp is None:
            raise BackendUnavailable(f"PUT /v1/notes/{note.id} returned 404")
        return self._note_from(resp)

    def delete(self, note_id: str) -> bool:
        """DELETE /v1/notes/{id} -> True if it existed."""
        return self._request("DELETE", f"/v1/notes/{note_id}", note_id=note_id) is not None

    def query_by_owner(self, owner_id: str) -> list[Note]:
        """GET /v1/notes?owner_id=... -> notes owned by owner_id."""
        resp = self._request("GET", "/v1/notes", params={"owner_id": owner_id})
        if resp is None:
            return []
        data = self._decode(resp)
        items = data.get("notes") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise BackendUnavailable("Malformed note listing in response")
        try:
            return [Note.from_dict(item) for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            raise BackendUnavailable(f"Malformed note in listing: {e}") from e

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()


def create_remote_store(config: "StoreConfig") -> RemoteStoreProtocol:
    """HttpRemoteStore when [remote] url is set, OfflineRemoteStore otherwise."""
    if not config.remote.url:
        logger.debug("No remote URL configured, notes are stored locally")
        return OfflineRemoteStore()
    return HttpRemoteStore(
        config.remote.url,
        config.remote_api_key,
        timeout=config.remote.timeout,
    )
