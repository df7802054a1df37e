from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
import requests

from immogest.config import AppConfig
from immogest.data import queries
from immogest.data.models import PROPERTIES

logger = logging.getLogger(__name__)

# PostgREST error codes
NO_ROWS = "PGRST116"
TABLE_NOT_FOUND = "PGRST205"

OBJECT_ACCEPT = "application/vnd.pgrst.object+json"


class RemoteStoreError(RuntimeError):
    def __init__(
        self,
        message: str,
        operation: str = "",
        collection: str = "",
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.collection = collection
        self.code = code
        self.status_code = status_code


class RemoteNotFound(RemoteStoreError):
    """A single-row read matched no row."""


class RemoteUnavailable(RemoteStoreError):
    """The client was used without a configured endpoint."""


def auth_headers(cfg: AppConfig) -> dict[str, str]:
    key = cfg.supabase_key or ""
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def _error_from_response(operation: str, collection: str, resp: httpx.Response) -> RemoteStoreError:
    code = message = None
    try:
        body = resp.json()
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message")
    except ValueError:
        pass

    text = f"{operation} on {collection} failed ({resp.status_code}): {message or resp.reason_phrase}"
    if code == NO_ROWS:
        return RemoteNotFound(text, operation, collection, code, resp.status_code)
    if code == TABLE_NOT_FOUND:
        logger.error(
            "Table %s not found on the remote store: create the tables or reload the API schema cache",
            collection,
        )
    return RemoteStoreError(text, operation, collection, code, resp.status_code)


class RemoteStoreClient:
    """
    Async PostgREST client for the five portal collections.

    Every call either returns data or raises RemoteStoreError; "no rows" on a single-row
    read raises RemoteNotFound so callers can tell absence from failure.
    """

    def __init__(self, cfg: AppConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cfg = cfg
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    def _client(self, operation: str, collection: str) -> httpx.AsyncClient:
        if not self.cfg.remote_configured:
            raise RemoteUnavailable("Remote store is not configured", operation, collection)
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.cfg.rest_url,
                headers={**auth_headers(self.cfg), "Content-Type": "application/json"},
                timeout=self.cfg.remote_timeout_s,
                transport=self._transport,
            )
        return self._http

    async def _request(
        self,
        operation: str,
        method: str,
        collection: str,
        params: Optional[queries.Params] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        client = self._client(operation, collection)
        try:
            resp = await client.request(method, f"/{collection}", params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{operation} on {collection} failed: {type(e).__name__}", operation, collection) from e
        if resp.status_code >= 300:
            raise _error_from_response(operation, collection, resp)
        return resp

    @staticmethod
    def _payload(resp: httpx.Response, expected: type, operation: str, collection: str):
        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteStoreError(f"{operation} on {collection}: invalid JSON", operation, collection) from e
        if not isinstance(data, expected):
            raise RemoteStoreError(
                f"{operation} on {collection}: expected {expected.__name__}, got {type(data).__name__}",
                operation,
                collection,
            )
        return data

    async def select(self, collection: str, params: queries.Params) -> list[dict]:
        resp = await self._request("select", "GET", collection, params=params)
        return self._payload(resp, list, "select", collection)

    async def select_one(self, collection: str, params: queries.Params) -> dict:
        resp = await self._request("select_one", "GET", collection, params=params, headers={"Accept": OBJECT_ACCEPT})
        return self._payload(resp, dict, "select_one", collection)

    async def insert(self, collection: str, row: dict) -> dict:
        resp = await self._request(
            "insert",
            "POST",
            collection,
            params=[queries.select()],
            json=row,
            headers={"Prefer": "return=representation", "Accept": OBJECT_ACCEPT},
        )
        return self._payload(resp, dict, "insert", collection)

    async def update(self, collection: str, params: queries.Params, changes: dict) -> list[dict]:
        resp = await self._request(
            "update", "PATCH", collection, params=params, json=changes, headers={"Prefer": "return=representation"}
        )
        return self._payload(resp, list, "update", collection)

    async def delete(self, collection: str, params: queries.Params) -> list[dict]:
        resp = await self._request("delete", "DELETE", collection, params=params, headers={"Prefer": "return=representation"})
        return self._payload(resp, list, "delete", collection)

    async def count(self, collection: str) -> int:
        resp = await self._request("count", "HEAD", collection, params=queries.q_probe(), headers={"Prefer": "count=exact"})
        # Content-Range: "0-0/42" or "*/0"
        total = resp.headers.get("content-range", "").rpartition("/")[2]
        return int(total) if total.isdigit() else 0

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None


class AvailabilityProbe:
    """
    Decides once, up front, whether the remote store is worth trying.

    Never raises: a missing configuration, a network error, or a non-2xx answer all
    resolve to False.
    """

    def __init__(self, cfg: AppConfig):
        self.cfg = cfg
        self._available = self._check(network=cfg.probe_on_start)

    def is_available(self) -> bool:
        return self._available

    def refresh(self) -> bool:
        self._available = self._check(network=True)
        return self._available

    def _check(self, network: bool) -> bool:
        try:
            if not self.cfg.remote_configured:
                logger.info("Remote store not configured; using the local store")
                return False
            if not network:
                return True

            resp = requests.get(
                f"{self.cfg.rest_url}/{PROPERTIES}",
                params=queries.q_probe(),
                headers=auth_headers(self.cfg),
                timeout=self.cfg.remote_timeout_s,
            )
            if resp.status_code >= 300:
                logger.warning("Remote store probe answered %s", resp.status_code)
                return False
            logger.info("Remote store reachable at %s", self.cfg.rest_url)
            return True
        except Exception as e:
            logger.warning("Remote store probe failed: %s", type(e).__name__)
            return False


def get_remote_client(cfg: AppConfig) -> RemoteStoreClient:
    return RemoteStoreClient(cfg)
