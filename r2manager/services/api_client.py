"""HTTP adapter for the storage worker API."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..errors import TransportError
from ..listing.models import ListingPage
from ..models import ChunkReceipt

logger = logging.getLogger(__name__)


def _quote_key(key: str) -> str:
    return quote(key, safe="")


class HTTPTransport:
    """
    HTTP client adapter for the storage worker.

    Implements ITransport protocol.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPTransport not initialized. Use 'async with' context.")
        return self._client

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> None:
        if response.status_code < 400:
            return
        try:
            detail = response.json().get("error") or response.text
        except Exception:
            detail = response.text
        raise TransportError(
            f"API error {response.status_code} on {method} {endpoint}: {detail}",
            status_code=response.status_code,
        )

    async def _get(self, endpoint: str, params: Dict[str, str]) -> httpx.Response:
        """GET with retries on 5xx and connection errors (safe: GETs are idempotent)."""
        client = self._require_client()
        max_retries = 3

        for attempt in range(max_retries):
            try:
                response = await client.get(endpoint, params=params)
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                if attempt < max_retries - 1:
                    logger.debug(f"GET {endpoint} failed ({exc}), retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise TransportError(f"GET {endpoint} failed: {exc}") from exc

            if response.status_code >= 500 and attempt < max_retries - 1:
                logger.debug(f"GET {endpoint} returned {response.status_code}, retrying")
                await asyncio.sleep(0.5 * (attempt + 1))
                continue

            self._raise_for_status(response, "GET", endpoint)
            return response

        raise TransportError(f"Failed to GET {endpoint} after {max_retries} attempts")

    async def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Single attempt for non-idempotent requests."""
        client = self._require_client()
        try:
            response = await client.request(method, endpoint, **kwargs)
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise TransportError(f"{method} {endpoint} failed: {exc}") from exc
        self._raise_for_status(response, method, endpoint)
        return response

    async def list_objects(
        self,
        bucket: str,
        cursor: Optional[str] = None,
        limit: int = 1000,
        prefix: Optional[str] = None,
        skip_cache: bool = False,
    ) -> ListingPage:
        params = {"limit": str(limit)}
        if cursor:
            params["cursor"] = cursor
        if prefix:
            params["prefix"] = prefix
        if skip_cache:
            params["skipCache"] = "true"

        response = await self._get(f"/api/files/{bucket}", params)
        return ListingPage.from_response(response.json())

    async def upload_chunk(
        self,
        bucket: str,
        data: bytes,
        *,
        file_name: str,
        chunk_index: int,
        total_chunks: int,
        chunk_digest: str,
    ) -> ChunkReceipt:
        headers = {
            "X-File-Name": quote(file_name, safe=""),
            "X-Total-Chunks": str(total_chunks),
            "X-Chunk-Index": str(chunk_index),
            "X-Chunk-Digest": chunk_digest,
        }
        name = file_name.rsplit("/", 1)[-1]
        response = await self._send(
            "POST",
            f"/api/files/{bucket}/upload",
            headers=headers,
            files={"file": (name, data, "application/octet-stream")},
        )

        etag = response.headers.get("etag", "")
        if not etag:
            try:
                etag = response.json().get("etag") or ""
            except ValueError:
                etag = ""
        return ChunkReceipt(etag=etag)

    async def _transfer(
        self,
        kind: str,
        action: str,
        bucket: str,
        key: str,
        dest_bucket: str,
        dest_path: Optional[str],
    ) -> None:
        body = {"destinationBucket": dest_bucket}
        if dest_path is not None:
            body["destinationPath"] = dest_path
        await self._send("POST", f"/api/{kind}/{bucket}/{_quote_key(key)}/{action}", json=body)

    async def move_object(
        self, bucket: str, key: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        await self._transfer("files", "move", bucket, key, dest_bucket, dest_path)

    async def copy_object(
        self, bucket: str, key: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        await self._transfer("files", "copy", bucket, key, dest_bucket, dest_path)

    async def move_folder(
        self, bucket: str, path: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        await self._transfer("folders", "move", bucket, path.strip("/"), dest_bucket, dest_path)

    async def copy_folder(
        self, bucket: str, path: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        await self._transfer("folders", "copy", bucket, path.strip("/"), dest_bucket, dest_path)

    async def rename_folder(self, bucket: str, old_path: str, new_path: str) -> None:
        await self._send(
            "PATCH",
            f"/api/folders/{bucket}/rename",
            json={"oldPath": old_path, "newPath": new_path},
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        await self._send("DELETE", f"/api/files/{bucket}/delete/{_quote_key(key)}")

    async def rename_object(self, bucket: str, key: str, new_key: str) -> None:
        await self._send(
            "PATCH",
            f"/api/files/{bucket}/{_quote_key(key)}/rename",
            json={"newKey": new_key},
        )
