"""Design-tool REST client for reading a published component library."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from changelog.sandbox import collect_bound_variables
from changelog.snapshot import Snapshot
from registry.config import settings

logger = logging.getLogger(__name__)

# Errors worth retrying (transient)
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}
_MAX_RETRIES = 3
_BASE_DELAY = 1.0  # seconds


class LibraryClient:
    """Read-only client for the library file a project syncs against."""

    def __init__(self, token: str | None = None, base_url: str | None = None):
        self.token = token or settings.figma_token
        if not self.token:
            raise ValueError(
                "A library API token is required. "
                "Set CHANGELOG_FIGMA_TOKEN as an environment variable."
            )
        self.base_url = (base_url or settings.figma_api_base).rstrip("/")
        self.headers = {"Authorization": f"Bearer {self.token}"}
        self._client = httpx.AsyncClient(timeout=settings.library_request_timeout)

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> LibraryClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _backoff(self, attempt: int, reason: str, method: str, url: str) -> None:
        delay = _BASE_DELAY * (2 ** attempt)
        logger.warning(
            "%s on %s %s, retrying in %.1fs (attempt %d/%d)",
            reason, method.upper(), url, delay, attempt + 1, _MAX_RETRIES,
        )
        await asyncio.sleep(delay)

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, backing off on transient statuses and connection errors.

        The last attempt's response or exception is surfaced as-is, except
        that 401/403 become an authentication error naming the token setting.
        """
        send = getattr(self._client, method)
        attempt = 0
        while True:
            final = attempt >= _MAX_RETRIES
            try:
                resp = await send(url, headers=self.headers, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                if final:
                    raise
                await self._backoff(attempt, type(exc).__name__, method, url)
                attempt += 1
                continue

            if resp.status_code in _RETRYABLE_STATUS_CODES and not final:
                await self._backoff(attempt, f"Status {resp.status_code}", method, url)
                attempt += 1
                continue
            if resp.status_code in (401, 403):
                raise httpx.HTTPStatusError(
                    f"Authentication failed ({resp.status_code}) for {method.upper()} {url}. "
                    "Check that CHANGELOG_FIGMA_TOKEN is set correctly.",
                    request=resp.request,
                    response=resp,
                )
            resp.raise_for_status()
            return resp

    async def get_me(self) -> dict[str, str]:
        resp = await self._request_with_retry("get", f"{self.base_url}/me")
        data = resp.json()
        return {
            "id": data.get("id", ""),
            "name": data.get("handle") or data.get("email") or "unknown",
            "email": data.get("email") or "",
        }

    async def get_file_info(self, file_key: str) -> dict[str, Any]:
        resp = await self._request_with_retry(
            "get", f"{self.base_url}/files/{file_key}", params={"depth": 1},
        )
        return {"name": resp.json().get("name")}

    async def get_file_components(self, file_key: str) -> list[dict[str, Any]]:
        """Published components of a library file.

        Each entry carries key, name, description, nodeId, thumbnailUrl,
        componentSetId and componentSetName, ready for grouping.
        """
        resp = await self._request_with_retry("get", f"{self.base_url}/files/{file_key}/components")
        components = (resp.json().get("meta") or {}).get("components") or []
        result = []
        for c in components:
            containing_set = (c.get("containing_frame") or {}).get("containingComponentSet") or {}
            result.append({
                "key": c.get("key"),
                "name": c.get("name"),
                "description": c.get("description") or "",
                "nodeId": c.get("node_id"),
                "thumbnailUrl": c.get("thumbnail_url") or "",
                "componentSetId": containing_set.get("nodeId"),
                "componentSetName": containing_set.get("name"),
            })
        return result

    async def get_library_info(self, file_key: str) -> dict[str, Any]:
        info, components = await asyncio.gather(
            self.get_file_info(file_key),
            self.get_file_components(file_key),
        )
        return {"fileKey": file_key, "name": info["name"], "componentCount": len(components)}

    async def get_component_snapshot(self, file_key: str, node_id: str, component_key: str) -> Snapshot | None:
        """The library's copy of a component as a Snapshot, or None if absent."""
        resp = await self._request_with_retry(
            "get", f"{self.base_url}/files/{file_key}/nodes", params={"ids": node_id},
        )
        node = (resp.json().get("nodes") or {}).get(node_id)
        if not node or not node.get("document"):
            logger.info("Library file %s has no node %s", file_key, node_id)
            return None
        document = node["document"]
        return Snapshot.from_extracted({
            "componentKey": component_key,
            "snapshot": node,
            "propertyDefinitions": document.get("componentPropertyDefinitions"),
            "variablesUsed": collect_bound_variables(document),
        })

