"""Tests for the library REST client."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from changelog.library_client import LibraryClient


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


class TestLibraryClient:
    def test_token_is_required(self, monkeypatch):
        monkeypatch.setattr("changelog.library_client.settings.figma_token", "")
        with pytest.raises(ValueError):
            LibraryClient()

    def test_bearer_header(self):
        client = LibraryClient(token="tok", base_url="https://api.example.test/v1/")
        assert client.headers == {"Authorization": "Bearer tok"}
        assert client.base_url == "https://api.example.test/v1"

    @pytest.mark.asyncio
    async def test_get_file_components_flattens_sets(self):
        client = LibraryClient(token="tok")
        payload = {"meta": {"components": [
            {
                "key": "k1", "name": "Size=sm", "node_id": "1:1", "thumbnail_url": "https://t/1.png",
                "containing_frame": {"containingComponentSet": {"nodeId": "1:0", "name": "Button"}},
            },
            {"key": "k2", "name": "Avatar", "node_id": "2:0", "description": "Round"},
        ]}}

        with patch.object(client, "_request_with_retry", new=AsyncMock(return_value=_response(payload))) as mock_req:
            result = await client.get_file_components("LIB")

        mock_req.assert_awaited_once_with("get", f"{client.base_url}/files/LIB/components")
        assert result[0] == {
            "key": "k1",
            "name": "Size=sm",
            "description": "",
            "nodeId": "1:1",
            "thumbnailUrl": "https://t/1.png",
            "componentSetId": "1:0",
            "componentSetName": "Button",
        }
        assert result[1]["componentSetId"] is None
        assert result[1]["description"] == "Round"

    @pytest.mark.asyncio
    async def test_get_me_falls_back_to_email(self):
        client = LibraryClient(token="tok")
        payload = {"id": "u1", "email": "ana@example.test"}

        with patch.object(client, "_request_with_retry", new=AsyncMock(return_value=_response(payload))):
            me = await client.get_me()

        assert me == {"id": "u1", "name": "ana@example.test", "email": "ana@example.test"}

    @pytest.mark.asyncio
    async def test_get_component_snapshot(self):
        client = LibraryClient(token="tok")
        document = {
            "name": "Button",
            "absoluteBoundingBox": {"width": 120, "height": 40},
            "componentPropertyDefinitions": {"Label": {"type": "TEXT", "defaultValue": "Go"}},
            "boundVariables": {"fills": {"id": "V:1"}},
        }
        payload = {"nodes": {"1:0": {"document": document}}}

        with patch.object(client, "_request_with_retry", new=AsyncMock(return_value=_response(payload))) as mock_req:
            snapshot = await client.get_component_snapshot("LIB", "1:0", "button")

        mock_req.assert_awaited_once_with("get", f"{client.base_url}/files/LIB/nodes", params={"ids": "1:0"})
        assert snapshot.component_key == "button"
        assert snapshot.property_definitions["Label"].default == "Go"
        assert snapshot.variables_used == {"Button.fills": "V:1"}
        assert snapshot.geometry.width == 120.0

    @pytest.mark.asyncio
    async def test_missing_node_returns_none(self):
        client = LibraryClient(token="tok")
        with patch.object(client, "_request_with_retry", new=AsyncMock(return_value=_response({"nodes": {"1:0": None}}))):
            assert await client.get_component_snapshot("LIB", "1:0", "button") is None


class TestRequestWithRetry:
    @pytest.mark.asyncio
    async def test_retries_transient_status(self, monkeypatch):
        monkeypatch.setattr("changelog.library_client.asyncio.sleep", AsyncMock())
        client = LibraryClient(token="tok")
        request = httpx.Request("GET", "https://api.example.test/me")
        responses = [httpx.Response(503, request=request), httpx.Response(200, json={"ok": True}, request=request)]
        client._client.get = AsyncMock(side_effect=responses)

        resp = await client._request_with_retry("get", "https://api.example.test/me")

        assert resp.status_code == 200
        assert client._client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_retried(self):
        client = LibraryClient(token="bad")
        request = httpx.Request("GET", "https://api.example.test/me")
        client._client.get = AsyncMock(return_value=httpx.Response(403, request=request))

        with pytest.raises(httpx.HTTPStatusError, match="Authentication failed"):
            await client._request_with_retry("get", "https://api.example.test/me")
        assert client._client.get.await_count == 1

    @pytest.mark.asyncio
    async def test_connect_error_raised_after_last_attempt(self, monkeypatch):
        monkeypatch.setattr("changelog.library_client.asyncio.sleep", AsyncMock())
        client = LibraryClient(token="tok")
        client._client.get = AsyncMock(side_effect=httpx.ConnectError("down"))

        with pytest.raises(httpx.ConnectError):
            await client._request_with_retry("get", "https://api.example.test/me")
        assert client._client.get.await_count == 4

    @pytest.mark.asyncio
    async def test_backoff_doubles_until_status_error(self, monkeypatch):
        sleep = AsyncMock()
        monkeypatch.setattr("changelog.library_client.asyncio.sleep", sleep)
        client = LibraryClient(token="tok")
        request = httpx.Request("GET", "https://api.example.test/me")
        client._client.get = AsyncMock(return_value=httpx.Response(429, request=request))

        with pytest.raises(httpx.HTTPStatusError):
            await client._request_with_retry("get", "https://api.example.test/me")
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0]
        assert client._client.get.await_count == 4
