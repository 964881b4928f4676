"""Unit tests for clients/influxdb.py - InfluxDB HTTP client."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from clients.influxdb import APIError, InfluxDBClient, InfluxDBError
from config import InfluxDBConfig


def mock_session_cls_for(mock_session_cls, status=200, body=None, text=None):
    """Wire a patched aiohttp.ClientSession to answer with one response."""
    mock_resp = AsyncMock()
    mock_resp.status = status
    if text is None:
        text = json.dumps(body) if body is not None else ""
    mock_resp.text = AsyncMock(return_value=text)

    mock_session = AsyncMock()
    mock_session.request = MagicMock(
        return_value=AsyncMock(
            __aenter__=AsyncMock(return_value=mock_resp),
            __aexit__=AsyncMock(return_value=False),
        )
    )

    mock_session_cls.return_value = AsyncMock(
        __aenter__=AsyncMock(return_value=mock_session),
        __aexit__=AsyncMock(return_value=False),
    )
    return mock_session


class TestAPIError:
    """Tests for APIError."""

    def test_message_includes_status(self):
        err = APIError(500, "internal error")
        assert err.status == 500
        assert err.message == "HTTP 500: internal error"

    def test_not_found(self):
        assert APIError(404, "not found").not_found is True
        assert APIError(400, "bad request").not_found is False

    def test_is_influxdb_error(self):
        assert isinstance(APIError(404, "x"), InfluxDBError)


class TestInfluxDBClientInit:
    """Tests for client construction."""

    def test_api_base_url(self):
        client = InfluxDBClient("http://influx:8086/", token="t")
        assert client.api_base_url == "http://influx:8086/api/v2"

    def test_from_config(self):
        cfg = InfluxDBConfig(endpoint="http://db:8086", token="secret", timeout=5)
        client = InfluxDBClient.from_config(cfg)
        assert client.endpoint == "http://db:8086"
        assert client.token == "secret"
        assert client.timeout == 5

    def test_headers_with_token(self):
        client = InfluxDBClient("http://influx:8086", token="secret")
        headers = client._get_headers()
        assert headers["Authorization"] == "Token secret"

    def test_headers_without_token(self):
        client = InfluxDBClient("http://influx:8086")
        assert "Authorization" not in client._get_headers()


@pytest.mark.asyncio
class TestOrganizationEndpoints:
    """Tests for the organization endpoints."""

    @pytest.fixture
    def client(self):
        return InfluxDBClient("http://influx:8086", token="secret")

    async def test_find_organization_by_name(self, client, sample_org_response):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(
                mock_session_cls, body={"orgs": [sample_org_response]}
            )
            org = await client.find_organization_by_name("my-org")

        assert org["id"] == "0a1b2c3d4e5f6a7b"
        args, kwargs = session.request.call_args
        assert args == ("GET", "http://influx:8086/api/v2/orgs")
        assert kwargs["params"] == {"org": "my-org"}
        assert kwargs["headers"]["Authorization"] == "Token secret"

    async def test_find_organization_empty_list(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            mock_session_cls_for(mock_session_cls, body={"orgs": []})
            with pytest.raises(InfluxDBError, match="organization 'gone' not found"):
                await client.find_organization_by_name("gone")

    async def test_create_organization(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(
                mock_session_cls, status=201, body={"id": "abc", "name": "my-org"}
            )
            resp = await client.create_organization({"name": "my-org"})

        assert resp["id"] == "abc"
        args, kwargs = session.request.call_args
        assert args == ("POST", "http://influx:8086/api/v2/orgs")
        assert kwargs["json"] == {"name": "my-org"}

    async def test_update_organization_patches_by_id(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(mock_session_cls, body={"id": "abc"})
            await client.update_organization(
                {"id": "abc", "name": "my-org", "description": "new"}
            )

        args, kwargs = session.request.call_args
        assert args == ("PATCH", "http://influx:8086/api/v2/orgs/abc")
        assert kwargs["json"] == {"name": "my-org", "description": "new"}

    async def test_delete_organization_no_content(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(mock_session_cls, status=204)
            result = await client.delete_organization("abc")

        assert result is None
        args, _ = session.request.call_args
        assert args == ("DELETE", "http://influx:8086/api/v2/orgs/abc")

    async def test_error_status_raises_api_error(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            mock_session_cls_for(
                mock_session_cls,
                status=404,
                body={"code": "not found", "message": "organization not found"},
            )
            with pytest.raises(APIError) as exc_info:
                await client.delete_organization("abc")

        assert exc_info.value.not_found
        assert exc_info.value.message == "HTTP 404: organization not found"

    async def test_error_with_plain_text_body(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            mock_session_cls_for(mock_session_cls, status=502, text="Bad Gateway")
            with pytest.raises(APIError, match="HTTP 502: Bad Gateway"):
                await client.create_organization({"name": "my-org"})


@pytest.mark.asyncio
class TestBucketEndpoints:
    """Tests for the bucket endpoints."""

    @pytest.fixture
    def client(self):
        return InfluxDBClient("http://influx:8086", token="secret")

    async def test_find_bucket_by_name(self, client, sample_bucket_response):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(
                mock_session_cls, body={"buckets": [sample_bucket_response]}
            )
            bucket = await client.find_bucket_by_name("metrics")

        assert bucket["id"] == "b0b1b2b3b4b5b6b7"
        _, kwargs = session.request.call_args
        assert kwargs["params"] == {"name": "metrics"}

    async def test_find_bucket_empty_list(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            mock_session_cls_for(mock_session_cls, body={"buckets": []})
            with pytest.raises(InfluxDBError, match="bucket 'metrics' not found"):
                await client.find_bucket_by_name("metrics")

    async def test_update_bucket_sends_mutable_fields(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(mock_session_cls, body={})
            await client.update_bucket(
                {
                    "id": "b1",
                    "name": "metrics",
                    "orgID": "o1",
                    "description": "d",
                    "retentionRules": [],
                }
            )

        args, kwargs = session.request.call_args
        assert args == ("PATCH", "http://influx:8086/api/v2/buckets/b1")
        assert kwargs["json"] == {
            "name": "metrics",
            "description": "d",
            "retentionRules": [],
        }


@pytest.mark.asyncio
class TestDBRPEndpoints:
    """Tests for the DBRP endpoints."""

    @pytest.fixture
    def client(self):
        return InfluxDBClient("http://influx:8086", token="secret")

    async def test_get_dbrps_drops_unset_params(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(
                mock_session_cls, body={"content": [{"id": "abc123"}]}
            )
            resp = await client.get_dbrps(org="my-org", dbrp_id="abc123")

        assert resp["content"][0]["id"] == "abc123"
        _, kwargs = session.request.call_args
        assert kwargs["params"] == {"org": "my-org", "id": "abc123"}

    async def test_get_dbrps_empty_body(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            mock_session_cls_for(mock_session_cls, status=200, text="")
            assert await client.get_dbrps(dbrp_id="abc123") == {}

    async def test_patch_dbrp(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(mock_session_cls, body={"content": {}})
            await client.patch_dbrp("abc123", {"default": True}, org="my-org")

        args, kwargs = session.request.call_args
        assert args == ("PATCH", "http://influx:8086/api/v2/dbrps/abc123")
        assert kwargs["params"] == {"org": "my-org"}
        assert kwargs["json"] == {"default": True}

    async def test_delete_dbrp_without_org(self, client):
        with patch("clients.influxdb.aiohttp.ClientSession") as mock_session_cls:
            session = mock_session_cls_for(mock_session_cls, status=204)
            await client.delete_dbrp("abc123")

        args, kwargs = session.request.call_args
        assert args == ("DELETE", "http://influx:8086/api/v2/dbrps/abc123")
        assert kwargs["params"] is None
