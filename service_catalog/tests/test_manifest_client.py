"""
Unit tests for the remote manifest client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from shared.circuit_breaker import CircuitBreakerState
from shared.errors import ManifestFormatError, TransientFetchError
from shared.retry import RetryConfig
from service_catalog.app.adapters.manifest_client import ManifestClient
from service_catalog.tests.helpers import create_manifest


MANIFEST_URL = "https://shop.example.com/api/static-data/manifest"


def make_client(handler) -> ManifestClient:
    """Client over a mock transport, retrying without delay."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = ManifestClient(MANIFEST_URL, timeout=1.0, client=http_client)
    client.retry_config = RetryConfig(max_attempts=2, base_delay=0, jitter=False)
    return client


class TestManifestClient:
    """Test cases for ManifestClient."""

    @pytest.mark.asyncio
    async def test_fetch_manifest_success(self):
        """Test fetching and parsing a published manifest."""
        document = create_manifest(version=11, product_ids=("p1", "p2")).to_dict()
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=document)

        client = make_client(handler)
        manifest = await client.fetch_manifest()
        await client.close()

        assert manifest.version == 11
        assert set(manifest.products) == {"p1", "p2"}
        assert str(requests[0].url) == MANIFEST_URL

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        """Test that an error status is a transient fetch error without retrying."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        client = make_client(handler)

        with pytest.raises(TransientFetchError) as exc_info:
            await client.fetch_manifest()

        assert exc_info.value.details["status_code"] == 503
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self):
        """Test that connection errors are retried before giving up."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(TransientFetchError) as exc_info:
            await client.fetch_manifest()

        assert len(calls) == 2
        assert exc_info.value.details["attempts"] == 2

    @pytest.mark.asyncio
    async def test_retry_recovers(self):
        """Test that a retried request can succeed."""
        document = create_manifest(version=2).to_dict()
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, json=document)

        client = make_client(handler)

        manifest = await client.fetch_manifest()

        assert manifest.version == 2
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        """Test that a non-JSON body is a format error."""
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(ManifestFormatError):
            await client.fetch_manifest()

    @pytest.mark.asyncio
    async def test_invalid_document(self):
        """Test that a document missing required fields is a format error."""
        client = make_client(lambda request: httpx.Response(200, json={"products": {}}))

        with pytest.raises(ManifestFormatError) as exc_info:
            await client.fetch_manifest()

        assert exc_info.value.code == "MANIFEST_FORMAT_ERROR"
        assert isinstance(exc_info.value, TransientFetchError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", [
        {"products": [1], "version": 1},
        {"products": {}, "collections": ["x"], "version": 1},
        {"products": {}, "categories": "tables", "version": 1},
        [],
    ])
    async def test_wrongly_shaped_document(self, document):
        """Test that structurally wrong documents are format errors."""
        client = make_client(lambda request: httpx.Response(200, json=document))

        with pytest.raises(ManifestFormatError):
            await client.fetch_manifest()

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(self):
        """Test that the circuit stops calling a failing endpoint."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler)

        for _ in range(3):
            with pytest.raises(TransientFetchError):
                await client.fetch_manifest()

        assert client.circuit_breaker.is_open()

        with pytest.raises(TransientFetchError, match="OPEN"):
            await client.fetch_manifest()

        assert len(calls) == 3
        assert client.circuit_breaker.get_state()["state"] == CircuitBreakerState.OPEN.value

    @pytest.mark.asyncio
    async def test_default_http_client(self):
        """Test fetching through a per-request AsyncClient."""
        document = create_manifest(version=4).to_dict()
        client = ManifestClient(MANIFEST_URL)

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_response = MagicMock()
            mock_response.status_code = 200
            mock_response.json.return_value = document

            mock_client = AsyncMock()
            mock_client.get.return_value = mock_response
            mock_client_class.return_value.__aenter__.return_value = mock_client

            manifest = await client.fetch_manifest()

        assert manifest.version == 4
        mock_client.get.assert_called_once_with(MANIFEST_URL)
