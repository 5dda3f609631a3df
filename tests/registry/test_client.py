"""Tests for the registry HTTP client."""

from __future__ import annotations

import asyncio
import contextlib
import errno
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import orjson
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from ovsx.config import RegistryConfig
from ovsx.registry.client import RegistryClient
from ovsx.registry.errors import (
    PayloadTooLargeError,
    RegistryHtmlResponseError,
    RegistryLogicalError,
    RegistryStatusError,
    RegistryTransportError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


EXTENSION_JSON = {
    "namespace": "redhat",
    "name": "java",
    "version": "1.2.3",
    "targetPlatform": "linux-x64",
    "files": {"download": "https://open-vsx.org/api/redhat/java/1.2.3/file/redhat.java-1.2.3.vsix"},
    "allVersions": {"latest": "https://open-vsx.org/api/redhat/java/latest"},
    "versionAlias": ["latest"],
}


@contextlib.asynccontextmanager
async def serve(app: web.Application) -> AsyncIterator[TestServer]:
    """Run an aiohttp app on a local port."""
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


def base_url(server: TestServer) -> str:
    return f"http://{server.host}:{server.port}"


class TestRegistryClientRequests:
    """Requests built by RegistryClient (transport mocked)."""

    @pytest.fixture
    def client(self) -> RegistryClient:
        """Create client for the public registry."""
        return RegistryClient()

    @pytest.fixture
    def mock_response(self) -> MagicMock:
        """Create mock aiohttp response."""
        response = MagicMock()
        response.status = 200
        response.reason = "OK"
        response.headers = {}
        response.text = AsyncMock(return_value="{}")
        response.__aenter__ = AsyncMock(return_value=response)
        response.__aexit__ = AsyncMock(return_value=None)
        return response

    @pytest.mark.asyncio
    async def test_get_metadata_with_target(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        """Metadata is fetched from api/{ns}/{ext}/{target}."""
        mock_response.text = AsyncMock(return_value=orjson.dumps(EXTENSION_JSON).decode())

        with patch.object(aiohttp.ClientSession, "request", return_value=mock_response) as request:
            extension = await client.get_metadata("redhat", "java", "linux-x64")

        method, url = request.call_args.args
        assert method == "GET"
        assert str(url) == "https://open-vsx.org/api/redhat/java/linux-x64"
        assert extension.identifier == "redhat.java"
        assert extension.target_platform == "linux-x64"
        assert extension.version_alias == ["latest"]

        await client.close()

    @pytest.mark.asyncio
    async def test_path_segments_are_encoded_independently(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        """Reserved characters in a segment never create extra path segments."""
        mock_response.text = AsyncMock(return_value=orjson.dumps(EXTENSION_JSON).decode())

        with patch.object(aiohttp.ClientSession, "request", return_value=mock_response) as request:
            await client.get_metadata("my ns", "a/b")

        _, url = request.call_args.args
        assert str(url) == "https://open-vsx.org/api/my%20ns/a%2Fb"

        await client.close()

    @pytest.mark.asyncio
    async def test_create_namespace_posts_json(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        """Namespace creation posts {"name": ...} with the token as query parameter."""
        mock_response.status = 201
        mock_response.text = AsyncMock(return_value='{"success": "Created namespace ns"}')

        with patch.object(aiohttp.ClientSession, "request", return_value=mock_response) as request:
            result = await client.create_namespace("ns", "secret-token")

        method, url = request.call_args.args
        assert method == "POST"
        assert url.path == "/api/-/namespace/create"
        assert url.query["token"] == "secret-token"
        assert orjson.loads(request.call_args.kwargs["data"]) == {"name": "ns"}
        assert request.call_args.kwargs["headers"]["Content-Type"] == "application/json"
        assert result.success == "Created namespace ns"

        await client.close()

    @pytest.mark.asyncio
    async def test_verify_pat_endpoint(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        mock_response.text = AsyncMock(return_value='{"success": "Valid token"}')

        with patch.object(aiohttp.ClientSession, "request", return_value=mock_response) as request:
            result = await client.verify_pat("ns", "tok")

        _, url = request.call_args.args
        assert url.path == "/api/ns/verify-pat"
        assert url.query["token"] == "tok"
        assert result.success == "Valid token"

        await client.close()

    @pytest.mark.asyncio
    async def test_request_headers_are_sent(self, mock_response: MagicMock) -> None:
        client = RegistryClient(RegistryConfig(request_headers={"User-Agent": "ovsx-test"}))

        with patch.object(aiohttp.ClientSession, "request", return_value=mock_response) as request:
            await client.get_json(client.get_url("api/ns"))

        assert request.call_args.kwargs["headers"]["User-Agent"] == "ovsx-test"

        await client.close()

    @pytest.mark.asyncio
    async def test_status_error_uses_message(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        mock_response.status = 400
        mock_response.reason = "Bad Request"
        mock_response.text = AsyncMock(
            return_value='{"message": "Extension redhat.java 1.2.3 is already published."}'
        )

        with (
            patch.object(aiohttp.ClientSession, "request", return_value=mock_response),
            pytest.raises(RegistryStatusError, match="is already published.$"),
        ):
            await client.get_metadata("redhat", "java")

        await client.close()

    @pytest.mark.asyncio
    async def test_logical_error_on_success_status(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        mock_response.text = AsyncMock(return_value='{"error": "Invalid access token."}')

        with (
            patch.object(aiohttp.ClientSession, "request", return_value=mock_response),
            pytest.raises(RegistryLogicalError, match="Invalid access token."),
        ):
            await client.verify_pat("ns", "bad")

        await client.close()

    @pytest.mark.asyncio
    async def test_html_response(
        self,
        client: RegistryClient,
        mock_response: MagicMock,
    ) -> None:
        mock_response.text = AsyncMock(return_value="<!DOCTYPE html><html>Login</html>")

        with (
            patch.object(aiohttp.ClientSession, "request", return_value=mock_response),
            pytest.raises(RegistryHtmlResponseError),
        ):
            await client.get_metadata("ns", "ext")

        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self, client: RegistryClient) -> None:
        with (
            patch.object(
                aiohttp.ClientSession,
                "request",
                side_effect=aiohttp.ClientConnectionError("Connection refused"),
            ),
            pytest.raises(RegistryTransportError, match="Connection refused"),
        ):
            await client.get_metadata("ns", "ext")

        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_message_has_no_token(
        self, client: RegistryClient, tmp_path: Path
    ) -> None:
        artifact = tmp_path / "ext.vsix"
        artifact.write_bytes(b"PK")
        error = aiohttp.ClientOSError(
            errno.EIO,
            "Can not write request body for https://open-vsx.org/api/-/publish?token=SUPERSECRET",
        )

        with (
            patch.object(aiohttp.ClientSession, "request", side_effect=error),
            pytest.raises(RegistryTransportError) as exc_info,
        ):
            await client.publish(artifact, "SUPERSECRET")

        assert "SUPERSECRET" not in str(exc_info.value)
        assert "https://open-vsx.org/api/-/publish" in str(exc_info.value)

        await client.close()

    @pytest.mark.asyncio
    async def test_namespace_body_over_limit_is_not_sent(self) -> None:
        client = RegistryClient(RegistryConfig(max_namespace_size=16))

        with patch.object(aiohttp.ClientSession, "request") as request:
            with pytest.raises(PayloadTooLargeError) as exc_info:
                await client.create_namespace("a-very-long-namespace-name", "tok")

        request.assert_not_called()
        assert exc_info.value.limit == 16

        await client.close()

    @pytest.mark.asyncio
    async def test_publish_file_over_limit_is_not_sent(self, tmp_path: Path) -> None:
        artifact = tmp_path / "ext.vsix"
        artifact.write_bytes(b"x" * 32)
        client = RegistryClient(RegistryConfig(max_publish_size=16))

        with patch.object(aiohttp.ClientSession, "request") as request:
            with pytest.raises(PayloadTooLargeError) as exc_info:
                await client.publish(artifact, "tok")

        request.assert_not_called()
        assert exc_info.value.size == 32

        await client.close()

    @pytest.mark.asyncio
    async def test_publish_missing_file(self, client: RegistryClient, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await client.publish(tmp_path / "missing.vsix", "tok")

        await client.close()


class TestRegistryClientConfig:
    def test_url_trailing_slash_stripped(self) -> None:
        client = RegistryClient(RegistryConfig(url="https://registry.example.com/"))

        assert client.url == "https://registry.example.com"
        assert str(client.get_url("api/ns")) == "https://registry.example.com/api/ns"

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://open-vsx.org", True),
            ("https://staging.open-vsx.org", True),
            ("http://localhost:8080", False),
            ("https://notopen-vsx.org", False),
        ],
    )
    def test_requires_license(self, url: str, expected: bool) -> None:
        assert RegistryClient(RegistryConfig(url=url)).requires_license is expected


class TestRegistryClientStreaming:
    """Uploads and downloads against a local aiohttp server."""

    @pytest.mark.asyncio
    async def test_publish_streams_file(self, tmp_path: Path) -> None:
        payload = bytes(range(256)) * 1024
        artifact = tmp_path / "ext.vsix"
        artifact.write_bytes(payload)
        received: dict[str, Any] = {}

        async def handle_publish(request: web.Request) -> web.Response:
            received["body"] = await request.read()
            received["content_type"] = request.content_type
            received["token"] = request.query.get("token")
            return web.json_response(
                {"namespace": "ns", "name": "ext", "version": "1.0.0"}, status=201
            )

        app = web.Application()
        app.router.add_post("/api/-/publish", handle_publish)

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            extension = await client.publish(artifact, "tok")

        assert received["body"] == payload
        assert received["content_type"] == "application/octet-stream"
        assert received["token"] == "tok"
        assert extension.describe() == "ns.ext v1.0.0"

    @pytest.mark.asyncio
    async def test_invalid_utf8_body_is_decoded_lossily(self) -> None:
        async def handle(request: web.Request) -> web.Response:
            return web.Response(body=b'{"name": "\xff\xfe"}', content_type="application/json")

        app = web.Application()
        app.router.add_get("/api/ns/ext", handle)

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            data = await client.get_json(client.get_url("api/ns/ext"))

        assert data == {"name": "\ufffd\ufffd"}

    @pytest.mark.asyncio
    async def test_upload_stream_failure_hides_token(self, tmp_path: Path) -> None:
        artifact = tmp_path / "ext.vsix"
        artifact.write_bytes(b"x" * 1024)

        async def failing_chunks(path: Path) -> AsyncIterator[bytes]:
            yield b"x" * 16
            raise OSError(errno.EIO, "Input/output error")

        async def handle_publish(request: web.Request) -> web.Response:
            await request.read()
            return web.json_response({"namespace": "ns", "name": "ext", "version": "1.0.0"})

        app = web.Application()
        app.router.add_post("/api/-/publish", handle_publish)

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            with (
                patch("ovsx.registry.client._file_chunks", failing_chunks),
                pytest.raises(RegistryTransportError) as exc_info,
            ):
                await asyncio.wait_for(client.publish(artifact, "SUPERSECRET"), timeout=5)

        assert "SUPERSECRET" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_download_writes_file(self, tmp_path: Path) -> None:
        payload = b"PK\x03\x04" + b"z" * 200_000

        async def handle_file(request: web.Request) -> web.Response:
            return web.Response(body=payload)

        app = web.Application()
        app.router.add_get("/files/ext.vsix", handle_file)
        dest = tmp_path / "ext.vsix"

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            await client.download(dest, f"{base_url(server)}/files/ext.vsix")

        assert dest.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_download_error_status_writes_nothing(self, tmp_path: Path) -> None:
        app = web.Application()
        dest = tmp_path / "ext.vsix"

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            with pytest.raises(RegistryStatusError) as exc_info:
                await client.download(dest, f"{base_url(server)}/files/missing.vsix")

        assert exc_info.value.status == 404
        assert str(exc_info.value) == "The server responded with status 404: Not Found"
        assert not dest.exists()

    @pytest.mark.asyncio
    async def test_download_local_write_error(self, tmp_path: Path) -> None:
        """A destination that cannot be opened fails with the local error."""

        async def handle_file(request: web.Request) -> web.Response:
            return web.Response(body=b"data")

        app = web.Application()
        app.router.add_get("/file", handle_file)
        dest = tmp_path / "missing-dir" / "ext.vsix"

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            with pytest.raises(FileNotFoundError):
                await client.download(dest, f"{base_url(server)}/file")

        assert not dest.exists()

    @pytest.mark.asyncio
    async def test_connection_refused(self) -> None:
        app = web.Application()
        async with serve(app) as server:
            url = base_url(server)
        # server is closed now

        async with RegistryClient(RegistryConfig(url=url)) as client:
            with pytest.raises(RegistryTransportError):
                await client.get_metadata("ns", "ext")


class FullDiskWriter:
    """aiofiles stand-in whose writes fail with ENOSPC."""

    def __init__(self, path: Path) -> None:
        self._path = path

    async def __aenter__(self) -> FullDiskWriter:
        self._path.write_bytes(b"")
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def write(self, chunk: bytes) -> int:
        raise OSError(errno.ENOSPC, "No space left on device")


class TestDownloadWriteFailure:
    @pytest.mark.asyncio
    async def test_write_failure_rejects_promptly(self, tmp_path: Path) -> None:
        async def handle_file(request: web.Request) -> web.StreamResponse:
            response = web.StreamResponse()
            await response.prepare(request)
            for _ in range(64):
                await response.write(b"x" * 65536)
            await response.write_eof()
            return response

        app = web.Application()
        app.router.add_get("/big.vsix", handle_file)
        dest = tmp_path / "big.vsix"

        async with serve(app) as server, RegistryClient(RegistryConfig(url=base_url(server))) as client:
            with (
                patch("ovsx.registry.client.aiofiles.open", lambda path, mode: FullDiskWriter(path)),
                pytest.raises(OSError, match="No space left"),
            ):
                await asyncio.wait_for(client.download(dest, f"{base_url(server)}/big.vsix"), timeout=10)

        assert not dest.exists()
