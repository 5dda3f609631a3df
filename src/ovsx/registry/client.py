"""
Async HTTP client for the Open VSX registry API.

Endpoints (relative to the configured base URL):
- POST api/-/namespace/create?token=<PAT>   JSON body {"name": ...}
- POST api/-/publish?token=<PAT>            raw .vsix bytes
- GET  api/{namespace}/{extension}[/{target}]
- GET  api/{namespace}/verify-pat?token=<PAT>

Uploads and downloads are streamed, never buffered whole. No retries and no
timeouts are added on top of the transport defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import aiofiles
import aiohttp
import orjson
from yarl import URL

from ovsx.config import RegistryConfig
from ovsx.logging_config import redact_secrets
from ovsx.registry.decode import decode_response, is_success_status
from ovsx.registry.errors import (
    PayloadTooLargeError,
    RegistryStatusError,
    RegistryTransportError,
)
from ovsx.registry.types import Extension, RegistryResponse, parse_extension, parse_response

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
JSON_HEADERS = {"Content-Type": "application/json"}
BINARY_HEADERS = {"Content-Type": "application/octet-stream"}


def _segment(value: str) -> str:
    """Percent-encode a single path segment (slashes included)."""
    return quote(value, safe="")


async def _file_chunks(path: Path) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(CHUNK_SIZE):
            yield chunk


def _transport_error(error: BaseException, url: URL) -> RegistryTransportError:
    """Wrap a network error; the message never carries the token query."""
    message = str(error) or error.__class__.__name__
    message = message.replace(str(url), str(url.with_query(None)))
    return RegistryTransportError(redact_secrets(message))


class RegistryClient:
    """
    Async client for registry publish, namespace and metadata operations.

    Every JSON-returning call either returns the parsed body or raises a
    RegistryError subclass (see ovsx.registry.errors).
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        """
        Initialize the client.

        Args:
            config: Registry configuration (defaults to the public registry).
        """
        self._config = config or RegistryConfig()
        self._session: aiohttp.ClientSession | None = None

    @property
    def url(self) -> str:
        """Base URL without trailing slash."""
        return self._config.url

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def requires_license(self) -> bool:
        """The public registry only accepts licensed extensions."""
        host = URL(self.url).host or ""
        return host == "open-vsx.org" or host.endswith(".open-vsx.org")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            if self._config.timeout_s is not None:
                timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
                self._session = aiohttp.ClientSession(timeout=timeout)
            else:
                self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def get_url(self, path: str, query: Mapping[str, str] | None = None) -> URL:
        """
        Build an absolute URL below the base URL.

        Args:
            path: Already-encoded path relative to the base URL.
            query: Query parameters (encoded by this method).
        """
        url = URL(f"{self.url}/{path}", encoded=True)
        if query:
            url = url.with_query(dict(query))
        return url

    def _headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(self._config.request_headers)
        if headers:
            merged.update(headers)
        return merged

    # ------------------------------------------------------------------
    # Registry operations
    # ------------------------------------------------------------------

    async def create_namespace(self, name: str, token: str) -> RegistryResponse:
        """
        Create a namespace owned by the token's user.

        Raises:
            RegistryError: On transport, status or registry-reported errors.
        """
        url = self.get_url("api/-/namespace/create", {"token": token})
        body = orjson.dumps({"name": name})
        data = await self.post(body, url, JSON_HEADERS, max_size=self._config.max_namespace_size)
        return parse_response(data)

    async def publish(self, file_path: str | Path, token: str) -> Extension:
        """
        Upload a packaged extension.

        Args:
            file_path: Path to the .vsix artifact.
            token: Personal access token of a namespace member.

        Returns:
            The registry's description of the published extension.
        """
        url = self.get_url("api/-/publish", {"token": token})
        data = await self.post_file(
            file_path, url, BINARY_HEADERS, max_size=self._config.max_publish_size
        )
        return parse_extension(data)

    async def get_metadata(
        self,
        namespace: str,
        extension: str,
        target: str | None = None,
    ) -> Extension:
        """Fetch metadata of the latest version, optionally for a target platform."""
        path = f"api/{_segment(namespace)}/{_segment(extension)}"
        if target:
            path += f"/{_segment(target)}"
        data = await self.get_json(self.get_url(path))
        return parse_extension(data)

    async def verify_pat(self, namespace: str, token: str) -> RegistryResponse:
        """Check with the registry that the token may publish to the namespace."""
        url = self.get_url(f"api/{_segment(namespace)}/verify-pat", {"token": token})
        data = await self.get_json(url)
        return parse_response(data)

    async def download(self, dest: str | Path, url: str | URL) -> None:
        """
        Stream a file to disk.

        A non-2xx status or a local write error closes the response and
        raises; a partially written file is removed.

        Raises:
            RegistryStatusError: On a non-2xx status.
            RegistryTransportError: On network errors.
            OSError: On local write errors.
        """
        dest = Path(dest)
        target_url = url if isinstance(url, URL) else URL(url)
        session = await self._get_session()
        logger.debug("Downloading", extra={"url": str(target_url), "dest": str(dest)})

        try:
            async with session.request("GET", target_url, headers=self._headers(None)) as response:
                if not is_success_status(response.status):
                    response.close()
                    raise RegistryStatusError.from_status(response.status, response.reason)
                await self._write_body(response, dest)
        except (aiohttp.ClientError, TimeoutError) as e:
            raise _transport_error(e, target_url) from e

    async def _write_body(self, response: aiohttp.ClientResponse, dest: Path) -> None:
        try:
            async with aiofiles.open(dest, "wb") as out:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await out.write(chunk)
        except BaseException:
            response.close()
            dest.unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def get_json(self, url: URL) -> Any:
        """GET a URL and decode the JSON body."""
        return await self._request_json("GET", url)

    async def post(
        self,
        body: bytes | str,
        url: URL,
        headers: Mapping[str, str] | None = None,
        max_size: int | None = None,
    ) -> Any:
        """POST an in-memory body and decode the JSON response."""
        content = body.encode() if isinstance(body, str) else body
        if max_size is not None and len(content) > max_size:
            msg = f"Request body of {len(content)} bytes exceeds the limit of {max_size} bytes"
            raise PayloadTooLargeError(msg, size=len(content), limit=max_size)
        return await self._request_json("POST", url, data=content, headers=headers)

    async def post_file(
        self,
        path: str | Path,
        url: URL,
        headers: Mapping[str, str] | None = None,
        max_size: int | None = None,
    ) -> Any:
        """
        POST a file streamed from disk and decode the JSON response.

        Raises:
            FileNotFoundError: If the file does not exist.
            PayloadTooLargeError: If the file exceeds max_size.
        """
        path = Path(path)
        size = path.stat().st_size
        if max_size is not None and size > max_size:
            msg = f"File {path.name} has {size} bytes and exceeds the limit of {max_size} bytes"
            raise PayloadTooLargeError(msg, size=size, limit=max_size)

        stream_headers = dict(headers or {})
        stream_headers["Content-Length"] = str(size)
        return await self._request_json(
            "POST", url, data=_file_chunks(path), headers=stream_headers
        )

    async def _request_json(
        self,
        method: str,
        url: URL,
        data: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """
        Send a request, accumulate the full body and decode it.

        Raises:
            RegistryTransportError: On network or stream errors.
            RegistryError: Whatever decode_response() maps the body to.
        """
        session = await self._get_session()
        logger.debug("Registry request", extra={"method": method, "url": str(url)})

        try:
            async with session.request(
                method, url, data=data, headers=self._headers(headers)
            ) as response:
                body = await response.text(encoding="utf-8", errors="replace")
                status = response.status
                reason = response.reason
        except (aiohttp.ClientError, OSError) as e:
            logger.debug("Registry request failed", extra={"method": method, "error": str(e)})
            raise _transport_error(e, url) from e

        decoded = decode_response(status, body, reason)
        if not decoded.ok:
            logger.debug(
                "Registry request rejected",
                extra={"method": method, "status": status, "kind": decoded.kind.value},
            )
        return decoded.unwrap()
