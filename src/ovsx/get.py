"""
Download an extension, or fetch its metadata, from the registry.

Extensions are identified as `namespace.extension` or `namespace/extension`.
A version may be given as an exact version, a version alias ("latest") or
an npm-style semver range ("^1.2.0", "1.0.x").
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote

import aiofiles
import nodesemver
from yarl import URL

from ovsx.registry.types import UNIVERSAL_TARGET, parse_extension

if TYPE_CHECKING:
    from ovsx.registry.client import RegistryClient
    from ovsx.registry.types import Extension

logger = logging.getLogger(__name__)

EXTENSION_ID_RE = re.compile(r"^([\w-]+)(?:\.|/)([\w-]+)$")


class GetError(Exception):
    """Raised when the requested extension or version cannot be served."""


class ExtensionIdError(GetError):
    """Raised for a malformed extension identifier."""


def parse_extension_id(extension_id: str) -> tuple[str, str]:
    """
    Split an identifier into (namespace, extension).

    Raises:
        ExtensionIdError: If the identifier does not have the form namespace.extension.
    """
    match = EXTENSION_ID_RE.match(extension_id)
    if not match:
        raise ExtensionIdError("The extension identifier must have the form `namespace.extension`.")
    return match.group(1), match.group(2)


def resolve_output_path(output: str | None, file_name: str) -> Path:
    """
    Decide where to write: an existing directory (or a path ending in a
    separator) receives file_name, anything else is used as the file path.
    """
    if not output:
        return Path.cwd() / file_name
    path = Path(output)
    if path.is_dir() or (not path.exists() and output.endswith(os.sep)):
        return (path / file_name).resolve()
    return path.resolve()


def _satisfies(version: str, constraint: str) -> bool:
    """npm-style range test; an unparseable version never matches."""
    try:
        return nodesemver.satisfies(version, constraint)
    except ValueError:
        return False


async def find_matching_version(
    client: RegistryClient,
    extension: Extension,
    version: str | None,
) -> Extension:
    """
    Select the requested version of an extension.

    The constraint may be an exact version, a version alias or a semver
    range. For a range the first listed version that satisfies it wins;
    aliases are never tested against ranges.

    Raises:
        GetError: If no published version matches.
    """
    if (
        not version
        or version == extension.version
        or version in extension.version_alias
        or _satisfies(extension.version, version)
    ):
        return extension

    url = extension.all_versions.get(version)
    if url is None:
        url = next(
            (
                candidate_url
                for candidate, candidate_url in extension.all_versions.items()
                if candidate not in extension.version_alias and _satisfies(candidate, version)
            ),
            None,
        )
    if url is None:
        msg = f"Extension {extension.identifier} has no published version matching '{version}'"
        raise GetError(msg)
    return parse_extension(await client.get_json(URL(url)))


async def write_metadata(extension: Extension, output: str | None) -> Path | None:
    """Print the metadata JSON, or write it to a file or directory."""
    metadata = extension.to_json(indent=True)
    if not output:
        print(metadata.decode())
        return None

    file_name = f"{extension.identifier}-{extension.version}.json"
    path = resolve_output_path(output, file_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "wb") as f:
        await f.write(metadata)
    return path


async def download_extension(
    client: RegistryClient,
    extension: Extension,
    output: str | None,
) -> Path:
    """
    Download the packaged extension.

    Raises:
        GetError: If the registry offers no download URL.
    """
    download_url = extension.files.get("download")
    if not download_url:
        msg = f"Extension {extension.identifier} does not provide a download URL."
        raise GetError(msg)

    file_name = unquote(download_url.rsplit("/", 1)[-1])
    path = resolve_output_path(output, file_name)
    path.parent.mkdir(parents=True, exist_ok=True)

    label = f"{extension.identifier}-{extension.version}"
    if extension.target_platform != UNIVERSAL_TARGET:
        label += f"@{extension.target_platform}"
    logger.info(f"Downloading {label} to {path}")

    await client.download(path, download_url)
    return path


async def get_extension(
    client: RegistryClient,
    extension_id: str,
    *,
    target: str | None = None,
    version: str | None = None,
    output: str | None = None,
    metadata: bool = False,
) -> Path | None:
    """
    Download an extension or its metadata.

    Args:
        client: Registry client.
        extension_id: namespace.extension or namespace/extension.
        target: Target platform (default: universal).
        version: Exact version, version alias or semver range (default: latest).
        output: File or directory to write to (default: cwd, or stdout for metadata).
        metadata: Fetch the metadata JSON instead of the package.

    Returns:
        Path of the written file, or None when metadata went to stdout.
    """
    namespace, name = parse_extension_id(extension_id)
    extension = await client.get_metadata(namespace, name, target or UNIVERSAL_TARGET)
    extension = await find_matching_version(client, extension, version)

    if metadata:
        return await write_metadata(extension, output)
    return await download_extension(client, extension, output)
