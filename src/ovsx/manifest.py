"""
Extension manifest (package.json) access.

A source directory keeps the manifest at <dir>/package.json; a packaged .vsix
is a zip archive holding it at extension/package.json.
"""

from __future__ import annotations

import asyncio
import json
import zipfile
from pathlib import Path
from typing import Any, Protocol

import orjson
from pydantic import BaseModel, ConfigDict, PrivateAttr, ValidationError

MANIFEST_FILE = "package.json"
VSIX_MANIFEST_ENTRY = "extension/package.json"
VSIX_SUFFIX = ".vsix"


class ManifestError(Exception):
    """Raised when a manifest is missing, unreadable or incomplete."""


class ExtensionManifest(BaseModel):
    """
    The subset of package.json the client relies on.

    Unknown keys are kept so the manifest can be written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    _source: dict[str, Any] = PrivateAttr(default_factory=dict)

    publisher: str | None = None
    name: str | None = None
    version: str | None = None
    license: str | None = None

    @property
    def identifier(self) -> str:
        return f"{self.publisher}.{self.name}"

    def to_dict(self) -> dict[str, Any]:
        """The parsed document in its original key order, with field changes applied."""
        data = dict(self._source)
        data.update(self.model_dump(exclude_unset=True))
        return data


def validate_manifest(manifest: ExtensionManifest) -> None:
    """
    Check the fields needed to publish.

    Raises:
        ManifestError: If publisher or name is missing.
    """
    if not manifest.publisher:
        raise ManifestError("Missing required field 'publisher'.")
    if not manifest.name:
        raise ManifestError("Missing required field 'name'.")


def _parse(raw: bytes | str, origin: str) -> ExtensionManifest:
    try:
        data = orjson.loads(raw)
        manifest = ExtensionManifest.model_validate(data)
    except (orjson.JSONDecodeError, ValidationError) as e:
        msg = f"Invalid extension manifest in {origin}: {e}"
        raise ManifestError(msg) from e
    manifest._source = data
    return manifest


def read_source_manifest(package_path: str | Path | None = None) -> ExtensionManifest:
    """Read package.json from an extension source directory (default: cwd)."""
    path = Path(package_path or ".") / MANIFEST_FILE
    try:
        raw = path.read_bytes()
    except FileNotFoundError as e:
        msg = f"Extension manifest not found: {path}"
        raise ManifestError(msg) from e
    return _parse(raw, str(path))


def write_source_manifest(manifest: ExtensionManifest, package_path: str | Path | None = None) -> None:
    """Write package.json back to an extension source directory, indented by 4 spaces."""
    path = Path(package_path or ".") / MANIFEST_FILE
    path.write_text(json.dumps(manifest.to_dict(), indent=4, ensure_ascii=False), encoding="utf-8")


def read_vsix_manifest(artifact: str | Path) -> ExtensionManifest:
    """
    Read the manifest embedded in a packaged extension.

    Raises:
        ManifestError: If the archive is invalid or has no manifest.
    """
    try:
        with zipfile.ZipFile(artifact) as archive:
            raw = archive.read(VSIX_MANIFEST_ENTRY)
    except KeyError as e:
        msg = f"{artifact} does not contain {VSIX_MANIFEST_ENTRY}"
        raise ManifestError(msg) from e
    except zipfile.BadZipFile as e:
        msg = f"{artifact} is not a valid extension package: {e}"
        raise ManifestError(msg) from e
    return _parse(raw, str(artifact))


class ManifestReader(Protocol):
    """Reads the manifest of a packaged artifact."""

    async def read(self, artifact: Path) -> ExtensionManifest: ...


class VsixManifestReader:
    """ManifestReader for .vsix archives."""

    async def read(self, artifact: Path) -> ExtensionManifest:
        return await asyncio.to_thread(read_vsix_manifest, artifact)
