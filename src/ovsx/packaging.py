"""
Packaging of extension sources into .vsix artifacts.

The packaging format itself belongs to the vsce tool; this module only runs
it as a subprocess and hands back the path of the produced artifact.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ovsx.manifest import VSIX_SUFFIX

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DEFAULT_VSCE_COMMAND = ("npx", "--yes", "@vscode/vsce")


class PackagingError(Exception):
    """Raised when an extension could not be packaged."""


@dataclass(frozen=True)
class PackageOptions:
    """
    Options forwarded to the packager.

    Attributes:
        target: Target platform (None = universal).
        base_content_url: Prefix for relative links in README.md.
        base_images_url: Prefix for relative image links in README.md.
        use_yarn: Use yarn instead of npm (None = packager default).
        dependencies: Check and bundle dependencies (None = packager default).
        pre_release: Mark the package as a pre-release.
        version: Version to set before packaging.
    """

    target: str | None = None
    base_content_url: str | None = None
    base_images_url: str | None = None
    use_yarn: bool | None = None
    dependencies: bool | None = None
    pre_release: bool = False
    version: str | None = None


class ExtensionPackager(Protocol):
    """Produces a packaged artifact from an extension source directory."""

    async def package(self, package_path: Path | None, options: PackageOptions) -> Path: ...


def create_temp_artifact() -> Path:
    """Reserve a unique temporary .vsix path."""
    fd, name = tempfile.mkstemp(suffix=VSIX_SUFFIX)
    os.close(fd)
    return Path(name)


def build_vsce_args(out: Path, options: PackageOptions) -> list[str]:
    """Translate PackageOptions into `vsce package` arguments."""
    args = ["package", "--out", str(out)]
    if options.target:
        args += ["--target", options.target]
    if options.base_content_url:
        args += ["--baseContentUrl", options.base_content_url]
    if options.base_images_url:
        args += ["--baseImagesUrl", options.base_images_url]
    if options.use_yarn is True:
        args.append("--yarn")
    elif options.use_yarn is False:
        args.append("--no-yarn")
    if options.dependencies is False:
        args.append("--no-dependencies")
    if options.pre_release:
        args.append("--pre-release")
    if options.version:
        args.append(options.version)
    return args


class VscePackager:
    """ExtensionPackager running `vsce package`."""

    def __init__(self, command: Sequence[str] = DEFAULT_VSCE_COMMAND) -> None:
        self._command = list(command)

    async def package(self, package_path: Path | None, options: PackageOptions) -> Path:
        out = create_temp_artifact()
        args = self._command + build_vsce_args(out, options)
        cwd = Path(package_path or ".")
        logger.debug("Packaging extension", extra={"cwd": str(cwd), "target": options.target})

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            out.unlink(missing_ok=True)
            msg = f"Could not run {self._command[0]}: {e}"
            raise PackagingError(msg) from e

        _, stderr = await process.communicate()
        if process.returncode != 0:
            out.unlink(missing_ok=True)
            detail = stderr.decode(errors="replace").strip().splitlines()[-5:]
            msg = f"Packaging {cwd} failed (exit code {process.returncode})"
            if detail:
                msg += ": " + " ".join(detail)
            raise PackagingError(msg)

        return out
