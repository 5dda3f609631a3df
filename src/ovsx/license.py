"""
License gating before packaging.

The public registry only accepts licensed extensions. An extension is
licensed when its manifest names a license or its directory contains a
LICENSE file. Otherwise the user may publish it under the MIT license, which
writes the license field and a LICENSE file; declining fails the job. In CI
no prompt is shown and the registry has the final word.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ovsx.config import is_ci
from ovsx.manifest import (
    ExtensionManifest,
    read_source_manifest,
    validate_manifest,
    write_source_manifest,
)

if TYPE_CHECKING:
    from ovsx.prompt import Prompt

logger = logging.getLogger(__name__)

LICENSE_FILE_NAMES = frozenset(
    {"license.md", "license", "license.txt", "licence.md", "licence", "licence.txt"}
)

MIT_LICENSE_TEXT = """Copyright <YEAR> <COPYRIGHT HOLDER>

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

_HELP_TEXT = (
    'If you select "yes" your extension will be published under the MIT License. '
    "You must enter the Copyright Year and Copyright Holder information. This "
    "information along with the text of the MIT License will be written to a "
    "LICENSE file and packaged with the uploaded extension.\n"
)


class LicenseError(Exception):
    """Raised when an extension cannot be published for lack of a license."""


class LicenseChecker(Protocol):
    """Checks (and may fix) the license of an extension source directory."""

    async def check_license(self, package_path: Path | None) -> None: ...


def has_license_file(package_path: str | Path | None = None) -> bool:
    """Check for a LICENSE file (case-insensitive, .md/.txt variants)."""
    directory = Path(package_path or ".")
    return any(p.name.lower() in LICENSE_FILE_NAMES for p in directory.iterdir() if p.is_file())


def is_license_ok(package_path: str | Path | None, manifest: ExtensionManifest | None = None) -> bool:
    """
    Check whether the extension declares or ships a license.

    Raises:
        ManifestError: If the manifest is missing or lacks publisher/name.
    """
    if manifest is None:
        manifest = read_source_manifest(package_path)
    validate_manifest(manifest)

    if manifest.license:
        return True
    return has_license_file(package_path)


class ManifestLicenseChecker:
    """LicenseChecker offering the MIT license for unlicensed extensions."""

    def __init__(self, prompt: Prompt, *, interactive: bool | None = None) -> None:
        """
        Args:
            prompt: Console prompt used for the MIT license dialog.
            interactive: Allow prompting (default: not running in CI).
        """
        self._prompt = prompt
        self._interactive = (not is_ci()) if interactive is None else interactive

    async def check_license(self, package_path: Path | None) -> None:
        manifest = await asyncio.to_thread(read_source_manifest, package_path)
        if await asyncio.to_thread(is_license_ok, package_path, manifest):
            return
        if not self._interactive:
            logger.warning(
                f"Extension {manifest.identifier} has no license.",
                extra={"package_path": str(package_path or ".")},
            )
            return

        async with self._prompt.lock:
            await self._add_license(manifest, package_path)

    async def _add_license(self, manifest: ExtensionManifest, package_path: Path | None) -> None:
        print(
            f"Extension {manifest.identifier} has no license. All Open VSX Registry Content "
            "Offerings must be licensed. You may choose to publish this extension under the "
            "MIT License (https://opensource.org/licenses/MIT). Please note you are responsible "
            "to ensure that you have the necessary rights to permit this extension to be made "
            "available under the MIT license and for compliance with that license."
        )
        while True:
            print()
            answer = await self._prompt.choice(
                f"Would you like to publish your extension {manifest.identifier} "
                "under the MIT license?",
                ["yes", "help", "no"],
                "no",
            )
            if answer == "yes":
                await self._use_mit_license(manifest, package_path)
                return
            if answer == "help":
                print(_HELP_TEXT)
                print(MIT_LICENSE_TEXT)
                continue
            raise LicenseError("This extension cannot be accepted because it has no license.")

    async def _use_mit_license(self, manifest: ExtensionManifest, package_path: Path | None) -> None:
        print(
            "Please enter a value for Copyright Year and Copyright Holder.\n"
            'Example: "Copyright 2020 John Doe"\n'
        )
        copyright_line = await self._prompt.text("Copyright ")
        if not copyright_line:
            raise LicenseError("A copyright declaration is necessary for the MIT license.")

        manifest.license = "MIT"
        directory = Path(package_path or ".")
        license_text = MIT_LICENSE_TEXT.replace("<YEAR> <COPYRIGHT HOLDER>", copyright_line)
        await asyncio.to_thread(write_source_manifest, manifest, directory)
        await asyncio.to_thread((directory / "LICENSE").write_text, license_text)
        print("LICENSE file has been written. Please commit it to the source repository.")
