"""
Expansion of a publish request into independent jobs.

Every requested source path is published once per requested target. A
pre-built artifact (a file name ending in ".vsix") is published exactly once,
whatever paths and targets were given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ovsx.manifest import VSIX_SUFFIX

if TYPE_CHECKING:
    from ovsx.publish.options import PublishOptions


@dataclass(frozen=True)
class PublishJob:
    """
    A single publish unit.

    Either extension_file is set (nothing to package) or the job packages
    package_path for target. Consumed once, never persisted.
    """

    package_path: str | None = None
    target: str | None = None
    extension_file: str | None = None

    @property
    def needs_packaging(self) -> bool:
        return self.extension_file is None

    def describe(self) -> str:
        if self.extension_file is not None:
            return self.extension_file
        label = self.package_path or "."
        if self.target:
            label += f" ({self.target})"
        return label


def is_prebuilt(extension_file: str | None) -> bool:
    """Case-sensitive suffix test, as used to decide whether to skip packaging."""
    return extension_file is not None and extension_file.endswith(VSIX_SUFFIX)


def expand_jobs(options: PublishOptions) -> list[PublishJob]:
    """
    Build the cross product package_paths x targets.

    Missing paths or targets count as a single unspecified entry.
    """
    if is_prebuilt(options.extension_file):
        return [PublishJob(extension_file=options.extension_file)]

    package_paths: list[str | None] = list(options.package_paths) or [None]
    targets: list[str | None] = list(options.targets) or [None]

    return [
        PublishJob(package_path=path, target=target, extension_file=options.extension_file)
        for path in package_paths
        for target in targets
    ]
