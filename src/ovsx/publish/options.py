"""Options of a publish request."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from ovsx.config import ENV_REGISTRY_URL, pat_from_env
from ovsx.packaging import PackageOptions


@dataclass
class PublishOptions:
    """
    One `ovsx publish` invocation.

    Attributes:
        registry_url: Base URL of the registry API (env OVSX_REGISTRY_URL).
        pat: Personal access token (env OVSX_PAT). When unset the token is
            resolved per namespace from the credential store or a prompt.
        extension_file: Pre-built artifact to publish.
        package_paths: Extension source directories to package and publish.
        targets: Target platforms; each path is packaged once per target.
        base_content_url: Prefix for relative links in README.md.
        base_images_url: Prefix for relative image links in README.md.
        yarn: Use yarn instead of npm while packaging.
        dependencies: Check and bundle dependencies while packaging.
        pre_release: Publish as a pre-release.
        package_version: Version to set while packaging.
        skip_duplicate: Treat "already published" as success.
    """

    registry_url: str | None = None
    pat: str | None = None
    extension_file: str | None = None
    package_paths: list[str] = field(default_factory=list)
    targets: list[str] = field(default_factory=list)
    base_content_url: str | None = None
    base_images_url: str | None = None
    yarn: bool | None = None
    dependencies: bool | None = None
    pre_release: bool = False
    package_version: str | None = None
    skip_duplicate: bool = False

    def with_env(self) -> PublishOptions:
        """Return a copy with unset registry URL and token taken from the environment."""
        return replace(
            self,
            registry_url=self.registry_url or os.environ.get(ENV_REGISTRY_URL) or None,
            pat=pat_from_env(self.pat),
        )

    def package_options(self, target: str | None) -> PackageOptions:
        """Packaging options for one job."""
        return PackageOptions(
            target=target,
            base_content_url=self.base_content_url,
            base_images_url=self.base_images_url,
            use_yarn=self.yarn,
            dependencies=self.dependencies,
            pre_release=self.pre_release,
            version=self.package_version,
        )
