"""
Response models for the registry API.

The registry speaks camelCase JSON; models accept both the wire names and the
Python field names and ignore fields they do not know about.
"""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UNIVERSAL_TARGET = "universal"


class RegistryModel(BaseModel):
    """Base for all registry payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json(self, *, indent: bool = False) -> bytes:
        """Serialize with wire (camelCase) names, omitting unset optionals."""
        option = orjson.OPT_INDENT_2 if indent else None
        return orjson.dumps(
            self.model_dump(mode="json", by_alias=True, exclude_none=True),
            option=option,
        )


class RegistryResponse(RegistryModel):
    """Common envelope: a registry reply may carry success or error text."""

    success: str | None = None
    error: str | None = None
    warning: str | None = None


class ErrorResponse(RegistryModel):
    """Structured error body returned with non-2xx statuses."""

    error: str | None = None
    message: str | None = None
    status: int | None = None
    path: str | None = None
    timestamp: str | None = None
    trace: str | None = None


class UserData(RegistryModel):
    login_name: str
    full_name: str | None = None
    avatar_url: str | None = None
    homepage: str | None = None


class Badge(RegistryModel):
    url: str
    href: str
    description: str


class ExtensionReference(RegistryModel):
    url: str
    namespace: str
    extension: str
    version: str | None = None


class Extension(RegistryResponse):
    """
    Registry description of a published extension version.

    Attributes:
        files: Download URLs keyed by file type ("download", "manifest", ...).
        all_versions: URLs of the metadata of every version, keyed by version.
        version_alias: Aliases (such as "latest") pointing at this version.
    """

    namespace: str = ""
    name: str = ""
    version: str = ""
    target_platform: str = UNIVERSAL_TARGET
    namespace_url: str | None = None
    reviews_url: str | None = None
    files: dict[str, str] = Field(default_factory=dict)
    all_versions: dict[str, str] = Field(default_factory=dict)
    version_alias: list[str] = Field(default_factory=list)
    published_by: UserData | None = None
    verified: bool = False
    pre_release: bool = False
    average_rating: float | None = None
    download_count: int = 0
    review_count: int = 0
    timestamp: str | None = None
    preview: bool | None = None
    display_name: str | None = None
    description: str | None = None
    engines: dict[str, str] | None = None
    categories: list[str] | None = None
    tags: list[str] | None = None
    license: str | None = None
    homepage: str | None = None
    repository: str | None = None
    bugs: str | None = None
    badges: list[Badge] | None = None
    dependencies: list[ExtensionReference] | None = None
    bundled_extensions: list[ExtensionReference] | None = None

    @property
    def identifier(self) -> str:
        """Return namespace.name."""
        return f"{self.namespace}.{self.name}"

    def describe(self, target: str | None = None) -> str:
        """Human label such as redhat.java v1.2.3@linux-x64."""
        label = f"{self.identifier} v{self.version}"
        platform = target or self.target_platform
        if platform and platform != UNIVERSAL_TARGET:
            label += f"@{platform}"
        return label


def parse_extension(data: Any) -> Extension:
    """Validate a decoded JSON body as an Extension."""
    return Extension.model_validate(data)


def parse_response(data: Any) -> RegistryResponse:
    """Validate a decoded JSON body as a generic RegistryResponse."""
    if not isinstance(data, dict):
        return RegistryResponse()
    return RegistryResponse.model_validate(data)
