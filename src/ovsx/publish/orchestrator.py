"""
Batch publishing.

One publish request becomes many jobs (source paths x targets). All jobs run
concurrently and independently: a failing job never cancels or blocks the
others, and every outcome is collected (all-settled, never fail-fast).

Per job:
1. license gate (registries that require it) and packaging, unless a
   pre-built artifact was given
2. token: explicit, or resolved for the artifact's publisher namespace
3. upload; "is already published." counts as success with skip_duplicate
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ovsx.config import RegistryConfig
from ovsx.license import ManifestLicenseChecker
from ovsx.manifest import ManifestError, VsixManifestReader
from ovsx.packaging import VscePackager
from ovsx.prompt import ConsolePrompt
from ovsx.publish.jobs import PublishJob, expand_jobs
from ovsx.publish.pat import PatResolver
from ovsx.registry.client import RegistryClient
from ovsx.registry.errors import RegistryError
from ovsx.store.factory import open_default_store

if TYPE_CHECKING:
    from ovsx.license import LicenseChecker
    from ovsx.manifest import ManifestReader
    from ovsx.packaging import ExtensionPackager
    from ovsx.prompt import Prompt
    from ovsx.publish.options import PublishOptions
    from ovsx.registry.types import Extension

logger = logging.getLogger(__name__)

ALREADY_PUBLISHED_SUFFIX = "is already published."


@dataclass
class JobOutcome:
    """
    Settled result of one job.

    Attributes:
        job: The job that ran.
        extension: Published extension (None when failed or skipped).
        error: Failure, if the job was rejected.
        skipped: The version already existed and skip_duplicate was set.
        message: Human-readable summary of a skip.
    """

    job: PublishJob
    extension: Extension | None = None
    error: Exception | None = None
    skipped: bool = False
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Outcomes of all jobs, in job order."""

    outcomes: list[JobOutcome] = field(default_factory=list)

    @property
    def successes(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failures(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        """True when every job succeeded (exit status 0)."""
        return not self.failures


def is_duplicate_error(error: Exception) -> bool:
    """Registry message for re-publishing an existing version."""
    return str(error).endswith(ALREADY_PUBLISHED_SUFFIX)


class PublishOrchestrator:
    """Runs the publish jobs of a request and aggregates their outcomes."""

    def __init__(
        self,
        client: RegistryClient,
        resolver: PatResolver,
        *,
        packager: ExtensionPackager | None = None,
        manifest_reader: ManifestReader | None = None,
        license_checker: LicenseChecker | None = None,
    ) -> None:
        """
        Args:
            client: Registry client used for uploads.
            resolver: Token resolver for jobs without an explicit token.
            packager: Packages source directories (default: vsce).
            manifest_reader: Reads the publisher of an artifact (default: .vsix zip).
            license_checker: License gate before packaging (None disables it).
        """
        self._client = client
        self._resolver = resolver
        self._packager = packager or VscePackager()
        self._manifest_reader = manifest_reader or VsixManifestReader()
        self._license_checker = license_checker

    async def publish(self, options: PublishOptions) -> BatchResult:
        """
        Publish every job of the request concurrently.

        Never raises for a job failure; see BatchResult.failures.
        """
        jobs = expand_jobs(options)
        logger.debug("Publishing", extra={"jobs": len(jobs)})

        results = await asyncio.gather(
            *[self._run_job(job, options) for job in jobs],
            return_exceptions=True,
        )

        outcomes: list[JobOutcome] = []
        for job, result in zip(jobs, results, strict=True):
            if isinstance(result, JobOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                logger.debug("Publish job failed", extra={"job": job.describe(), "error": str(result)})
                outcomes.append(JobOutcome(job=job, error=result))
            else:
                # KeyboardInterrupt, SystemExit
                raise result

        return BatchResult(outcomes)

    async def _run_job(self, job: PublishJob, options: PublishOptions) -> JobOutcome:
        packaged: Path | None = None
        if job.needs_packaging:
            packaged = await self._package(job, options)
            artifact = packaged
        else:
            artifact = Path(job.extension_file or "")

        try:
            pat = options.pat or await self._resolve_pat(artifact)
            return await self._upload(job, artifact, pat, options)
        finally:
            if packaged is not None:
                packaged.unlink(missing_ok=True)

    async def _package(self, job: PublishJob, options: PublishOptions) -> Path:
        package_path = Path(job.package_path) if job.package_path else None
        if self._license_checker is not None and self._client.requires_license:
            await self._license_checker.check_license(package_path)
        return await self._packager.package(package_path, options.package_options(job.target))

    async def _resolve_pat(self, artifact: Path) -> str:
        manifest = await self._manifest_reader.read(artifact)
        if not manifest.publisher:
            raise ManifestError("Missing required field 'publisher'.")
        return await self._resolver.get_pat(manifest.publisher)

    async def _upload(
        self,
        job: PublishJob,
        artifact: Path,
        pat: str,
        options: PublishOptions,
    ) -> JobOutcome:
        try:
            extension = await self._client.publish(artifact, pat)
        except RegistryError as e:
            if options.skip_duplicate and is_duplicate_error(e):
                message = f"{e} Skipping publish."
                logger.info(message)
                return JobOutcome(job=job, skipped=True, message=message)
            raise

        logger.info(f"\U0001f680  Published {extension.describe(job.target)}")
        if extension.warning:
            logger.warning(extension.warning)
        return JobOutcome(job=job, extension=extension)


async def publish(options: PublishOptions, *, prompt: Prompt | None = None) -> BatchResult:
    """
    Publish with the default collaborators: system credential store, vsce
    packaging and the interactive license dialog.

    Environment defaults (OVSX_REGISTRY_URL, OVSX_PAT) are applied first.
    """
    options = options.with_env()
    prompt = prompt or ConsolePrompt()
    store = await open_default_store()

    async with RegistryClient(RegistryConfig.from_env(options.registry_url)) as client:
        orchestrator = PublishOrchestrator(
            client,
            PatResolver(store, client, prompt),
            license_checker=ManifestLicenseChecker(prompt),
        )
        return await orchestrator.publish(options)
