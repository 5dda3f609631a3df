"""Publishing: job expansion, token resolution and the batch orchestrator."""

from ovsx.publish.jobs import PublishJob, expand_jobs, is_prebuilt
from ovsx.publish.options import PublishOptions
from ovsx.publish.orchestrator import (
    BatchResult,
    JobOutcome,
    PublishOrchestrator,
    is_duplicate_error,
    publish,
)
from ovsx.publish.pat import PatResolver

__all__ = [
    "BatchResult",
    "JobOutcome",
    "PatResolver",
    "PublishJob",
    "PublishOptions",
    "PublishOrchestrator",
    "expand_jobs",
    "is_duplicate_error",
    "is_prebuilt",
    "publish",
]
