"""Job pipeline: state types, errors and the pure lifecycle transitions."""

from .errors import (
    DeliveryError,
    InvalidInputError,
    InvalidTransitionError,
    JobNotFoundError,
    PipelineError,
    ScrapeError,
    StaleJobError,
)
from .state import EmailDraft, Job, JobStatus, TenantHints, WebsiteData

__all__ = [
    "DeliveryError",
    "EmailDraft",
    "InvalidInputError",
    "InvalidTransitionError",
    "Job",
    "JobNotFoundError",
    "JobStatus",
    "PipelineError",
    "ScrapeError",
    "StaleJobError",
    "TenantHints",
    "WebsiteData",
]
