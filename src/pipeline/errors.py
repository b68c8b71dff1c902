"""Exceptions raised by the job pipeline."""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class InvalidInputError(PipelineError, ValueError):
    """Signup input rejected before any job is created."""


class JobNotFoundError(PipelineError, LookupError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(PipelineError):
    """Requested status change is not on the lifecycle graph."""


class StaleJobError(PipelineError):
    """A conditional update found the job in a different state than expected."""

    def __init__(self, job_id: str, expected: str) -> None:
        super().__init__(f"Job {job_id} is no longer {expected}")
        self.job_id = job_id
        self.expected = expected


class ScrapeError(PipelineError):
    """Scrape provider could not be reached or answered with an unusable payload."""


class DeliveryError(PipelineError):
    """Email provider reported a failed send."""
