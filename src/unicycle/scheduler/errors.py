"""
Scheduler-specific exceptions.

Each kind maps to one handling policy in the scheduler loop:
- ValidationError: the job never enters the store
- ConfigurationError: the whole tick is aborted
- StaleReferenceError: the job is skipped but still advanced
- ExternalServiceError: logged per job, the job still advances
- UnsupportedActionError: fatal to that job only
- JobNotFoundError: surfaced to whoever asked for the job
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class ValidationError(SchedulerError):
    """Raised when a job would break a store invariant, such as a non-positive relative interval."""
    pass


class ConfigurationError(SchedulerError):
    """Raised when the default guild cannot be resolved for a tick."""
    pass


class StaleReferenceError(SchedulerError):
    """Raised when a role, user or channel referenced by a job no longer resolves."""

    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} no longer resolves")


class ExternalServiceError(SchedulerError):
    """Raised when Discord or the image feed rejects or fails a call."""

    def __init__(self, service: str, detail: str, status: int | None = None):
        self.service = service
        self.detail = detail
        self.status = status
        super().__init__(f"{service} call failed: {detail}")


class UnsupportedActionError(SchedulerError):
    """Raised when a job's action has no matching executor."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"{kind} is currently not supported.")


class JobNotFoundError(SchedulerError):
    """Raised when a requested job does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Scheduled job not found: {job_id}")


class ExternalServiceTimeoutError(ExternalServiceError):
    """Raised when Discord or the image feed does not answer in time."""
    pass
