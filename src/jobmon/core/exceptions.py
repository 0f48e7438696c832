from typing import Optional


class JobMonitorError(Exception):
    """Base exception for job monitoring failures.

    Attributes:
        message: Human-readable error description
        diagnostic: Technical diagnostic information for debugging
        job_id: Optional job identifier
    """
    def __init__(
        self,
        message: str,
        diagnostic: Optional[str] = None,
        job_id: Optional[str] = None
    ):
        self.message = message
        self.diagnostic = diagnostic
        self.job_id = job_id
        super().__init__(message)


# Remote service failures

class RemoteServiceError(JobMonitorError):
    """Raised when the remote job service rejects a request or cannot be reached.

    Attributes:
        status: HTTP status code from the service (if applicable)
        reason: Structured error reason reported by the service (if available)
    """
    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
        diagnostic: Optional[str] = None,
        job_id: Optional[str] = None
    ):
        self.status = status
        self.reason = reason
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)


class TransientIOError(RemoteServiceError):
    """Network or service-level failure worth retrying (timeouts, 429, 5xx)."""

    pass


class RemoteRequestError(RemoteServiceError):
    """Non-retryable rejection of a request (4xx other than 429)."""

    pass


class BackoffExhausted(JobMonitorError):
    """Raised when a retried operation ran out of retries or time budget.

    Attributes:
        last_error: The transient failure of the final attempt
    """
    def __init__(
        self,
        message: str,
        last_error: Optional[Exception] = None,
        job_id: Optional[str] = None
    ):
        self.last_error = last_error
        diagnostic = str(last_error) if last_error is not None else None
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)


# Permanent failures (never retried)

class PermanentError(JobMonitorError):
    """Failure that retrying cannot fix."""

    pass


class MalformedResponseError(PermanentError):
    """Raised when the remote service returns a body we cannot interpret."""

    pass


class UnknownAggregatorError(PermanentError, ValueError):
    """Raised when metrics are requested for an aggregator the job does not use."""

    def __init__(self, aggregator_name: str, job_id: Optional[str] = None):
        self.aggregator_name = aggregator_name
        message = f"Aggregator {aggregator_name!r} is not used in job {job_id}"
        super().__init__(message=message, job_id=job_id)


class MetricsRetrievalError(JobMonitorError):
    """Raised when aggregator values cannot be fetched from the remote service.

    The underlying I/O failure is chained as ``__cause__``.
    """
    def __init__(
        self,
        aggregator_name: str,
        job_id: Optional[str] = None,
        diagnostic: Optional[str] = None
    ):
        self.aggregator_name = aggregator_name
        message = f"Failed to retrieve values for aggregator {aggregator_name!r} of job {job_id}"
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)


class JobCancellationError(JobMonitorError):
    """Raised when a cancel request failed and the job is still running.

    Attributes:
        state: Job state observed after the failed request
        monitoring_url: Console page where the job can be cancelled manually
    """
    def __init__(
        self,
        message: str,
        job_id: str,
        state: Optional[str] = None,
        monitoring_url: Optional[str] = None,
        diagnostic: Optional[str] = None
    ):
        self.state = state
        self.monitoring_url = monitoring_url
        super().__init__(message=message, diagnostic=diagnostic, job_id=job_id)


class JobStateError(JobMonitorError, RuntimeError):
    """Raised when an accessor is used in a job state that does not support it."""

    pass
