"""Configuration models for core monitoring components.

This module provides Pydantic-based configuration classes that consolidate
polling, retry and cancellation settings, so that the job handle and its
managers receive them by dependency injection instead of module constants.
"""

from typing import Tuple
from pydantic import BaseModel, Field

from jobmon.core.backoff import BackoffPolicy


class JobMonitorConfig(BaseModel):
    """Configuration for job monitoring behavior.

    Attributes:
        status_policy: Backoff for on-demand job status queries. The wait loop
            uses the same policy with zero retries.
        message_policy: Backoff between wait loop iterations; its cumulative
            cap is replaced by the caller's wait budget.
        monitoring_url_template: Console page for a job, formatted with
            project_id and job_id
        cancel_terminated_markers: Substrings of a rejected cancel message that
            mean the job had already finished
        cancel_terminated_reasons: Structured error reasons with the same meaning
    """

    status_policy: BackoffPolicy = Field(
        default_factory=lambda: BackoffPolicy(initial_interval=2.0, exponent=1.5, max_retries=4),
        description="Retry policy for job status requests"
    )

    message_policy: BackoffPolicy = Field(
        default_factory=lambda: BackoffPolicy(initial_interval=2.0, exponent=1.5, max_retries=11),
        description="Polling policy for job status and messages while waiting"
    )

    monitoring_url_template: str = Field(
        default="https://console.developers.google.com/project/{project_id}/dataflow/job/{job_id}",
        description="Template for the human-facing job monitoring page"
    )

    cancel_terminated_markers: Tuple[str, ...] = Field(
        default=("has terminated",),
        description="Message fragments identifying a cancel rejected because the job already finished"
    )

    cancel_terminated_reasons: Tuple[str, ...] = Field(
        default=(),
        description="Structured error reasons identifying a cancel rejected because the job already finished"
    )

    model_config = {
        "frozen": True,  # Immutable after creation for safety
        "extra": "forbid",  # Reject unknown fields
    }

    def monitoring_page_url(self, project_id: str, job_id: str) -> str:
        return self.monitoring_url_template.format(project_id=project_id, job_id=job_id)

    @classmethod
    def from_app_settings(cls, settings) -> "JobMonitorConfig":
        """Factory method to construct config from JobMonitorSettings instance.

        Args:
            settings: JobMonitorSettings instance from core.settings

        Returns:
            JobMonitorConfig with values from app settings
        """
        return cls(
            status_policy=BackoffPolicy(
                initial_interval=settings.JOBMON_STATUS_POLLING_INTERVAL,
                exponent=settings.JOBMON_BACKOFF_EXPONENT,
                max_retries=settings.JOBMON_STATUS_POLLING_RETRIES,
            ),
            message_policy=BackoffPolicy(
                initial_interval=settings.JOBMON_MESSAGES_POLLING_INTERVAL,
                exponent=settings.JOBMON_BACKOFF_EXPONENT,
                max_retries=settings.JOBMON_MESSAGES_POLLING_RETRIES,
            ),
            monitoring_url_template=settings.JOBMON_MONITORING_URL_TEMPLATE,
            cancel_terminated_markers=tuple(settings.JOBMON_CANCEL_TERMINATED_MARKERS),
            cancel_terminated_reasons=tuple(settings.JOBMON_CANCEL_TERMINATED_REASONS),
        )
