# Logging adapter for application-wide logging
from jobmon.adapters.logging_adapter import LoggingAdapter

from pydantic import HttpUrl, field_validator
from pydantic_settings import BaseSettings

from jobmon.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class JobMonitorSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"  # ignore unrelated environment variables
    }
    JOBMON_LOG_LEVEL: str = "INFO"
    JOBMON_API_BASE_URL: HttpUrl = HttpUrl("https://dataflow.googleapis.com")
    JOBMON_API_VERSION: str = "v1b3"
    JOBMON_REQUEST_TIMEOUT: float = 30.0  # seconds
    JOBMON_STATUS_POLLING_INTERVAL: float = 2.0  # seconds
    JOBMON_STATUS_POLLING_RETRIES: int = 4
    JOBMON_MESSAGES_POLLING_INTERVAL: float = 2.0  # seconds
    JOBMON_MESSAGES_POLLING_RETRIES: int = 11
    JOBMON_BACKOFF_EXPONENT: float = 1.5
    JOBMON_MONITORING_URL_TEMPLATE: str = (
        "https://console.developers.google.com/project/{project_id}/dataflow/job/{job_id}"
    )
    # Fragments of a rejected cancel message meaning "job already finished"
    JOBMON_CANCEL_TERMINATED_MARKERS: list[str] = ["has terminated"]
    JOBMON_CANCEL_TERMINATED_REASONS: list[str] = []

    def log_settings(self, logger: LoggingPort):
        """Logs the settings for debugging purposes"""
        logger.debug("jobmon settings: %s", self.model_dump())

    @field_validator("JOBMON_MONITORING_URL_TEMPLATE")
    def ensure_template_placeholders(cls, value: str) -> str:
        """Ensure the monitoring URL template names both the project and the job."""
        for placeholder in ("{project_id}", "{job_id}"):
            if placeholder not in value:
                raise ValueError(f"JOBMON_MONITORING_URL_TEMPLATE must contain {placeholder}")
        return value


app_settings = JobMonitorSettings()

logger = LoggingAdapter("jobmon", app_settings.JOBMON_LOG_LEVEL)

app_settings.log_settings(logger)
