from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class RemoteJob(BaseModel):
    """Snapshot of a job as reported by the remote service.

    Only the fields the monitor relies on are modelled; the remote job
    description carries much more and the rest is ignored.
    """

    id: str
    project_id: Optional[str] = Field(default=None, alias="projectId")
    name: Optional[str] = None
    current_state: Optional[str] = Field(default=None, alias="currentState")
    current_state_time: Optional[datetime] = Field(default=None, alias="currentStateTime")
    requested_state: Optional[str] = Field(default=None, alias="requestedState")
    # Set when the job was updated in place by a new job
    replaced_by_job_id: Optional[str] = Field(default=None, alias="replacedByJobId")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }
