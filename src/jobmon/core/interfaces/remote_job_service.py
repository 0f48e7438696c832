"""RemoteJobServicePort: hexagonal port for the remote job execution service.

Async methods anticipate network-backed adapters. Implementations raise
`TransientIOError` for retryable failures and `RemoteRequestError` for
rejected requests; `MalformedResponseError` when a body cannot be parsed.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from jobmon.core.models.job import RemoteJob
from jobmon.core.models.message import ProgressMessage
from jobmon.core.models.metrics import MetricUpdate


class RemoteJobServicePort(ABC):
	"""Port abstraction for querying and steering a remote job."""

	@abstractmethod
	async def get_job(self, project_id: str, job_id: str) -> RemoteJob:
		"""Return the current remote description of the job."""
		raise NotImplementedError

	@abstractmethod
	async def request_state_change(self, project_id: str, job_id: str, requested_state: str) -> None:
		"""Ask the service to move the job to `requested_state` (remote vocabulary)."""
		raise NotImplementedError

	@abstractmethod
	async def list_messages_since(
		self,
		project_id: str,
		job_id: str,
		since: Optional[datetime],
	) -> List[ProgressMessage]:
		"""Return progress messages newer than `since` (all messages if None)."""
		raise NotImplementedError

	@abstractmethod
	async def get_metrics(self, project_id: str, job_id: str) -> List[MetricUpdate]:
		"""Return the job's current metric updates."""
		raise NotImplementedError
