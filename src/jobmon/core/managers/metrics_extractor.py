"""MetricsExtractor: aggregator values from the job's raw metric updates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from jobmon.core.config import JobMonitorConfig
from jobmon.core.exceptions import (
    MalformedResponseError,
    MetricsRetrievalError,
    RemoteServiceError,
    UnknownAggregatorError,
)
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.managers.status_probe import StatusProbe
from jobmon.core.models.metrics import AggregatorBindings, MetricUpdate
from jobmon.core.settings import logger

if TYPE_CHECKING:
    from jobmon.core.job_handle import JobHandle


class MetricsExtractor:
    """Fetches, caches and projects metric updates onto aggregator bindings.

    Metrics of a finished job never change, so the first non-empty set
    fetched after the job is known to be terminal is kept on the handle and
    served from there. Running jobs are always refetched.
    """

    def __init__(
        self,
        handle: "JobHandle",
        service: RemoteJobServicePort,
        probe: StatusProbe,
        bindings: AggregatorBindings,
        config: JobMonitorConfig,
    ) -> None:
        self._handle = handle
        self._service = service
        self._probe = probe
        self._bindings = bindings
        self.config = config

    async def get(self, aggregator_name: str) -> Dict[str, Any]:
        """Return {user-facing step name: combined value} for an aggregator.

        Raises:
            UnknownAggregatorError: the job does not use this aggregator.
            MetricsRetrievalError: the metrics could not be fetched.
        """
        binding = self._bindings.get(aggregator_name)
        if binding is None:
            raise UnknownAggregatorError(aggregator_name, job_id=self._handle.job_id)

        try:
            updates = await self._load_updates()
        except (RemoteServiceError, MalformedResponseError) as exc:
            logger.error(
                f"[metrics:error] job_id={self._handle.job_id} aggregator={aggregator_name} error={exc}"
            )
            raise MetricsRetrievalError(
                aggregator_name, job_id=self._handle.job_id, diagnostic=str(exc)
            ) from exc

        return binding.project(updates)

    async def _load_updates(self) -> List[MetricUpdate]:
        cached = self._handle.cached_metrics
        if cached is not None:
            return cached

        terminal = (await self._probe.fetch_state(self.config.status_policy)).is_terminal()
        updates = await self._service.get_metrics(self._handle.project_id, self._handle.job_id)
        if terminal and updates:
            self._handle.record_metrics(updates)
        logger.debug(
            f"[metrics:fetch] job_id={self._handle.job_id} count={len(updates)} terminal={terminal}"
        )
        return updates
