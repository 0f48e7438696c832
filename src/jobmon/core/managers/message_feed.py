"""MessageFeed: watermark-based retrieval of a job's progress messages."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from jobmon.core.interfaces.logging import LoggingPort
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.models.message import MessageSeverity, ProgressMessage
from jobmon.core.settings import logger

MessageHandler = Callable[[List[ProgressMessage]], Union[None, Awaitable[None]]]


class MessageFeed:
    """Fetches messages newer than a watermark timestamp.

    Failures propagate to the caller unchanged; the feed neither retries nor
    remembers anything, so a failed fetch leaves the caller's watermark as is.
    """

    def __init__(self, service: RemoteJobServicePort, project_id: str, job_id: str) -> None:
        self._service = service
        self._project_id = project_id
        self._job_id = job_id

    async def fetch(
        self, since: Optional[datetime]
    ) -> Tuple[List[ProgressMessage], Optional[datetime]]:
        """Return (messages ascending by timestamp, new watermark).

        The watermark is the last message's timestamp, or `since` unchanged
        when the batch is empty.
        """
        raw = await self._service.list_messages_since(self._project_id, self._job_id, since)
        batch = sorted(
            (m for m in raw if since is None or m.timestamp > since),
            key=lambda m: m.timestamp,
        )
        if not batch:
            return [], since
        return batch, batch[-1].timestamp


async def dispatch(handler: MessageHandler, batch: List[ProgressMessage]) -> None:
    """Invoke a sync or async message handler."""
    result = handler(batch)
    if inspect.isawaitable(result):
        await result


_SEVERITY_LEVELS = {
    MessageSeverity.debug: logging.DEBUG,
    MessageSeverity.detailed: logging.DEBUG,
    MessageSeverity.basic: logging.INFO,
    MessageSeverity.warning: logging.WARNING,
    MessageSeverity.error: logging.ERROR,
}


class LoggingMessageHandler:
    """Message handler that logs each message at a level matching its severity."""

    def __init__(self, log: Optional[LoggingPort] = None) -> None:
        self._log = log or logger

    def __call__(self, batch: List[ProgressMessage]) -> None:
        for message in batch:
            level = _SEVERITY_LEVELS.get(message.severity, logging.INFO)
            self._log.log(level, "%s: %s", message.timestamp.isoformat(), message.text)
