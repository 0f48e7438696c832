import logging
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

from jobmon.core.exceptions import TransientIOError
from jobmon.core.interfaces.logging import LoggingPort
from jobmon.core.interfaces.remote_job_service import RemoteJobServicePort
from jobmon.core.managers.message_feed import LoggingMessageHandler, MessageFeed, dispatch
from jobmon.core.models.message import MessageSeverity, ProgressMessage

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def message(seconds, text="", severity=MessageSeverity.basic):
    return ProgressMessage(timestamp=T0 + timedelta(seconds=seconds), text=text or f"m{seconds}", severity=severity)


@pytest.fixture
def service():
    return AsyncMock(spec=RemoteJobServicePort)


@pytest.fixture
def feed(service):
    return MessageFeed(service, "proj", "job-1")


@pytest.mark.asyncio
async def test_batch_sorted_and_watermark_advanced(feed, service):
    service.list_messages_since.return_value = [message(3), message(1), message(2)]

    batch, watermark = await feed.fetch(None)

    assert [m.text for m in batch] == ["m1", "m2", "m3"]
    assert watermark == T0 + timedelta(seconds=3)
    service.list_messages_since.assert_awaited_once_with("proj", "job-1", None)


@pytest.mark.asyncio
async def test_empty_batch_keeps_watermark(feed, service):
    service.list_messages_since.return_value = []
    since = T0 + timedelta(seconds=5)

    batch, watermark = await feed.fetch(since)

    assert batch == []
    assert watermark == since


@pytest.mark.asyncio
async def test_messages_at_or_before_watermark_dropped(feed, service):
    since = T0 + timedelta(seconds=2)
    service.list_messages_since.return_value = [message(1), message(2), message(4)]

    batch, watermark = await feed.fetch(since)

    assert [m.text for m in batch] == ["m4"]
    assert watermark == T0 + timedelta(seconds=4)
    service.list_messages_since.assert_awaited_once_with("proj", "job-1", since)


@pytest.mark.asyncio
async def test_failure_propagates(feed, service):
    service.list_messages_since.side_effect = TransientIOError("503")

    with pytest.raises(TransientIOError):
        await feed.fetch(None)


def test_naive_timestamps_treated_as_utc():
    msg = ProgressMessage.model_validate({"time": "2024-05-01T12:00:00", "messageText": "hi"})

    assert msg.timestamp == T0
    assert msg.severity is MessageSeverity.unknown


def test_unrecognized_importance_is_unknown():
    msg = ProgressMessage.model_validate(
        {"time": "2024-05-01T12:00:00Z", "messageImportance": "JOB_MESSAGE_SHOUTING"}
    )

    assert msg.severity is MessageSeverity.unknown


class TestDispatch:

    @pytest.mark.asyncio
    async def test_plain_handler(self):
        handler = Mock(return_value=None)
        batch = [message(1)]

        await dispatch(handler, batch)

        handler.assert_called_once_with(batch)

    @pytest.mark.asyncio
    async def test_async_handler(self):
        handler = AsyncMock()
        batch = [message(1)]

        await dispatch(handler, batch)

        handler.assert_awaited_once_with(batch)


class TestLoggingMessageHandler:

    def test_levels_follow_severity(self):
        log = Mock(spec=LoggingPort)
        handler = LoggingMessageHandler(log)

        handler([
            message(1, "dbg", MessageSeverity.debug),
            message(2, "info", MessageSeverity.basic),
            message(3, "warn", MessageSeverity.warning),
            message(4, "err", MessageSeverity.error),
            message(5, "other", MessageSeverity.unknown),
        ])

        levels = [c.args[0] for c in log.log.call_args_list]
        assert levels == [logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.INFO]
        assert log.log.call_args_list[2].args[3] == "warn"
