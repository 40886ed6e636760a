"""Tests for the polling event worker."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic_ai.messages import ModelResponse
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from berlioz.adapters.base import BasePlatformAdapter
from berlioz.exceptions import WorkerLockError
from berlioz.models.conversation import Conversation
from berlioz.models.conversation_turn import ConversationTurn
from berlioz.schemas.messages import OutboundSendResult
from berlioz.services.content_extractor import ContentExtractor
from berlioz.services.event_service import EventService
from berlioz.workers.event_worker import EventWorker, WorkerOutcome
from berlioz.workers.llm import GenerationOrchestrator
from tests.fixtures.event_fixtures import app_mention_body

OK = OutboundSendResult(success=True, platform_message_id="1718000001.000200")
FAILED = OutboundSendResult(success=False, error="channel_not_found")


class ScriptedAdapter(BasePlatformAdapter):
    """Returns the scripted send results in order; repeats the last one."""

    def __init__(self, *results):
        self.results = list(results) or [OK]
        self.sent = []

    async def send(self, outbound):
        self.sent.append(outbound)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


def _worker(adapter, model=None, max_delivery_attempts=5):
    return EventWorker(
        orchestrator=GenerationOrchestrator(model or TestModel(custom_output_text="Sunny")),
        extractor=ContentExtractor(MagicMock()),
        adapter_factory=lambda token: adapter,
        poll_interval=0.01,
        max_delivery_attempts=max_delivery_attempts,
    )


def _turn_count(db):
    db.expire_all()
    return db.query(ConversationTurn).count()


@pytest.mark.asyncio
async def test_poll_once_idle_when_queue_empty(db):
    assert await _worker(ScriptedAdapter()).poll_once() == WorkerOutcome.IDLE


@pytest.mark.asyncio
async def test_idle_log_is_edge_triggered(db, setup_integration, mention_body, caplog):
    caplog.set_level(logging.INFO, logger="berlioz")
    worker = _worker(ScriptedAdapter())

    await worker.poll_once()
    await worker.poll_once()
    assert caplog.text.count("No unprocessed events") == 1

    EventService(db).enqueue(setup_integration.id, mention_body)
    await worker.poll_once()
    await worker.poll_once()
    await worker.poll_once()
    assert caplog.text.count("No unprocessed events") == 2


@pytest.mark.asyncio
async def test_unknown_app_is_drained_without_reply(db):
    event = EventService(db).enqueue(None, app_mention_body("AUNKNOWN"))
    adapter = ScriptedAdapter()

    outcome = await _worker(adapter).poll_once()

    assert outcome == WorkerOutcome.UNDELIVERABLE
    assert adapter.sent == []
    db.expire_all()
    assert EventService(db).get_event(event.id).processed_at is not None
    assert _turn_count(db) == 0


@pytest.mark.asyncio
async def test_successful_reply_is_threaded_and_recorded(db, setup_event, mention_body):
    adapter = ScriptedAdapter(OK)

    outcome = await _worker(adapter).poll_once()

    assert outcome == WorkerOutcome.PROCESSED
    assert len(adapter.sent) == 1
    sent = adapter.sent[0]
    assert sent.channel_id == mention_body["event"]["channel"]
    assert sent.thread_ts == mention_body["event"]["event_ts"]
    assert sent.text == "Sunny"

    db.expire_all()
    assert EventService(db).get_event(setup_event.id).processed_at is not None
    conversation = db.query(Conversation).one()
    assert conversation.thread_anchor == mention_body["event"]["event_ts"]
    assert [t.role for t in conversation.turns] == ["request", "response"]


@pytest.mark.asyncio
async def test_delivery_fails_twice_then_succeeds(db, setup_event):
    adapter = ScriptedAdapter(FAILED, FAILED, OK)
    worker = _worker(adapter)
    svc = EventService(db)

    assert await worker.poll_once() == WorkerOutcome.RETRY
    db.expire_all()
    assert svc.get_event(setup_event.id).processed_at is None
    assert _turn_count(db) == 0

    assert await worker.poll_once() == WorkerOutcome.RETRY
    db.expire_all()
    event = svc.get_event(setup_event.id)
    assert event.processed_at is None
    assert event.delivery_attempts == 2
    assert event.last_error == "channel_not_found"

    assert await worker.poll_once() == WorkerOutcome.PROCESSED
    db.expire_all()
    assert svc.get_event(setup_event.id).processed_at is not None
    assert len(adapter.sent) == 3
    # One request/response pair from the successful attempt only
    assert _turn_count(db) == 2
    assert db.query(Conversation).count() == 1


@pytest.mark.asyncio
async def test_event_is_abandoned_after_max_attempts(db, setup_integration, setup_event, mention_body):
    later = EventService(db).enqueue(setup_integration.id, mention_body)
    adapter = ScriptedAdapter(FAILED, FAILED, OK)
    worker = _worker(adapter, max_delivery_attempts=2)

    assert await worker.poll_once() == WorkerOutcome.RETRY
    assert await worker.poll_once() == WorkerOutcome.ABANDONED
    # Queue moves on to the next event
    assert await worker.poll_once() == WorkerOutcome.PROCESSED
    assert await worker.poll_once() == WorkerOutcome.IDLE

    db.expire_all()
    svc = EventService(db)
    assert svc.get_event(setup_event.id).status == "abandoned"
    assert svc.get_event(later.id).status == "processed"


@pytest.mark.asyncio
async def test_adapter_exception_counts_as_failed_delivery(db, setup_event):
    adapter = ScriptedAdapter()
    adapter.send = AsyncMock(side_effect=ConnectionError("reset by peer"))

    assert await _worker(adapter).poll_once() == WorkerOutcome.RETRY
    db.expire_all()
    event = EventService(db).get_event(setup_event.id)
    assert event.processed_at is None
    assert "reset by peer" in event.last_error


@pytest.mark.asyncio
async def test_generation_failure_replies_with_error_text(db, setup_event):
    def failing_model(messages, info: AgentInfo) -> ModelResponse:
        raise RuntimeError("content blocked")

    adapter = ScriptedAdapter(OK)
    outcome = await _worker(adapter, model=FunctionModel(failing_model)).poll_once()

    assert outcome == WorkerOutcome.PROCESSED
    assert "content blocked" in adapter.sent[0].text
    assert _turn_count(db) == 0
    assert db.query(Conversation).count() == 0


@pytest.mark.asyncio
async def test_bot_messages_are_ignored(db, setup_integration):
    body = app_mention_body(setup_integration.external_app_id, bot_id="B0BOT")
    event = EventService(db).enqueue(setup_integration.id, body)
    adapter = ScriptedAdapter()

    assert await _worker(adapter).poll_once() == WorkerOutcome.IGNORED
    assert adapter.sent == []
    db.expire_all()
    assert EventService(db).get_event(event.id).processed_at is not None


@pytest.mark.asyncio
async def test_non_message_events_are_ignored(db, setup_integration):
    body = {
        "type": "event_callback",
        "api_app_id": setup_integration.external_app_id,
        "event": {"type": "reaction_added", "reaction": "wave"},
    }
    EventService(db).enqueue(setup_integration.id, body)
    adapter = ScriptedAdapter()

    assert await _worker(adapter).poll_once() == WorkerOutcome.IGNORED
    assert adapter.sent == []


@pytest.mark.asyncio
async def test_follow_up_in_thread_extends_history(db, setup_integration):
    root_ts = "1718000000.000100"
    svc = EventService(db)
    svc.enqueue(
        setup_integration.id,
        app_mention_body(setup_integration.external_app_id, ts=root_ts),
    )
    svc.enqueue(
        setup_integration.id,
        app_mention_body(
            setup_integration.external_app_id,
            text="and tomorrow?",
            ts="1718000050.000300",
            thread_ts=root_ts,
        ),
    )
    adapter = ScriptedAdapter(OK)
    worker = _worker(adapter)

    assert await worker.poll_once() == WorkerOutcome.PROCESSED
    assert await worker.poll_once() == WorkerOutcome.PROCESSED

    db.expire_all()
    conversation = db.query(Conversation).one()
    assert [t.sequence for t in conversation.turns] == [0, 1, 2, 3]
    assert {s.thread_ts for s in adapter.sent} == {root_ts}


@pytest.mark.asyncio
async def test_run_forever_sleeps_once_queue_is_drained(db, setup_event):
    worker = _worker(ScriptedAdapter(OK))
    sleep = AsyncMock(side_effect=asyncio.CancelledError)

    with patch("berlioz.workers.event_worker.asyncio.sleep", sleep):
        with pytest.raises(asyncio.CancelledError):
            await worker.run_forever()

    sleep.assert_awaited_once_with(worker.poll_interval)
    db.expire_all()
    assert EventService(db).get_event(setup_event.id).processed_at is not None


@pytest.mark.asyncio
async def test_run_forever_waits_poll_interval_before_retrying(db, setup_event):
    adapter = ScriptedAdapter(FAILED)
    worker = _worker(adapter, max_delivery_attempts=0)
    sleep = AsyncMock(side_effect=asyncio.CancelledError)

    with patch("berlioz.workers.event_worker.asyncio.sleep", sleep):
        with pytest.raises(asyncio.CancelledError):
            await worker.run_forever()

    sleep.assert_awaited_once_with(worker.poll_interval)
    assert len(adapter.sent) == 1
    db.expire_all()
    event = EventService(db).get_event(setup_event.id)
    assert event.processed_at is None
    assert event.delivery_attempts == 1


@pytest.mark.asyncio
async def test_run_forever_waits_between_each_failed_attempt(db, setup_event):
    adapter = ScriptedAdapter(FAILED)
    worker = _worker(adapter, max_delivery_attempts=3)
    sends_at_sleep = []

    async def fake_sleep(seconds):
        sends_at_sleep.append(len(adapter.sent))
        if len(sends_at_sleep) == 4:
            raise asyncio.CancelledError

    with patch("berlioz.workers.event_worker.asyncio.sleep", side_effect=fake_sleep):
        with pytest.raises(asyncio.CancelledError):
            await worker.run_forever()

    # retry, retry, abandoned, then idle
    assert sends_at_sleep == [1, 2, 3, 3]
    db.expire_all()
    assert EventService(db).get_event(setup_event.id).status == "abandoned"


def test_acquire_lock_is_noop_on_sqlite(db):
    from berlioz.db import engine

    worker = _worker(ScriptedAdapter())
    worker.acquire_lock(engine)
    worker.release_lock()


def test_acquire_lock_fails_when_held_elsewhere(db):
    engine = MagicMock()
    engine.dialect.name = "postgresql"
    engine.connect.return_value.execute.return_value.scalar.return_value = False

    with pytest.raises(WorkerLockError):
        _worker(ScriptedAdapter()).acquire_lock(engine)
    engine.connect.return_value.close.assert_called_once()


def test_acquire_lock_holds_connection_until_release(db):
    engine = MagicMock()
    engine.dialect.name = "postgresql"
    connection = engine.connect.return_value
    connection.execute.return_value.scalar.return_value = True

    worker = _worker(ScriptedAdapter())
    worker.acquire_lock(engine)
    connection.close.assert_not_called()

    worker.release_lock()
    connection.close.assert_called_once()
