"""
Single-consumer event worker.

Polls the slack_events queue, turns each pending event into a model reply,
posts it into the originating thread and records the new conversation turns.
A per-event failure never stops the loop: lookups that cannot succeed drain
the event, generation errors become the reply text, and failed deliveries are
retried one poll interval later until an optional attempt cap
dead-letters the event.

Run with `berlioz-worker` (or `python -m berlioz.workers.event_worker`).
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, ContextManager, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from berlioz.adapters.base import BasePlatformAdapter
from berlioz.adapters.media_fetcher import MediaFetcher
from berlioz.adapters.slack import SlackAdapter
from berlioz.config import Settings, get_settings
from berlioz.exceptions import PersistenceError, WorkerLockError
from berlioz.infra.logging_config import LoggingConfig, get_logger
from berlioz.models.slack_event import SlackEvent
from berlioz.models.slack_integration import SlackIntegration
from berlioz.schemas.messages import OutboundMessage, OutboundSendResult
from berlioz.schemas.slack import MessageEvent, SlackMessage, decode_envelope
from berlioz.services.content_extractor import ContentExtractor
from berlioz.services.conversation_service import ConversationService
from berlioz.services.event_service import EventService
from berlioz.services.integration_service import IntegrationService
from berlioz.utils.db.db_session_helper import db_session
from berlioz.workers.llm import GenerationOrchestrator, build_orchestrator_from_env

logger = get_logger("event_worker")


class WorkerOutcome(str, Enum):
    """What one poll cycle did."""

    IDLE = "idle"
    PROCESSED = "processed"
    IGNORED = "ignored"
    UNDELIVERABLE = "undeliverable"
    RETRY = "retry"
    ABANDONED = "abandoned"


# Outcomes that wait a poll interval before the next claim
SLEEP_AFTER = frozenset(
    {WorkerOutcome.IDLE, WorkerOutcome.RETRY, WorkerOutcome.ABANDONED}
)


class EventWorker:
    """Drives claim -> extract -> generate -> deliver -> persist -> mark processed."""

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        extractor: ContentExtractor,
        adapter_factory: Callable[[str], BasePlatformAdapter] = SlackAdapter,
        session_factory: Callable[[], ContextManager[Session]] = db_session,
        poll_interval: Optional[float] = None,
        max_delivery_attempts: Optional[int] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._orchestrator = orchestrator
        self._extractor = extractor
        self._adapter_factory = adapter_factory
        self._session_factory = session_factory
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else self.settings.worker_poll_interval_seconds
        )
        self.max_delivery_attempts = (
            max_delivery_attempts
            if max_delivery_attempts is not None
            else self.settings.worker_max_delivery_attempts
        )
        self._idle = False
        self._lock_connection: Optional[Connection] = None

    # -- single-consumer guard -------------------------------------------------

    def acquire_lock(self, engine: Engine) -> None:
        """
        Hold a PostgreSQL session-level advisory lock for the worker lifetime.

        Other dialects have no advisory locks; the worker then relies on being
        the only process started.

        Raises:
            WorkerLockError: another worker already holds the lock.
        """
        if engine.dialect.name != "postgresql":
            logger.info(
                "Advisory locks unavailable on %s; assuming a single worker",
                engine.dialect.name,
            )
            return
        key = self.settings.worker_advisory_lock_key
        connection = engine.connect()
        acquired = connection.execute(
            text("SELECT pg_try_advisory_lock(:key)"), {"key": key}
        ).scalar()
        if not acquired:
            connection.close()
            raise WorkerLockError(
                f"Another event worker holds advisory lock {key}; refusing to start"
            )
        connection.commit()
        self._lock_connection = connection
        logger.info("Acquired worker advisory lock %s", key)

    def release_lock(self) -> None:
        if self._lock_connection is None:
            return
        key = self.settings.worker_advisory_lock_key
        try:
            self._lock_connection.execute(
                text("SELECT pg_advisory_unlock(:key)"), {"key": key}
            )
        finally:
            self._lock_connection.close()
            self._lock_connection = None
        logger.info("Released worker advisory lock %s", key)

    # -- polling ---------------------------------------------------------------

    async def run_forever(self) -> None:
        """Poll until cancelled; sleep after an empty queue or a failed delivery."""
        logger.info(
            "Event worker started (poll interval %.1fs, max delivery attempts %s)",
            self.poll_interval,
            self.max_delivery_attempts or "unbounded",
        )
        while True:
            outcome = await self.poll_once()
            if outcome in SLEEP_AFTER:
                await asyncio.sleep(self.poll_interval)

    async def poll_once(self) -> WorkerOutcome:
        """Run one cycle on the oldest pending event, if there is one."""
        with self._session_factory() as db:
            events = EventService(db)
            event = events.claim_next()
            if event is None:
                if not self._idle:
                    logger.info("No unprocessed events")
                    self._idle = True
                return WorkerOutcome.IDLE
            self._idle = False

            event_id = event.id
            logger.info("Processing event %s", event_id)
            try:
                outcome = await self._process(db, event)
            except Exception as e:
                logger.exception("Unexpected error processing event %s", event_id)
                db.rollback()
                outcome = self._record_failure(events, event_id, f"{type(e).__name__}: {e}")
            logger.info("Event %s: %s", event_id, outcome.value)
            return outcome

    async def _process(self, db: Session, event: SlackEvent) -> WorkerOutcome:
        events = EventService(db)
        event_id = event.id

        try:
            envelope = decode_envelope(event.payload)
        except ValueError as e:
            logger.warning("Event %s has an undecodable payload: %s", event_id, e)
            events.mark_processed(event_id)
            return WorkerOutcome.UNDELIVERABLE

        integration = IntegrationService(db).get_integration_by_app_id(
            getattr(envelope, "api_app_id", None)
        )
        if integration is None:
            logger.error("No integration for event %s; dropping it", event_id)
            events.mark_processed(event_id)
            return WorkerOutcome.UNDELIVERABLE

        if not isinstance(envelope, MessageEvent) or envelope.event.is_from_bot:
            events.mark_processed(event_id)
            return WorkerOutcome.IGNORED

        message = envelope.event
        try:
            thread_anchor = message.thread_anchor
        except ValueError as e:
            logger.error("Event %s cannot be threaded: %s", event_id, e)
            events.mark_processed(event_id)
            return WorkerOutcome.UNDELIVERABLE

        conversations = ConversationService(db)
        ref = conversations.resolve(integration.id, message.channel, thread_anchor)
        reply_text, updated_history = await self._generate_reply(
            message, integration, conversations.get_history(ref)
        )

        result = await self._deliver(
            integration,
            OutboundMessage(
                channel_id=message.channel, text=reply_text, thread_ts=thread_anchor
            ),
        )
        if not result.success:
            return self._record_failure(
                events, event_id, result.error or "Reply delivery failed"
            )

        if updated_history:
            try:
                appended = conversations.reconcile_history(ref, updated_history)
                logger.debug("Stored %d turns for event %s", len(appended), event_id)
            except PersistenceError as e:
                # Reply already posted; the event still completes.
                logger.error("Failed to store turns for event %s: %s", event_id, e)

        events.mark_processed(event_id)
        return WorkerOutcome.PROCESSED

    async def _generate_reply(
        self,
        message: SlackMessage,
        integration: SlackIntegration,
        history: List[dict[str, Any]],
    ) -> Tuple[str, List[dict[str, Any]]]:
        """Reply text plus updated history; on any failure, the error text and no history."""
        try:
            request = self._extractor.extract(message, integration)
            result = await self._orchestrator.generate(history, request)
        except Exception as e:
            logger.warning("Generation failed, replying with the error: %s", e)
            return str(e), []
        return result.reply_text, result.updated_history

    async def _deliver(
        self, integration: SlackIntegration, outbound: OutboundMessage
    ) -> OutboundSendResult:
        adapter = self._adapter_factory(integration.access_token)
        try:
            return await adapter.send(outbound)
        except Exception as e:
            logger.warning("Reply delivery to %s raised: %s", outbound.channel_id, e)
            return OutboundSendResult(success=False, error=f"{type(e).__name__}: {e}")

    def _record_failure(
        self, events: EventService, event_id: int, error: str
    ) -> WorkerOutcome:
        failed = events.record_delivery_failure(
            event_id, error, max_attempts=self.max_delivery_attempts
        )
        if failed is not None and failed.abandoned_at is not None:
            return WorkerOutcome.ABANDONED
        logger.warning("Event %s left pending for retry: %s", event_id, error)
        return WorkerOutcome.RETRY


def build_worker_from_env(settings: Optional[Settings] = None) -> EventWorker:
    settings = settings or get_settings()
    fetcher = MediaFetcher(
        download_path=settings.media_download_path,
        timeout=settings.media_fetch_timeout_seconds,
    )
    return EventWorker(
        orchestrator=build_orchestrator_from_env(),
        extractor=ContentExtractor(fetcher),
        settings=settings,
    )


def main() -> None:
    from berlioz.db import engine

    settings = get_settings()
    LoggingConfig(settings.log_level)
    worker = build_worker_from_env(settings)
    worker.acquire_lock(engine)
    try:
        asyncio.run(worker.run_forever())
    except KeyboardInterrupt:
        logger.info("Event worker stopped")
    finally:
        worker.release_lock()


if __name__ == "__main__":
    main()
