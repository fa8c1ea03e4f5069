"""
Audit Sinks

Audit events are fire-and-forget: ``record()`` hands the event to a background
worker and returns immediately. Write failures are logged and never reach the
caller, so a broken audit destination cannot fail a claim submission.
"""

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmacy_claims.api.config import Settings
from pharmacy_claims.core.enums import AuditSinkType
from pharmacy_claims.models import AuditEvent
from pharmacy_claims.utils.clock import utc_now
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)

AUDIT_QUEUE_SIZE = 10000


class AuditSink(Protocol):
    """Destination for audit events."""

    def record(self, event_type: str, payload: dict[str, Any]) -> None: ...


def to_json_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Convert UUIDs, decimals and datetimes to JSON-safe strings."""
    return json.loads(json.dumps(payload, default=str))


class FileAuditSink:
    """
    Writes each event to ``<log_dir>/<event_type>-<uuid>.json``.

    Files are written by a single background thread, in submission order.
    """

    def __init__(self, log_dir: str | Path):
        self.log_dir = Path(log_dir)
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create audit log directory {self.log_dir}: {e}")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-writer")

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        event = {
            "event_type": event_type,
            "timestamp": utc_now().isoformat(),
            "payload": payload,
        }
        try:
            self._executor.submit(self._write, event_type, event)
        except RuntimeError as e:
            # Executor already shut down
            logger.warning(f"Dropping audit event {event_type}: {e}")

    def _write(self, event_type: str, event: dict[str, Any]) -> None:
        path = self.log_dir / f"{event_type}-{uuid4()}.json"
        try:
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(event, handle, indent=2, default=str)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write audit event {event_type} to {path}: {e}")

    async def close(self) -> None:
        """Wait for queued writes and stop the writer thread."""
        await asyncio.to_thread(self._executor.shutdown, True)


class DatabaseAuditSink:
    """
    Appends an :class:`AuditEvent` row per event.

    Events go onto a bounded queue drained by a single background task, so
    audit writes hold at most one pooled connection. When the queue is full
    the event is dropped with a warning.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        max_pending: int = AUDIT_QUEUE_SIZE,
    ):
        self._session_maker = session_maker
        self._max_pending = max_pending
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] | None = None
        self._drainer: asyncio.Task[None] | None = None

    def record(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Dropping audit event {event_type}: no running event loop")
            return

        if self._queue is None or self._drainer is None:
            self._queue = asyncio.Queue(maxsize=self._max_pending)
            self._drainer = loop.create_task(self._drain(self._queue))

        try:
            self._queue.put_nowait((event_type, to_json_payload(payload)))
        except asyncio.QueueFull:
            logger.warning(f"Dropping audit event {event_type}: audit queue is full")

    async def _drain(self, queue: "asyncio.Queue[tuple[str, dict[str, Any]]]") -> None:
        while True:
            event_type, payload = await queue.get()
            try:
                await self._write(event_type, payload)
            except Exception as e:  # noqa: BLE001
                # Keep draining; one bad event must not stop auditing
                logger.error(f"Failed to store audit event {event_type}: {e}")
            finally:
                queue.task_done()

    async def _write(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            async with self._session_maker() as session, session.begin():
                session.add(
                    AuditEvent(
                        event_type=event_type,
                        timestamp=utc_now(),
                        payload=payload,
                    )
                )
        except SQLAlchemyError as e:
            logger.error(f"Failed to store audit event {event_type}: {e}")

    async def close(self) -> None:
        """Wait for queued writes and stop the drain task."""
        if self._queue is None or self._drainer is None:
            return

        await self._queue.join()
        self._drainer.cancel()
        await asyncio.gather(self._drainer, return_exceptions=True)
        self._queue = None
        self._drainer = None


def build_audit_sink(
    config: Settings,
    session_maker: async_sessionmaker[AsyncSession],
) -> FileAuditSink | DatabaseAuditSink:
    """Create the sink selected by ``AUDIT_SINK``."""
    if config.AUDIT_SINK == AuditSinkType.DATABASE:
        logger.info("Audit events go to the audit_events table")
        return DatabaseAuditSink(session_maker)

    logger.info(f"Audit events go to {config.AUDIT_LOG_DIR}")
    return FileAuditSink(config.AUDIT_LOG_DIR)
