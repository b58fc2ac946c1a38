"""
Realtime change feed — publishes committed row changes to subscribers.

Flow:
    after_flush   → inserted/updated/deleted rows of watched tables are
                    collected into ``session.info``
    after_commit  → collected changes are published as ChangeEvents
    after_rollback→ collected changes are discarded

Subscribers are bounded ``queue.Queue`` objects filtered by project and,
optionally, by table. A full queue drops its oldest event; when the hub is
at capacity the oldest subscriber is evicted (it receives ``None``).

Usage:
    from phaseboard.services.change_feed import change_feed

    sub = change_feed.subscribe(project_id=7, tables={"processes"})
    event = sub.queue.get(timeout=15)
    change_feed.unsubscribe(sub)
"""

from __future__ import annotations

import json
import logging
import queue
import threading

from sqlalchemy import event
from sqlalchemy.orm import Session

from phaseboard.models.base import utcnow

logger = logging.getLogger(__name__)

_PENDING_KEY = "change_feed_pending"


def _row_project_id(obj):
    if obj.__tablename__ == "projects":
        return obj.id
    return getattr(obj, "project_id", None)


def _row_id(obj):
    if obj.__tablename__ == "project_members":
        return obj.profile_id
    return obj.id


WATCHED_TABLES = frozenset({
    "projects",
    "processes",
    "process_dependencies",
    "tasks",
    "meeting_notes",
    "project_urls",
    "project_members",
})


class ChangeEvent:
    """One committed row change."""

    __slots__ = ("table", "op", "project_id", "row_id", "at")

    def __init__(self, table: str, op: str, project_id, row_id, at=None):
        self.table = table
        self.op = op
        self.project_id = project_id
        self.row_id = row_id
        self.at = at or utcnow()

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "op": self.op,
            "project_id": self.project_id,
            "row_id": self.row_id,
            "at": self.at.isoformat(),
        }

    def to_sse(self) -> str:
        return f"event: change\ndata: {json.dumps(self.to_dict())}\n\n"

    def __repr__(self):
        return f"<ChangeEvent {self.op} {self.table}#{self.row_id} project={self.project_id}>"


class Subscription:
    """A subscriber's queue plus its filter."""

    def __init__(self, project_id: int, tables=None, maxsize: int = 100):
        self.project_id = project_id
        self.tables = frozenset(tables) if tables else None
        self.queue: queue.Queue[ChangeEvent | None] = queue.Queue(maxsize=maxsize)

    def matches(self, change: ChangeEvent) -> bool:
        if change.project_id != self.project_id:
            return False
        return self.tables is None or change.table in self.tables

    def offer(self, change: ChangeEvent | None) -> None:
        """Enqueue without blocking, dropping the oldest event when full."""
        while True:
            try:
                self.queue.put_nowait(change)
                return
            except queue.Full:
                try:
                    self.queue.get_nowait()
                except queue.Empty:
                    pass


class ChangeFeed:
    """Thread-safe fan-out hub for ChangeEvents."""

    def __init__(self, max_subscribers: int = 100, queue_size: int = 100) -> None:
        self.max_subscribers = max_subscribers
        self.queue_size = queue_size
        self._subscribers: list[Subscription] = []
        self._lock = threading.Lock()

    def configure(self, *, max_subscribers: int | None = None, queue_size: int | None = None) -> None:
        if max_subscribers is not None:
            self.max_subscribers = max_subscribers
        if queue_size is not None:
            self.queue_size = queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, project_id: int, tables=None) -> Subscription:
        """Register a subscriber for one project (optionally a subset of tables)."""
        if tables:
            unknown = set(tables) - WATCHED_TABLES
            if unknown:
                raise ValueError(f"Unknown tables: {', '.join(sorted(unknown))}")
        sub = Subscription(project_id, tables, maxsize=self.queue_size)
        with self._lock:
            while len(self._subscribers) >= self.max_subscribers:
                oldest = self._subscribers.pop(0)
                logger.warning(
                    "Change feed at capacity (%d), evicting oldest subscriber project=%s",
                    self.max_subscribers, oldest.project_id,
                )
                oldest.offer(None)
            self._subscribers.append(sub)
        logger.debug("Change feed subscribe project=%s tables=%s", project_id, sub.tables)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    def publish(self, change: ChangeEvent) -> int:
        """Deliver *change* to every matching subscriber; returns the count."""
        with self._lock:
            targets = [s for s in self._subscribers if s.matches(change)]
        for sub in targets:
            sub.offer(change)
        return len(targets)

    def clear(self) -> None:
        with self._lock:
            subs, self._subscribers = self._subscribers, []
        for sub in subs:
            sub.offer(None)


change_feed = ChangeFeed()


# ── Session hooks ────────────────────────────────────────────────────────────


def _collect(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])
    # Rows inserted earlier in this transaction report no separate update.
    inserted = {(c.table, c.row_id) for c in pending if c.op == "insert"}
    for op, objs in (
        ("insert", session.new),
        ("update", session.dirty),
        ("delete", session.deleted),
    ):
        for obj in objs:
            table = getattr(obj, "__tablename__", None)
            if table not in WATCHED_TABLES:
                continue
            if op == "update" and not session.is_modified(obj, include_collections=False):
                continue
            key = (table, _row_id(obj))
            if op == "insert":
                inserted.add(key)
            elif op == "update" and key in inserted:
                continue
            pending.append(ChangeEvent(table, op, _row_project_id(obj), key[1]))


def _publish(session):
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return
    delivered = 0
    for change in pending:
        delivered += change_feed.publish(change)
    logger.debug("Change feed published %d change(s) to %d subscriber(s)", len(pending), delivered)


def _discard(session):
    session.info.pop(_PENDING_KEY, None)


def register_session_hooks() -> None:
    """Attach the collect/publish/discard hooks to every ORM session (once)."""
    if event.contains(Session, "after_flush", _collect):
        return
    event.listen(Session, "after_flush", _collect)
    event.listen(Session, "after_commit", _publish)
    event.listen(Session, "after_rollback", _discard)


def init_change_feed(app) -> None:
    """Apply config limits to the shared hub and install the session hooks."""
    change_feed.configure(
        max_subscribers=app.config.get("CHANGE_FEED_MAX_SUBSCRIBERS"),
        queue_size=app.config.get("CHANGE_FEED_QUEUE_SIZE"),
    )
    register_session_hooks()
    app.extensions["change_feed"] = change_feed
    app.logger.info(
        "Change feed ready (max_subscribers=%s, queue_size=%s)",
        change_feed.max_subscribers, change_feed.queue_size,
    )
