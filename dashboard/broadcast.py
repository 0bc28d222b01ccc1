"""
Live dashboard notifications.

After a ticket, project or user mutation commits, a small ``DashboardEvent``
is published to every connected dashboard. Delivery is fire-and-forget: a
subscriber that cannot keep up is dropped, and a publish failure is logged
and never undoes the write that triggered it.
"""
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

TICKET_UPDATE = "ReceiveTicketUpdate"
PROJECT_UPDATE = "ReceiveProjectUpdate"
USER_UPDATE = "ReceiveUserUpdate"

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
COMMENTED = "commented"
ROLE_UPDATED = "roleUpdated"

METHODS = frozenset({TICKET_UPDATE, PROJECT_UPDATE, USER_UPDATE})
ACTIONS = frozenset({CREATED, UPDATED, DELETED, COMMENTED, ROLE_UPDATED})


@dataclass(frozen=True)
class DashboardEvent:
    method: str
    action: str
    entity_id: int
    prior_status: Optional[str] = None

    def __post_init__(self):
        if self.method not in METHODS:
            raise ValueError(f"Unknown dashboard method: {self.method}")
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown dashboard action: {self.action}")

    @property
    def arguments(self):
        args = [self.action, self.entity_id]
        if self.prior_status is not None:
            args.append(self.prior_status)
        return args

    def as_message(self):
        return {"target": self.method, "arguments": self.arguments}


class Broadcaster:
    """Anything with ``publish(event)``; pick one with settings.DASHBOARD_BROADCASTER."""

    def publish(self, event: DashboardEvent) -> None:
        raise NotImplementedError


class Subscription:
    """One connected dashboard: a bounded inbox drained by its stream."""

    def __init__(self, maxsize):
        self._queue = queue.Queue(maxsize=maxsize)
        self.closed = False

    def deliver(self, event):
        self._queue.put_nowait(event)

    def get(self, timeout=None):
        """Next event, or None when nothing arrived within ``timeout`` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class InMemoryBroadcaster(Broadcaster):
    """Fan-out to the subscriptions registered in this process."""

    def __init__(self, queue_size=None):
        self.queue_size = queue_size or getattr(settings, "DASHBOARD_STREAM_QUEUE_SIZE", 100)
        self._lock = threading.Lock()
        self._subscriptions = set()

    def subscribe(self):
        sub = Subscription(self.queue_size)
        with self._lock:
            self._subscriptions.add(sub)
        logger.debug("Dashboard subscribed (%d live)", len(self._subscriptions))
        return sub

    def unsubscribe(self, sub):
        sub.closed = True
        with self._lock:
            self._subscriptions.discard(sub)

    @property
    def connection_count(self):
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event):
        with self._lock:
            targets = list(self._subscriptions)

        dead = []
        for sub in targets:
            try:
                sub.deliver(event)
            except queue.Full:
                logger.warning("Dropping slow dashboard subscriber (%s %s)", event.method, event.action)
                dead.append(sub)
            except Exception:
                logger.exception("Dashboard delivery failed; dropping subscriber")
                dead.append(sub)

        for sub in dead:
            self.unsubscribe(sub)


_broadcaster = None
_broadcaster_lock = threading.Lock()


def get_broadcaster():
    global _broadcaster
    if _broadcaster is None:
        with _broadcaster_lock:
            if _broadcaster is None:
                _broadcaster = import_string(settings.DASHBOARD_BROADCASTER)()
    return _broadcaster


def reset_broadcaster():
    """Forget the process-wide instance (settings change, tests)."""
    global _broadcaster
    with _broadcaster_lock:
        _broadcaster = None


def _deliver(event):
    try:
        get_broadcaster().publish(event)
    except Exception:
        logger.exception("Failed to publish %s %s #%s", event.method, event.action, event.entity_id)


def publish_on_commit(event):
    """Hand the event to the broadcaster once the surrounding transaction commits."""
    transaction.on_commit(lambda: _deliver(event))


def broadcast_ticket(action, ticket_id, prior_status=None):
    publish_on_commit(DashboardEvent(TICKET_UPDATE, action, ticket_id, prior_status))


def broadcast_project(action, project_id):
    publish_on_commit(DashboardEvent(PROJECT_UPDATE, action, project_id))


def broadcast_user(action, user_id):
    publish_on_commit(DashboardEvent(USER_UPDATE, action, user_id))
