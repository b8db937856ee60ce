# eventdesk/services/notifications.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

QUOTE_REQUESTED_VENDOR = "quote-requested-vendor"
QUOTE_REQUESTED_ADMIN = "quote-requested-admin"
QUOTE_CREATED_CLIENT = "quote-created-client"
QUOTE_REVISED_CLIENT = "quote-revised-client"
QUOTE_ACCEPTED_VENDOR = "quote-accepted-vendor"
QUOTE_REJECTED_VENDOR = "quote-rejected-vendor"
SUBSCRIPTION_ACTIVATED_ADMIN = "subscription-activated-admin"
VENDOR_WELCOME = "vendor-welcome"

KINDS = frozenset({
    QUOTE_REQUESTED_VENDOR,
    QUOTE_REQUESTED_ADMIN,
    QUOTE_CREATED_CLIENT,
    QUOTE_REVISED_CLIENT,
    QUOTE_ACCEPTED_VENDOR,
    QUOTE_REJECTED_VENDOR,
    SUBSCRIPTION_ACTIVATED_ADMIN,
    VENDOR_WELCOME,
})


@dataclass
class Notification:
    kind: str
    payload: dict = field(default_factory=dict)


class NotificationOutbox:
    """Collects notifications during a transition and releases them after commit.

    Delivery is fire-and-forget: with an executor each notification runs on a
    worker thread (inside an app context when ``app`` is given), otherwise it
    runs inline. Either way a failing dispatcher is logged and never raised.
    """

    def __init__(self, dispatcher, *, executor=None, app=None):
        self.dispatcher = dispatcher
        self.executor = executor
        self.app = app
        self.pending: list[Notification] = []
        self.history: list[Notification] = []

    def stage(self, kind: str, payload: dict) -> Notification:
        if kind not in KINDS:
            raise ValueError(f"unknown notification kind: {kind}")
        note = Notification(kind, dict(payload))
        self.pending.append(note)
        return note

    def discard(self):
        if self.pending:
            log.debug("discarding %d staged notification(s)", len(self.pending))
        self.pending = []

    def flush(self) -> list[Notification]:
        released, self.pending = self.pending, []
        for note in released:
            self.history.append(note)
            if self.executor is not None:
                try:
                    self.executor.submit(self._deliver, note)
                except RuntimeError as e:  # executor shut down
                    log.warning("notification %s not queued: %s", note.kind, e)
            else:
                self._deliver(note)
        return released

    def _deliver(self, note: Notification):
        try:
            if self.app is not None:
                with self.app.app_context():
                    self.dispatcher.notify(note.kind, note.payload)
            else:
                self.dispatcher.notify(note.kind, note.payload)
        except Exception:
            log.exception("notification %s failed (request=%s revision=%s)",
                          note.kind, note.payload.get("quote_request_id"),
                          note.payload.get("quote_revision_id"))


def outbox_for_app(app) -> NotificationOutbox:
    """Outbox wired to the app's dispatcher and (optional) worker pool."""
    return NotificationOutbox(
        app.extensions["quote_dispatcher"],
        executor=app.extensions.get("notify_executor"),
        app=app,
    )
