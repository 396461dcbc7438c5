"""
Notification dispatcher: fire-and-forget side channel.

Constructed once per application in ``create_app`` and stored in
``app.extensions["notifications"]``. Workflow services call the module
level ``notify(event, payload)`` only after their transaction committed;
delivery either runs inline or on a small thread pool
(``NOTIFICATIONS_ASYNC``). A failing channel is logged and skipped: it
never raises into the caller and never touches workflow state.

Channels are plain callables ``channel(event, payload) -> None``.
``InAppChannel`` (registered by default) persists ``Notification`` rows
through its own SQLAlchemy session.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from flask import Flask, current_app, has_app_context
from sqlalchemy.orm import Session

from stageflow.models import db
from stageflow.models.notification import Notification

logger = logging.getLogger(__name__)

_TITLES = {
    "project.created": "Project {reference} created",
    "project.stage_advanced": "Project moved to a new stage",
    "project.cancelled": "Project cancelled",
    "project.approved_for_publication": "Project {reference} approved for publication",
    "proposal.submitted": "Proposal submitted",
    "acceptance.response_submitted": "NSB response submitted",
    "acceptance.approved": "Proposal accepted",
    "status_change.requested": "Response status change requested",
    "status_change.approved": "Response status change approved",
    "status_change.rejected": "Response status change rejected",
    "ballot.vote_cast": "Ballot vote recorded",
    "consultation.submitted": "National consultation received from {member_state}",
    "comment.submitted": "Comment received on the current draft",
}


class InAppChannel:
    """Store one broadcast Notification row per event."""

    def __init__(self, app: Flask):
        self._app = app

    def __call__(self, event: str, payload: dict) -> None:
        title = _TITLES.get(event, event).format_map(_Default(payload))
        with self._app.app_context():
            with Session(db.engine) as session:
                session.add(Notification(
                    project_id=payload.get("project_id"),
                    recipient=payload.get("recipient", "all"),
                    event_type=event,
                    title=title[:300],
                    message=payload.get("notes") or payload.get("message") or "",
                    severity=payload.get("severity", "info"),
                ))
                session.commit()


class _Default(dict):
    def __missing__(self, key):
        return ""


class NotificationDispatcher:
    """Fan an event out to every registered channel."""

    def __init__(self, app: Flask | None = None, channels=None):
        self._app = None
        self._executor = None
        self.channels = list(channels or [])
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._app = app
        if not self.channels:
            self.channels.append(InAppChannel(app))
        if app.config.get("NOTIFICATIONS_ASYNC", True):
            self._executor = ThreadPoolExecutor(
                max_workers=app.config.get("NOTIFICATION_WORKERS", 2),
                thread_name_prefix="stageflow-notify",
            )
        app.extensions["notifications"] = self
        logger.info(
            "NotificationDispatcher initialized: %d channel(s), %s delivery",
            len(self.channels), "async" if self._executor else "inline",
        )

    def add_channel(self, channel) -> None:
        self.channels.append(channel)

    def dispatch(self, event: str, payload: dict):
        """Deliver *event*; returns the Future in async mode, None inline."""
        payload = dict(payload or {})
        if self._executor is not None:
            return self._executor.submit(self._deliver, event, payload)
        self._deliver(event, payload)
        return None

    def _deliver(self, event: str, payload: dict) -> None:
        for channel in list(self.channels):
            try:
                channel(event, payload)
            except Exception:
                logger.exception(
                    "Notification channel %r failed for %s", channel, event,
                    extra={"event_type": event, "project_id": payload.get("project_id")},
                )

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def notify(event: str, payload: dict | None = None) -> None:
    """Hand an event to the application's dispatcher, if one is installed."""
    if not has_app_context():
        logger.debug("notify(%s) outside app context; dropped", event)
        return
    dispatcher = current_app.extensions.get("notifications")
    if dispatcher is None:
        logger.debug("No notification dispatcher installed; %s dropped", event)
        return
    try:
        dispatcher.dispatch(event, payload or {})
    except Exception:
        logger.exception("Notification dispatch failed for %s", event,
                         extra={"event_type": event})
