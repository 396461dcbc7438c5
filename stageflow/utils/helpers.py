"""Shared utility functions for the workflow services.

atomic:      the single unit-of-work context manager (commit / rollback / wrap)
utcnow:      timezone-aware "now", patched in tests that need a fixed clock
parse_date:  lenient date parsing for payload fields (returns None on bad input)
add_months:  calendar month arithmetic for review windows
"""
import calendar
import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from stageflow.core.exceptions import StoreError
from stageflow.models import db

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Accepts date and datetime
    objects unchanged (datetimes are reduced to their date).
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def add_months(value: datetime, months: int, days: int = 0) -> datetime:
    """Shift *value* by whole calendar months, then by *days*.

    The day of month is clamped to the target month's length
    (31 Dec + 2 months -> 28/29 Feb).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day) + timedelta(days=days)


# ── Unit of work ─────────────────────────────────────────────────────────────

@contextmanager
def atomic(operation: str, entity_type: str):
    """Run a block as one all-or-nothing transaction on ``db.session``.

    Usage::

        with atomic("advance_stage", "Project"):
            project = get_or_raise(Project, project_id, lock=True)
            ...

    - Success: the session is committed when the block exits.
    - Any exception: the session is rolled back and the error re-raised.
      ``SQLAlchemyError`` (including one raised by the commit itself) is
      wrapped into ``StoreError`` carrying the operation and entity type;
      workflow errors pass through unchanged.

    Helpers called inside the block only ``flush()``.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning(
            "Store failure during %s on %s: %s", operation, entity_type, exc,
            extra={"operation": operation, "entity_type": entity_type},
        )
        raise StoreError(operation, entity_type, exc) from exc
    except Exception:
        db.session.rollback()
        raise
