"""
Stage Transition Manager.

Moves a project from its current stage to another one. The move is a
single transaction:

    1. lock the project row (SELECT ... FOR UPDATE)
    2. close the active history entry (exactly one must exist)
    3. open a new history entry for the target stage
    4. repoint ``project.stage_id`` and rewrite the reference suffix
    5. bump ``project.updated_at``

Any failure rolls all of it back. Higher-level flows (proposal submission,
acceptance approval, draft reviews) call ``advance_stage_in_tx`` from
inside their own ``atomic()`` block so the stage move commits or rolls
back together with their own writes.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select

from stageflow.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    WorkflowIntegrityError,
)
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.committee import TechnicalCommittee
from stageflow.models.project import Project, ProjectStageHistory
from stageflow.models.stage import STAGE_PRELIMINARY, Stage
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.services.notification_dispatcher import notify
from stageflow.utils.helpers import atomic, utcnow

logger = logging.getLogger(__name__)


def _active_entries(project_id: str) -> list[ProjectStageHistory]:
    return list(db.session.execute(
        select(ProjectStageHistory)
        .where(
            ProjectStageHistory.project_id == project_id,
            ProjectStageHistory.ended_at.is_(None),
        )
        .with_for_update()
    ).scalars().all())


def _rewrite_reference(reference: str, rewrite) -> str:
    """Apply an (old, new) suffix pair as a literal replace-all.

    A pair whose old part does not occur leaves the reference unchanged.
    """
    if (
        not isinstance(rewrite, (tuple, list))
        or len(rewrite) != 2
        or not all(isinstance(part, str) for part in rewrite)
        or not rewrite[0]
    ):
        raise ValidationError(
            "Reference rewrite must be an (old, new) pair of strings with a non-empty old part",
            details={"reference_rewrite": repr(rewrite)},
        )
    old, new = rewrite
    return reference.replace(old, new)


def lock_project(project_id: str) -> Project:
    """Load a project under a row lock; the caller must be inside atomic()."""
    return get_or_raise(Project, project_id, lock=True)


def advance_stage_in_tx(
    project: Project,
    target_stage_id: str,
    notes: str = "",
    reference_rewrite=None,
    *,
    actor_id: str | None = None,
) -> ProjectStageHistory:
    """Perform the stage move inside the caller's transaction (flush only).

    ``project`` must already be locked by the caller. Raises
    InvalidStateError for a cancelled project, WorkflowIntegrityError when
    the active-entry invariant is broken and ValidationError for a
    malformed reference rewrite.
    """
    if project.cancelled:
        raise InvalidStateError(f"Project {project.id} is cancelled")

    target = get_or_raise(Stage, target_stage_id)

    active = _active_entries(project.id)
    if len(active) > 1:
        logger.error(
            "Project %s has %d active stage history entries", project.id, len(active),
            extra={"project_id": project.id, "operation": "advance_stage"},
        )
        raise WorkflowIntegrityError(
            f"Project {project.id} has {len(active)} active stage history entries"
        )

    now = utcnow()
    from_stage_id = project.stage_id
    if active:
        active[0].ended_at = now
        active[0].updated_at = now

    entry = ProjectStageHistory(
        project_id=project.id,
        stage_id=target.id,
        started_at=now,
        notes=notes or "",
        created_at=now,
        updated_at=now,
    )
    db.session.add(entry)
    db.session.flush()

    if reference_rewrite is not None:
        project.reference = _rewrite_reference(project.reference, reference_rewrite)
    project.stage_id = target.id
    project.stage = target
    project.updated_at = now
    db.session.flush()

    write_audit(
        entity_type="project",
        entity_id=project.id,
        action="project.advance_stage",
        actor_id=actor_id,
        project_id=project.id,
        diff={
            "stage_id": {"old": from_stage_id, "new": target.id},
            "reference": project.reference,
            "notes": notes,
        },
    )
    logger.info(
        "Project %s advanced to stage %d", project.id, target.number,
        extra={
            "project_id": project.id,
            "stage_id": target.id,
            "from_stage_id": from_stage_id,
            "operation": "advance_stage",
        },
    )
    return entry


def advance_stage(
    project_id: str,
    target_stage_id: str,
    notes: str = "",
    reference_rewrite=None,
    *,
    actor_id: str | None = None,
) -> dict:
    """Move a project to ``target_stage_id`` atomically.

    Args:
        project_id: Existing, non-cancelled project.
        target_stage_id: Existing catalog stage.
        notes: Free text stored on the new history entry.
        reference_rewrite: Optional (old_suffix, new_suffix) pair applied
            as a literal replace on the project reference.

    Returns:
        The new history entry as a dict.
    """
    with atomic("advance_stage", "Project"):
        project = lock_project(project_id)
        entry = advance_stage_in_tx(
            project, target_stage_id, notes, reference_rewrite, actor_id=actor_id,
        )
        result = entry.to_dict()

    notify("project.stage_advanced", {
        "project_id": project_id,
        "stage_id": target_stage_id,
        "notes": notes,
    })
    return result


def advance_to_stage_number_in_tx(
    project: Project,
    number: int,
    notes: str,
    old_suffix: str | None = None,
    *,
    actor_id: str | None = None,
) -> ProjectStageHistory:
    """Resolve a catalog stage by number and advance to it.

    When ``old_suffix`` is given the reference is rewritten to the target
    stage's abbreviation.
    """
    stage = db.session.execute(
        select(Stage).where(Stage.number == number)
    ).scalar_one_or_none()
    if stage is None:
        raise NotFoundError(resource="Stage", resource_id=f"number={number}")
    rewrite = (old_suffix, stage.abbreviation) if old_suffix else None
    return advance_stage_in_tx(project, stage.id, notes, rewrite, actor_id=actor_id)


# ── Project creation ─────────────────────────────────────────────────────────


def _next_project_number() -> int:
    # uq_project_number rejects a concurrent duplicate at flush time
    return (db.session.execute(select(func.max(Project.number))).scalar() or 0) + 1


def create_project(data: dict, *, actor_id: str | None = None) -> dict:
    """Create a project at the Preliminary stage with its first history entry.

    Required keys: ``title``, ``technical_committee_id``.
    Optional: ``description``, ``working_group_id``, ``part_number``,
    ``timeframe_months``, ``is_international_standard``.
    """
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    tc_id = data.get("technical_committee_id")
    if not tc_id:
        raise ValidationError(
            "technical_committee_id is required",
            details={"technical_committee_id": "required"},
        )

    with atomic("create_project", "Project"):
        tc = get_or_raise(TechnicalCommittee, tc_id, label="TechnicalCommittee")
        initial = db.session.execute(
            select(Stage).where(Stage.number == STAGE_PRELIMINARY)
        ).scalar_one_or_none()
        if initial is None:
            raise NotFoundError(resource="Stage", resource_id=f"number={STAGE_PRELIMINARY}")

        now = utcnow()
        number = _next_project_number()
        project = Project(
            number=number,
            part_number=data.get("part_number"),
            reference=f"{initial.abbreviation}/TC {tc.code}/{number:03d}/{now.year}",
            title=title,
            description=data.get("description") or "",
            timeframe_months=data.get("timeframe_months"),
            is_international_standard=bool(data.get("is_international_standard", False)),
            technical_committee_id=tc.id,
            working_group_id=data.get("working_group_id"),
            stage_id=initial.id,
            created_at=now,
            updated_at=now,
        )
        db.session.add(project)
        db.session.flush()

        db.session.add(ProjectStageHistory(
            project_id=project.id,
            stage_id=initial.id,
            started_at=now,
            notes="Project created",
            created_at=now,
            updated_at=now,
        ))
        write_audit(
            entity_type="project", entity_id=project.id, action="project.create",
            actor_id=actor_id, project_id=project.id,
            diff={"reference": project.reference, "title": title},
        )
        db.session.flush()
        result = project.to_dict()

    logger.info("Project %s created", result["reference"],
                extra={"project_id": result["id"], "operation": "create_project"})
    notify("project.created", {"project_id": result["id"], "reference": result["reference"]})
    return result


# ── History queries ──────────────────────────────────────────────────────────


def get_stage_history(project_id: str) -> list[dict]:
    """All history entries of a project, oldest first."""
    get_or_raise(Project, project_id)
    rows = db.session.execute(
        select(ProjectStageHistory)
        .where(ProjectStageHistory.project_id == project_id)
        .order_by(ProjectStageHistory.started_at, ProjectStageHistory.created_at)
    ).scalars().all()
    return [r.to_dict() for r in rows]


def get_active_history_entry(project_id: str) -> ProjectStageHistory | None:
    """Return the single active entry, or None for a project without history.

    Raises WorkflowIntegrityError if more than one entry is active.
    """
    rows = db.session.execute(
        select(ProjectStageHistory).where(
            ProjectStageHistory.project_id == project_id,
            ProjectStageHistory.ended_at.is_(None),
        )
    ).scalars().all()
    if len(rows) > 1:
        raise WorkflowIntegrityError(
            f"Project {project_id} has {len(rows)} active stage history entries"
        )
    return rows[0] if rows else None


def find_projects_in_stage(stage_id: str, *, include_cancelled: bool = False) -> list[Project]:
    stmt = select(Project).where(Project.stage_id == stage_id)
    if not include_cancelled:
        stmt = stmt.where(Project.cancelled.is_(False))
    return list(db.session.execute(stmt.order_by(Project.number)).scalars().all())


def find_projects_in_stage_longer_than(
    stage_id: str, days: int, *, now: datetime | None = None,
) -> list[Project]:
    """Projects whose active entry for ``stage_id`` started more than ``days`` ago."""
    if days < 0:
        raise ValidationError("days must be non-negative", details={"days": days})
    cutoff = (now or utcnow()) - timedelta(days=days)
    stmt = (
        select(Project)
        .join(ProjectStageHistory, ProjectStageHistory.project_id == Project.id)
        .where(
            ProjectStageHistory.stage_id == stage_id,
            ProjectStageHistory.ended_at.is_(None),
            ProjectStageHistory.started_at < cutoff,
            Project.cancelled.is_(False),
        )
        .order_by(ProjectStageHistory.started_at)
    )
    return list(db.session.execute(stmt).scalars().all())
