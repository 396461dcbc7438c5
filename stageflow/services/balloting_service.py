"""
Balloting service: votes on the final draft.

A member may vote while the ballot window is open (now <= end_date), once
per ballot, and only one vote counts per national standards body.
"""

import logging

from sqlalchemy import or_, select

from stageflow.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from stageflow.models import db
from stageflow.models.audit import write_audit
from stageflow.models.balloting import Balloting, Vote
from stageflow.models.committee import Member
from stageflow.models.project import Project
from stageflow.services.consensus import evaluate_ballot
from stageflow.services.helpers.lookups import get_or_raise
from stageflow.services.notification_dispatcher import notify
from stageflow.services.stage_transition import lock_project
from stageflow.utils.helpers import as_utc, atomic, utcnow

logger = logging.getLogger(__name__)


def _balloting_for(project_id: str) -> Balloting:
    balloting = db.session.execute(
        select(Balloting).where(Balloting.project_id == project_id)
    ).scalar_one_or_none()
    if balloting is None:
        raise NotFoundError(resource="Balloting", resource_id=f"project={project_id}")
    return balloting


def _existing_vote(balloting: Balloting, member: Member):
    clauses = [Vote.member_id == member.id]
    if member.national_standard_body_id:
        clauses.append(Vote.national_standard_body_id == member.national_standard_body_id)
    return db.session.execute(
        select(Vote.id).where(Vote.balloting_id == balloting.id, or_(*clauses)).limit(1)
    ).scalar_one_or_none()


def _window_open(balloting: Balloting, now=None) -> bool:
    return (now or utcnow()) <= as_utc(balloting.end_date)


def is_eligible_to_vote(project_id: str, member_id: str) -> bool:
    """True when the ballot is open and neither the member nor its NSB has voted."""
    get_or_raise(Project, project_id)
    balloting = _balloting_for(project_id)
    member = get_or_raise(Member, member_id)
    return _window_open(balloting) and _existing_vote(balloting, member) is None


def cast_vote(
    project_id: str,
    member_id: str,
    acceptance: bool,
    comment: str = "",
    is_committed_to_participate: bool = False,
) -> dict:
    """Record one accept/reject vote on the project's ballot."""
    with atomic("cast_vote", "Vote"):
        project = lock_project(project_id)
        if project.cancelled:
            raise InvalidStateError(f"Project {project_id} is cancelled")
        balloting = _balloting_for(project_id)
        member = get_or_raise(Member, member_id)

        if not _window_open(balloting):
            raise InvalidStateError(f"Balloting for project {project_id} is closed")
        if _existing_vote(balloting, member) is not None:
            raise ConflictError("Vote", "member_id", member_id)

        vote = Vote(
            balloting_id=balloting.id,
            project_id=project_id,
            member_id=member.id,
            national_standard_body_id=member.national_standard_body_id,
            acceptance=bool(acceptance),
            is_committed_to_participate=bool(is_committed_to_participate),
            comment=comment or "",
        )
        db.session.add(vote)
        db.session.flush()
        write_audit(
            entity_type="vote", entity_id=vote.id, action="ballot.vote",
            actor_id=member_id, project_id=project_id,
            diff={"acceptance": bool(acceptance)},
        )
        result = vote.to_dict()

    notify("ballot.vote_cast", {"project_id": project_id})
    return result


def check_ballot_criteria(project_id: str) -> dict:
    """Evaluate the project's ballot against the acceptance ratio."""
    get_or_raise(Project, project_id)
    balloting = _balloting_for(project_id)
    result = evaluate_ballot(balloting.votes)
    logger.debug("Ballot criteria for project %s: %s", project_id, result.message,
                 extra={"project_id": project_id, "operation": "check_ballot_criteria"})
    return result.to_dict()
