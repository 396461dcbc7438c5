"""
Secretary-of-record checks shared by the workflow services.
"""

import logging

from stageflow.core.exceptions import UnauthorizedError
from stageflow.models.project import Project

logger = logging.getLogger(__name__)


def require_tc_secretary(project: Project, actor_id: str, action: str) -> None:
    """Raise UnauthorizedError unless *actor_id* is the project's TC secretary."""
    tc = project.technical_committee
    if tc is None or not tc.is_secretary(actor_id):
        logger.warning(
            "%s refused for %s", action, actor_id,
            extra={"project_id": project.id, "actor_id": actor_id, "operation": action},
        )
        raise UnauthorizedError(actor_id, action)
