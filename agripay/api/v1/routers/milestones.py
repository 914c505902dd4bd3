"""
API router for milestone status rules.
"""
from fastapi import APIRouter, Query

from agripay.api.v1.models.responses import MilestoneTransitionsResponse, TransitionOption
from agripay.services.domain import milestone_status
from agripay.services.domain.milestone_status import MilestoneStatus, Role


router = APIRouter(
    prefix="/milestones",
    tags=["milestones"],
)


@router.get(
    "/transitions",
    response_model=MilestoneTransitionsResponse,
    summary="Allowed status changes",
    description="""
    Normalize a stored milestone status (legacy values such as "Completed"
    or "In Progress" are accepted) and list the states the given
    role may move it to.

    Unrecognized statuses are echoed back with no options.
    """,
)
async def get_transitions(
    status: str = Query("", description="Stored status value; empty means not started"),
    role: Role = Query(Role.FARMER),
) -> MilestoneTransitionsResponse:
    normalized = milestone_status.normalize(status)
    value = normalized.value if isinstance(normalized, MilestoneStatus) else normalized
    return MilestoneTransitionsResponse(
        status=value,
        display=milestone_status.display_label(status),
        role=role.value,
        is_terminal=milestone_status.is_terminal(status),
        is_completed_for_reporting=milestone_status.is_completed_for_reporting(status),
        options=[
            TransitionOption(value=target.value, label=milestone_status.transition_label(role, target))
            for target in milestone_status.transitions_for(role, status)
        ],
    )
