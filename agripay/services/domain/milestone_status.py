"""
Domain service: Milestone status normalization and transition rules.

Lifecycle:
    not_started -> in_progress -> pending_verification -> verified | rejected

Farmers move a milestone up to pending_verification. Reviewers verify or
reject submissions and may skip any milestone that is not yet terminal.
Verification releases a payment, so nothing leaves verified.

Legacy free-text values ("Not Started", "In Progress", "Completed") are
still present in stored data and are normalized before any comparison.
"""
from enum import Enum
from typing import Optional, Union


class MilestoneStatus(str, Enum):
    """Canonical milestone states."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class Role(str, Enum):
    """Who is changing the status."""
    FARMER = "farmer"
    REVIEWER = "reviewer"


# "Completed" now means the farmer submitted and awaits verification
LEGACY_STATUS_MAP = {
    "Not Started": MilestoneStatus.NOT_STARTED,
    "In Progress": MilestoneStatus.IN_PROGRESS,
    "Completed": MilestoneStatus.PENDING_VERIFICATION,
}

TERMINAL_STATUSES = frozenset({
    MilestoneStatus.VERIFIED,
    MilestoneStatus.REJECTED,
    MilestoneStatus.SKIPPED,
})

REPORTING_COMPLETE_STATUSES = frozenset({
    MilestoneStatus.PENDING_VERIFICATION,
    MilestoneStatus.VERIFIED,
    MilestoneStatus.REJECTED,
})

FARMER_EDITABLE_STATUSES = (
    MilestoneStatus.NOT_STARTED,
    MilestoneStatus.IN_PROGRESS,
)

FARMER_TARGETS = (
    MilestoneStatus.NOT_STARTED,
    MilestoneStatus.IN_PROGRESS,
    MilestoneStatus.PENDING_VERIFICATION,
)

DISPLAY_LABELS = {
    MilestoneStatus.NOT_STARTED: "Not Started",
    MilestoneStatus.IN_PROGRESS: "In Progress",
    MilestoneStatus.PENDING_VERIFICATION: "Pending Verification",
    MilestoneStatus.VERIFIED: "Verified",
    MilestoneStatus.REJECTED: "Rejected",
    MilestoneStatus.SKIPPED: "Skipped",
}

TRANSITION_LABELS = {
    Role.FARMER: {
        MilestoneStatus.NOT_STARTED: "Not Started",
        MilestoneStatus.IN_PROGRESS: "In Progress",
        MilestoneStatus.PENDING_VERIFICATION: "Mark as Complete",
    },
    Role.REVIEWER: {
        MilestoneStatus.VERIFIED: "Approve & Verify",
        MilestoneStatus.REJECTED: "Reject",
        MilestoneStatus.SKIPPED: "Skip Milestone",
    },
}

STATUS_COLORS = {
    MilestoneStatus.NOT_STARTED: "#94a3b8",
    MilestoneStatus.IN_PROGRESS: "#3b82f6",
    MilestoneStatus.PENDING_VERIFICATION: "#f59e0b",
    MilestoneStatus.VERIFIED: "#22c55e",
    MilestoneStatus.REJECTED: "#ef4444",
    MilestoneStatus.SKIPPED: "#64748b",
}

STATUS_BACKGROUND_COLORS = {
    MilestoneStatus.NOT_STARTED: "#f1f5f9",
    MilestoneStatus.IN_PROGRESS: "#dbeafe",
    MilestoneStatus.PENDING_VERIFICATION: "#fef3c7",
    MilestoneStatus.VERIFIED: "#dcfce7",
    MilestoneStatus.REJECTED: "#fee2e2",
    MilestoneStatus.SKIPPED: "#f1f5f9",
}

StatusValue = Union[MilestoneStatus, str]


def normalize(raw_status: Optional[str]) -> StatusValue:
    """
    Map a stored status value to its canonical form.

    Args:
        raw_status: Legacy or canonical status string

    Returns:
        The canonical MilestoneStatus. Empty input means not started.
        Unrecognized values are returned unchanged so callers can decide
        how to treat them.
    """
    if not raw_status:
        return MilestoneStatus.NOT_STARTED
    if isinstance(raw_status, MilestoneStatus):
        return raw_status
    if raw_status in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[raw_status]
    try:
        return MilestoneStatus(raw_status)
    except ValueError:
        return raw_status


def is_terminal(status: Optional[str]) -> bool:
    """Verified, rejected and skipped milestones take no further farmer changes."""
    return normalize(status) in TERMINAL_STATUSES


def is_completed_for_reporting(status: Optional[str]) -> bool:
    """Whether a milestone counts as a submitted report."""
    return normalize(status) in REPORTING_COMPLETE_STATUSES


def is_verified(status: Optional[str]) -> bool:
    """Payment-eligible milestones."""
    return normalize(status) == MilestoneStatus.VERIFIED


def can_farmer_update(status: Optional[str]) -> bool:
    return normalize(status) in FARMER_EDITABLE_STATUSES


def can_reviewer_verify(status: Optional[str]) -> bool:
    return normalize(status) == MilestoneStatus.PENDING_VERIFICATION


def farmer_transitions(current: Optional[str]) -> list[MilestoneStatus]:
    """
    States a farmer may move a milestone to.

    Farmers can move freely between not_started and in_progress and submit
    for verification. Nothing is offered once submitted, for terminal
    states, or for unrecognized values.

    Args:
        current: Current status (legacy or canonical)

    Returns:
        Allowed next states, excluding the current one
    """
    normalized = normalize(current)
    if normalized not in FARMER_EDITABLE_STATUSES:
        return []
    return [status for status in FARMER_TARGETS if status != normalized]


def reviewer_transitions(current: Optional[str]) -> list[MilestoneStatus]:
    """
    States a reviewer may move a milestone to.

    Args:
        current: Current status (legacy or canonical)

    Returns:
        [verified, rejected] for a pending submission, [skipped] for work
        not yet submitted, and nothing otherwise. Verified is irreversible
        because the payment it triggers cannot be undone.
    """
    normalized = normalize(current)
    if normalized == MilestoneStatus.PENDING_VERIFICATION:
        return [MilestoneStatus.VERIFIED, MilestoneStatus.REJECTED]
    if normalized in FARMER_EDITABLE_STATUSES:
        return [MilestoneStatus.SKIPPED]
    return []


def transitions_for(role: Role, current: Optional[str]) -> list[MilestoneStatus]:
    if Role(role) is Role.FARMER:
        return farmer_transitions(current)
    return reviewer_transitions(current)


def can_transition(current: Optional[str], target: Optional[str], role: Role) -> bool:
    """
    Whether role may move a milestone from current to target.

    An empty target is never a valid request, even though an empty stored
    status reads as not started.
    """
    if not target:
        return False
    return normalize(target) in transitions_for(role, current)


def transition_label(role: Role, target: MilestoneStatus) -> str:
    """Action label shown for a transition option."""
    return TRANSITION_LABELS[Role(role)].get(target, DISPLAY_LABELS[target])


def display_label(status: Optional[str]) -> str:
    """Human-readable status; unknown values are shown as stored."""
    normalized = normalize(status)
    return DISPLAY_LABELS.get(normalized, status)


def color(status: Optional[str]) -> str:
    return STATUS_COLORS.get(normalize(status), "#94a3b8")


def background_color(status: Optional[str]) -> str:
    return STATUS_BACKGROUND_COLORS.get(normalize(status), "#f1f5f9")


def css_class(status: Optional[str]) -> str:
    """Kebab-case class name, e.g. pending-verification."""
    normalized = normalize(status)
    value = normalized.value if isinstance(normalized, MilestoneStatus) else normalized
    return value.replace("_", "-")
