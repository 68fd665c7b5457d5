from enum import Enum

from app.shared.errors import InvalidTransition


class IssueStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    working = "working"
    resolved = "resolved"
    closed = "closed"
    rejected = "rejected"


# Staff advances consume exactly one edge. Rejection is an admin action and
# is not reachable through this table.
NEXT_STATUSES: dict[IssueStatus, frozenset[IssueStatus]] = {
    IssueStatus.pending: frozenset({IssueStatus.in_progress}),
    IssueStatus.in_progress: frozenset({IssueStatus.working}),
    IssueStatus.working: frozenset({IssueStatus.resolved}),
    IssueStatus.resolved: frozenset({IssueStatus.closed}),
    IssueStatus.closed: frozenset(),
    IssueStatus.rejected: frozenset(),
}


def allowed_next(current: IssueStatus | str) -> frozenset[IssueStatus]:
    return NEXT_STATUSES.get(IssueStatus(current), frozenset())


def can_advance(current: IssueStatus | str, requested: IssueStatus | str) -> bool:
    return IssueStatus(requested) in allowed_next(current)


def check_advance(current: IssueStatus | str, requested: IssueStatus | str) -> IssueStatus:
    current, requested = IssueStatus(current), IssueStatus(requested)
    if requested not in allowed_next(current):
        raise InvalidTransition(
            f"Invalid status transition: {current.value} -> {requested.value}",
            details={"current": current.value, "requested": requested.value,
                     "allowed": sorted(s.value for s in allowed_next(current))},
        )
    return requested
