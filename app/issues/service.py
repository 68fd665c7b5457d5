import logging
from datetime import datetime, timezone

from sqlalchemy import select, desc, func, insert, literal, update, delete, or_
from sqlalchemy.orm import Session

from app.issues.lifecycle import IssueStatus, check_advance
from app.issues.models import Issue, _id32
from app.issues.schemas import IssueCreate, IssueUpdate
from app.shared.errors import (
    NotFound, Forbidden, InvalidState, InvalidTransition, AlreadyAssigned,
    InvalidOperation, QuotaExceeded,
)
from app.timeline.service import append_entry, delete_for_issues
from app.users.models import User

logger = logging.getLogger(__name__)

def _now() -> datetime:
    return datetime.now(timezone.utc)

def get_issue(db: Session, issue_id: str) -> Issue:
    issue = db.get(Issue, issue_id)
    if not issue:
        raise NotFound("Issue not found")
    return issue

def count_reported(db: Session, email: str) -> int:
    return db.scalar(select(func.count(Issue.id)).where(Issue.reporter_email == email)) or 0

def create_issue(db: Session, reporter: User, payload: IssueCreate, free_limit: int) -> Issue:
    """
    Insert a new pending issue for `reporter`.

    Free-tier reporters are limited to `free_limit` issues. The count and the
    insert run as one INSERT ... SELECT ... WHERE count < limit statement, so
    two concurrent creates cannot both slip under the limit.
    """
    now = _now()
    values = {
        "id": _id32(),
        "title": payload.title.strip(),
        "description": payload.description,
        "category": payload.category.strip(),
        "location": payload.location.strip(),
        "image": payload.image or "",
        "reporter_id": reporter.id,
        "reporter_name": reporter.name,
        "reporter_email": reporter.email,
        "status": IssueStatus.pending.value,
        "priority": "normal",
        "is_boosted": False,
        "upvotes_json": "[]",
        "assigned_staff_id": "",
        "assigned_staff_name": "",
        "assigned_staff_email": "",
        "assigned_staff_photo": "",
        "created_at": now,
        "updated_at": now,
    }
    cols = Issue.__table__.c
    row = select(*[literal(v, type_=cols[k].type).label(k) for k, v in values.items()])
    if not reporter.is_premium:
        existing = (
            select(func.count(Issue.id))
            .where(Issue.reporter_email == reporter.email)
            .correlate(None)
            .scalar_subquery()
        )
        row = row.where(existing < free_limit)

    res = db.execute(insert(Issue).from_select(list(values), row))
    if not res.rowcount:
        db.rollback()
        logger.info("free-tier quota reached for %s", reporter.email)
        raise QuotaExceeded(
            f"Free users can report up to {free_limit} issues. Subscribe to report more.",
        )

    append_entry(
        db, values["id"], IssueStatus.pending.value,
        f"Issue reported by {reporter.name or reporter.email}",
        reporter.name, "citizen", reporter.email,
    )
    db.commit()
    return get_issue(db, values["id"])

def list_issues(
    db: Session,
    status: IssueStatus | None = None,
    priority: str | None = None,
    category: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Issue], int]:
    stmt = select(Issue)
    if status:
        stmt = stmt.where(Issue.status == IssueStatus(status).value)
    if priority:
        stmt = stmt.where(Issue.priority == priority)
    if category:
        stmt = stmt.where(Issue.category == category)
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Issue.title.ilike(like), Issue.location.ilike(like), Issue.category.ilike(like)))

    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    # boosted (high priority) issues first, newest first within each group
    stmt = (
        stmt.order_by(desc(Issue.is_boosted), desc(Issue.created_at))
        .offset((page - 1) * limit)
        .limit(min(limit, 100))
    )
    return list(db.scalars(stmt).all()), total

def list_reported_by(db: Session, email: str) -> list[Issue]:
    stmt = select(Issue).where(Issue.reporter_email == email).order_by(desc(Issue.created_at))
    return list(db.scalars(stmt).all())

def list_assigned_to(db: Session, staff_email: str, status: IssueStatus | None = None) -> list[Issue]:
    stmt = select(Issue).where(Issue.assigned_staff_email == staff_email)
    if status:
        stmt = stmt.where(Issue.status == IssueStatus(status).value)
    stmt = stmt.order_by(desc(Issue.is_boosted), desc(Issue.updated_at))
    return list(db.scalars(stmt).all())

def edit_issue(db: Session, editor: User, issue_id: str, payload: IssueUpdate) -> Issue:
    issue = get_issue(db, issue_id)
    # state first: a non-pending issue is not editable by anyone
    if issue.status != IssueStatus.pending.value:
        raise InvalidState("Only pending issues can be edited")
    if issue.reporter_email != editor.email:
        raise Forbidden("Only the reporter can edit this issue")

    issue.title = payload.title.strip()
    issue.description = payload.description
    issue.category = payload.category.strip()
    issue.location = payload.location.strip()
    if payload.image:
        issue.image = payload.image
    issue.updated_at = _now()

    append_entry(
        db, issue.id, issue.status, "Issue details updated by reporter",
        editor.name, "citizen", editor.email,
    )
    db.commit(); db.refresh(issue)
    return issue

def delete_issue(db: Session, owner: User, issue_id: str) -> None:
    issue = get_issue(db, issue_id)
    if issue.reporter_email != owner.email:
        raise Forbidden("Only the reporter can delete this issue")
    delete_for_issues(db, [issue.id])
    db.delete(issue)
    db.commit()
    logger.info("issue %s deleted by %s", issue_id, owner.email)

def delete_reported_by(db: Session, email: str) -> int:
    """Delete every issue reported by `email` and their timelines. Does not commit."""
    ids = list(db.scalars(select(Issue.id).where(Issue.reporter_email == email)).all())
    delete_for_issues(db, ids)
    if ids:
        db.execute(delete(Issue).where(Issue.id.in_(ids)))
    return len(ids)

def unassign_staff(db: Session, staff_email: str) -> int:
    """Clear the assignment on every issue held by `staff_email`. Does not commit."""
    res = db.execute(
        update(Issue)
        .where(Issue.assigned_staff_email == staff_email)
        .values(
            assigned_staff_id="",
            assigned_staff_name="",
            assigned_staff_email="",
            assigned_staff_photo="",
            updated_at=_now(),
        )
    )
    return res.rowcount or 0

def upvote_issue(db: Session, voter: User, issue_id: str) -> Issue:
    issue = get_issue(db, issue_id)
    if issue.reporter_email == voter.email:
        raise InvalidOperation("You cannot upvote your own issue")
    votes = issue.upvotes
    if voter.email in votes:
        raise InvalidOperation("You have already upvoted this issue")
    issue.upvotes = votes + [voter.email]
    db.commit(); db.refresh(issue)
    return issue

def assign_staff(db: Session, admin: User, issue_id: str, staff_email: str) -> Issue:
    issue = get_issue(db, issue_id)
    if issue.is_assigned:
        raise AlreadyAssigned("Issue already has staff assigned")

    staff = db.scalars(select(User).where(User.email == staff_email.lower(), User.role == "staff")).first()
    if not staff:
        raise NotFound("Staff member not found")

    # one UPDATE, guarded on the issue still being unassigned
    res = db.execute(
        update(Issue)
        .where(Issue.id == issue.id, Issue.assigned_staff_email == "")
        .values(
            assigned_staff_id=staff.id,
            assigned_staff_name=staff.name,
            assigned_staff_email=staff.email,
            assigned_staff_photo=staff.photo,
            updated_at=_now(),
        )
    )
    if not res.rowcount:
        db.rollback()
        raise AlreadyAssigned("Issue already has staff assigned")

    append_entry(
        db, issue.id, issue.status, f"Issue assigned to staff {staff.name or staff.email}",
        admin.name, "admin", admin.email,
    )
    db.commit(); db.refresh(issue)
    logger.info("issue %s assigned to %s", issue.id, staff.email)
    return issue

def reject_issue(db: Session, admin: User, issue_id: str) -> Issue:
    issue = get_issue(db, issue_id)
    if issue.status != IssueStatus.pending.value:
        raise InvalidState("Only pending issues can be rejected")

    res = db.execute(
        update(Issue)
        .where(Issue.id == issue.id, Issue.status == IssueStatus.pending.value)
        .values(status=IssueStatus.rejected.value, updated_at=_now())
    )
    if not res.rowcount:
        db.rollback()
        raise InvalidState("Only pending issues can be rejected")

    append_entry(
        db, issue.id, IssueStatus.rejected.value, "Issue rejected by admin",
        admin.name, "admin", admin.email,
    )
    db.commit(); db.refresh(issue)
    logger.info("issue %s rejected by %s", issue.id, admin.email)
    return issue

def advance_status(db: Session, staff: User, issue_id: str, requested: IssueStatus) -> Issue:
    issue = get_issue(db, issue_id)
    if not issue.is_assigned or issue.assigned_staff_email != staff.email:
        raise Forbidden("Only the assigned staff member can update this issue")

    current = IssueStatus(issue.status)
    new = check_advance(current, requested)

    # guarded on the status we validated against
    res = db.execute(
        update(Issue)
        .where(Issue.id == issue.id, Issue.status == current.value)
        .values(status=new.value, updated_at=_now())
    )
    if not res.rowcount:
        db.rollback()
        raise InvalidTransition(f"Invalid status transition: {current.value} -> {new.value}")

    append_entry(
        db, issue.id, new.value, f"Status changed from {current.value} to {new.value}",
        staff.name, "staff", staff.email,
    )
    db.commit(); db.refresh(issue)
    logger.info("issue %s %s -> %s by %s", issue.id, current.value, new.value, staff.email)
    return issue

def apply_boost(db: Session, issue_id: str, actor_name: str, actor_email: str) -> Issue | None:
    """Mark an issue boosted and high priority. Does not commit."""
    issue = db.get(Issue, issue_id)
    if not issue:
        return None
    issue.is_boosted = True
    issue.priority = "high"
    issue.updated_at = _now()
    append_entry(
        db, issue.id, issue.status, "Issue boosted to high priority",
        actor_name, "citizen", actor_email,
    )
    return issue

def status_counts(db: Session) -> dict[str, int]:
    rows = db.execute(select(Issue.status, func.count(Issue.id)).group_by(Issue.status)).all()
    counts = {s.value: 0 for s in IssueStatus}
    for status, n in rows:
        counts[status] = n
    return counts
