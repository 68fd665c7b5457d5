from sqlalchemy import select, desc, delete
from sqlalchemy.orm import Session

from app.timeline.models import TimelineEntry

# Entries are added to the caller's session and committed together with the
# change they describe.

def append_entry(
    db: Session,
    issue_id: str,
    status: str,
    message: str,
    actor_name: str,
    actor_role: str,
    actor_email: str,
) -> TimelineEntry:
    e = TimelineEntry(
        issue_id=issue_id,
        status=status,
        message=message,
        updated_by_name=actor_name or "",
        updated_by_role=actor_role,
        updated_by_email=actor_email,
    )
    db.add(e)
    return e

def list_for_issue(db: Session, issue_id: str) -> list[TimelineEntry]:
    stmt = (
        select(TimelineEntry)
        .where(TimelineEntry.issue_id == issue_id)
        .order_by(desc(TimelineEntry.created_at))
    )
    return list(db.scalars(stmt).all())

def delete_for_issues(db: Session, issue_ids: list[str]) -> int:
    if not issue_ids:
        return 0
    res = db.execute(delete(TimelineEntry).where(TimelineEntry.issue_id.in_(issue_ids)))
    return res.rowcount or 0

def delete_by_actor(db: Session, email: str) -> int:
    res = db.execute(delete(TimelineEntry).where(TimelineEntry.updated_by_email == email))
    return res.rowcount or 0
