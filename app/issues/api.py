from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.issues.lifecycle import IssueStatus
from app.issues.schemas import IssueCreate, IssueUpdate, StatusUpdate, AssignStaff, IssueOut, IssueList
from app.issues.service import (
    create_issue, get_issue, list_issues, list_reported_by, list_assigned_to,
    edit_issue, delete_issue, upvote_issue, assign_staff, reject_issue, advance_status,
)
from app.shared.auth import CallerContext, require_capability
from app.shared.config import Settings, get_settings
from app.shared.db import get_db
from app.shared.http import ok

router = APIRouter(prefix="/issues", tags=["Issues"])

@router.get("", response_model=IssueList)
def api_list_issues(
    status: IssueStatus | None = Query(None),
    priority: Literal["normal", "high"] | None = Query(None),
    category: str | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    items, total = list_issues(db, status, priority, category, search, page, limit)
    return {"items": items, "total": total, "page": page, "limit": limit}

@router.post("", response_model=IssueOut, status_code=201)
def api_create_issue(
    payload: IssueCreate,
    ctx: CallerContext = Depends(require_capability("citizen")),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return create_issue(db, ctx.user, payload, settings.FREE_ISSUE_LIMIT)

@router.get("/mine", response_model=list[IssueOut])
def api_my_issues(ctx: CallerContext = Depends(require_capability("active")), db: Session = Depends(get_db)):
    return list_reported_by(db, ctx.email)

@router.get("/assigned", response_model=list[IssueOut])
def api_assigned_issues(
    status: IssueStatus | None = Query(None),
    ctx: CallerContext = Depends(require_capability("staff")),
    db: Session = Depends(get_db),
):
    return list_assigned_to(db, ctx.email, status)

@router.get("/{issue_id}", response_model=IssueOut)
def api_get_issue(issue_id: str, db: Session = Depends(get_db)):
    return get_issue(db, issue_id)

@router.patch("/{issue_id}", response_model=IssueOut)
def api_edit_issue(
    issue_id: str,
    payload: IssueUpdate,
    ctx: CallerContext = Depends(require_capability("citizen")),
    db: Session = Depends(get_db),
):
    return edit_issue(db, ctx.user, issue_id, payload)

@router.delete("/{issue_id}")
def api_delete_issue(
    issue_id: str,
    ctx: CallerContext = Depends(require_capability("citizen")),
    db: Session = Depends(get_db),
):
    delete_issue(db, ctx.user, issue_id)
    return ok({"deleted": issue_id})

@router.post("/{issue_id}/upvote", response_model=IssueOut)
def api_upvote(
    issue_id: str,
    ctx: CallerContext = Depends(require_capability("active")),
    db: Session = Depends(get_db),
):
    return upvote_issue(db, ctx.user, issue_id)

# --- staff ---

@router.patch("/{issue_id}/status", response_model=IssueOut)
def api_advance_status(
    issue_id: str,
    payload: StatusUpdate,
    ctx: CallerContext = Depends(require_capability("staff")),
    db: Session = Depends(get_db),
):
    return advance_status(db, ctx.user, issue_id, payload.status)

# --- admin ---

@router.patch("/{issue_id}/assign", response_model=IssueOut)
def api_assign_staff(
    issue_id: str,
    payload: AssignStaff,
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return assign_staff(db, ctx.user, issue_id, payload.staff_email)

@router.patch("/{issue_id}/reject", response_model=IssueOut)
def api_reject_issue(
    issue_id: str,
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return reject_issue(db, ctx.user, issue_id)
