from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.issues.service import get_issue
from app.shared.db import get_db
from app.timeline.schemas import TimelineList
from app.timeline.service import list_for_issue

router = APIRouter(prefix="/issues", tags=["Timeline"])

@router.get("/{issue_id}/timeline", response_model=TimelineList)
def api_issue_timeline(issue_id: str, db: Session = Depends(get_db)):
    get_issue(db, issue_id)  # 404 for unknown issues
    return {"items": list_for_issue(db, issue_id)}
