from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.issues.service import status_counts
from app.payments.service import payment_totals
from app.shared.auth import CallerContext, require_capability
from app.shared.db import get_db
from app.users.models import User

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.get("/stats")
def api_stats(ctx: CallerContext = Depends(require_capability("admin")), db: Session = Depends(get_db)):
    by_status = status_counts(db)
    users = dict(db.execute(select(User.role, func.count(User.id)).group_by(User.role)).all())
    return {
        "issues": {"total": sum(by_status.values()), "by_status": by_status},
        "users": {"total": sum(users.values()), "by_role": users},
        "payments": payment_totals(db),
    }
