import logging

from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from app.auth.service import delete_account
from app.issues.service import delete_reported_by, unassign_staff
from app.shared.errors import NotFound, InvalidOperation
from app.timeline.service import delete_by_actor
from app.users.models import User
from app.users.schemas import UserRegister, ProfileUpdate

logger = logging.getLogger(__name__)

def get_by_email(db: Session, email: str) -> User | None:
    return db.scalars(select(User).where(User.email == email.lower().strip())).first()

def require_user(db: Session, email: str) -> User:
    u = get_by_email(db, email)
    if not u:
        raise NotFound("User not found")
    return u

def register_user(db: Session, email: str, payload: UserRegister) -> tuple[User, bool]:
    """Create the profile for `email` once. Returns (user, created)."""
    existing = get_by_email(db, email)
    if existing:
        return existing, False
    u = User(email=email.lower().strip(), name=payload.name.strip(), photo=payload.photo or "")
    db.add(u); db.commit(); db.refresh(u)
    logger.info("registered user %s", u.email)
    return u, True

def role_info(db: Session, email: str) -> dict:
    u = get_by_email(db, email)
    return {
        "role": u.effective_role if u else "citizen",
        "is_premium": bool(u and u.is_premium),
        "is_blocked": bool(u and u.is_blocked),
    }

def update_profile(db: Session, user: User, payload: ProfileUpdate) -> User:
    if payload.name is not None:
        user.name = payload.name.strip() or user.name
    if payload.photo is not None:
        user.photo = payload.photo
    db.commit(); db.refresh(user)
    return user

def list_users(db: Session, role: str | None = None) -> list[User]:
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    return list(db.scalars(stmt.order_by(desc(User.created_at))).all())

def set_role(db: Session, email: str, role: str) -> User:
    u = require_user(db, email)
    u.role = role
    db.commit(); db.refresh(u)
    logger.info("role of %s set to %s", u.email, role)
    return u

def set_blocked(db: Session, email: str, blocked: bool) -> User:
    u = require_user(db, email)
    u.is_blocked = blocked
    db.commit(); db.refresh(u)
    logger.info("%s %s", "blocked" if blocked else "unblocked", u.email)
    return u

def set_premium(db: Session, email: str) -> User | None:
    """Activate premium. Does not commit."""
    u = get_by_email(db, email)
    if u:
        u.is_premium = True
    return u

def delete_user(db: Session, admin: User, email: str) -> dict:
    """
    Remove a user and everything they produced: identity-provider account,
    timeline entries they authored, issues they reported (with those issues'
    timelines), then the profile itself. Issues assigned to them go back to
    unassigned so an admin can hand them to someone else.
    """
    target = require_user(db, email)
    if target.email == admin.email:
        raise InvalidOperation("You cannot delete your own account")

    email = target.email
    detached = delete_account(db, email)
    entries = delete_by_actor(db, email)
    issues = delete_reported_by(db, email)
    released = unassign_staff(db, email)
    db.delete(target)
    db.commit()
    logger.info("deleted user %s (issues=%d, timeline entries=%d, released=%d)", email, issues, entries, released)
    return {"email": email, "identity_detached": detached,
            "deleted_issues": issues, "deleted_timeline_entries": entries,
            "released_issues": released}
