# app/shared/auth.py
"""
Request gates.

Two gates compose in front of every mutating route:

  require_identity      -> Identity        (bearer token verified by the identity provider)
  require_capability(x) -> CallerContext   (stored user record checked for role / block flag)

Role checks are exact: an admin is not a staff member and vice versa.
"""
from dataclasses import dataclass
from typing import Literal

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth.service import verify_token
from app.shared.config import Settings, get_settings
from app.shared.db import get_db
from app.shared.errors import Unauthorized, Forbidden
from app.users.models import User

bearer = HTTPBearer(auto_error=False, scheme_name="bearerAuth")

Capability = Literal["citizen", "staff", "admin", "active"]


@dataclass(frozen=True)
class Identity:
    email: str


@dataclass(frozen=True)
class CallerContext:
    email: str
    user: User

    @property
    def role(self) -> str:
        return self.user.effective_role


def require_identity(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Identity:
    if not creds or not creds.credentials:
        raise Unauthorized("Unauthorized Access")
    return Identity(email=verify_token(db, settings, creds.credentials))


def check_capability(user: User | None, capability: Capability) -> User:
    if user is None:
        raise Forbidden("Forbidden Access")
    if user.is_blocked:
        raise Forbidden("Your account is blocked")
    if capability != "active" and user.effective_role != capability:
        raise Forbidden("Forbidden Access")
    return user


def require_capability(capability: Capability):
    """
    Use as a FastAPI dependency:

        ctx: CallerContext = Depends(require_capability("admin"))
    """
    def _dep(
        identity: Identity = Depends(require_identity),
        db: Session = Depends(get_db),
    ) -> CallerContext:
        user = db.scalars(select(User).where(User.email == identity.email)).first()
        return CallerContext(email=identity.email, user=check_capability(user, capability))
    return _dep
