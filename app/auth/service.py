"""
Identity provider: password accounts, token issuing and token verification.

Everything else in the app only ever sees the verified email returned by
verify_token().
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import bcrypt
from jose import jwt, JWTError  # python-jose[cryptography]
from sqlalchemy.orm import Session

from app.auth.models import Credential
from app.shared.config import Settings
from app.shared.errors import Unauthorized

logger = logging.getLogger(__name__)

def _hash(pw: str) -> str:
    return bcrypt.hashpw(pw.encode(), bcrypt.gensalt()).decode()

def _verify(pw: str, ph: str) -> bool:
    try:
        return bcrypt.checkpw(pw.encode(), ph.encode())
    except ValueError:
        return False

def _norm(email: str) -> str:
    return email.lower().strip()

def register_credential(db: Session, email: str, password: str) -> dict:
    email = _norm(email)
    if db.get(Credential, email):
        raise ValueError("email_already_registered")
    c = Credential(email=email, password_hash=_hash(password))
    db.add(c); db.commit()
    return {"email": c.email}

def authenticate(db: Session, email: str, password: str) -> str | None:
    c = db.get(Credential, _norm(email))
    if not c or not _verify(password, c.password_hash):
        return None
    return c.email

def create_access_token(
    settings: Settings,
    email: str,
    extra: Optional[Dict[str, Any]] = None,
    minutes: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes or settings.JWT_EXPIRE_MIN)
    payload: Dict[str, Any] = {
        "sub": email,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if settings.JWT_ISS:
        payload["iss"] = settings.JWT_ISS
    if settings.JWT_AUD:
        payload["aud"] = settings.JWT_AUD
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.JWT_KEY, algorithm=settings.JWT_ALG)

def verify_token(db: Session, settings: Settings, token: str) -> str:
    """Return the verified account email for a bearer token or raise Unauthorized."""
    # Demo shortcut (strict: must match DEMO_TOKEN exactly)
    if settings.AUTH_DEMO and token == settings.DEMO_TOKEN:
        return settings.DEMO_EMAIL

    try:
        payload = jwt.decode(
            token,
            settings.JWT_KEY,
            algorithms=[settings.JWT_ALG],
            audience=settings.JWT_AUD,
            issuer=settings.JWT_ISS,
            options={
                "verify_aud": bool(settings.JWT_AUD),
                "verify_iss": bool(settings.JWT_ISS),
            },
        )
    except JWTError as e:
        logger.debug("token rejected: %s", e)
        raise Unauthorized("Unauthorized Access")

    email = payload.get("email") or payload.get("sub")
    if not email:
        raise Unauthorized("Unauthorized Access")

    # accounts removed from the provider stop verifying immediately
    if not db.get(Credential, _norm(email)):
        raise Unauthorized("Unauthorized Access")
    return _norm(email)

def delete_account(db: Session, email: str) -> bool:
    """Detach an email from the identity provider. Does not commit."""
    c = db.get(Credential, _norm(email))
    if not c:
        return False
    db.delete(c)
    logger.info("identity account removed for %s", email)
    return True
