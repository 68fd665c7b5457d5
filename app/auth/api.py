# app/auth/api.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from fastapi.security import OAuth2PasswordRequestForm

from app.shared.db import get_db
from app.shared.auth import Identity, require_identity
from app.shared.config import Settings, get_settings
from app.shared.errors import InvalidOperation, Unauthorized
from app.auth.service import register_credential, authenticate, create_access_token

router = APIRouter(prefix="/auth", tags=["Auth"])

class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)

@router.post("/register", status_code=201)
def api_register(inb: RegisterIn, db: Session = Depends(get_db)):
    try:
        account = register_credential(db, inb.email, inb.password)
    except ValueError as e:
        raise InvalidOperation(str(e))
    return {"ok": True, "account": account}

@router.post("/token")
def api_token(
    form: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    email = authenticate(db, form.username, form.password)
    if not email:
        raise Unauthorized("invalid credentials")
    return {"access_token": create_access_token(settings, email), "token_type": "bearer"}

@router.get("/me")
def api_me(identity: Identity = Depends(require_identity)):
    return {"ok": True, "email": identity.email}
