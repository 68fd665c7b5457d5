from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.shared.auth import CallerContext, Identity, require_capability, require_identity
from app.shared.db import get_db
from app.shared.http import ok
from app.users.schemas import (
    UserRegister, ProfileUpdate, RoleUpdate, BlockUpdate, UserOut, RoleInfo, UserList, Role,
)
from app.users.service import (
    register_user, role_info, require_user, update_profile, list_users,
    set_role, set_blocked, delete_user,
)

router = APIRouter(prefix="/users", tags=["Users"])

@router.post("", response_model=UserOut)
def api_register_user(
    payload: UserRegister,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    user, created = register_user(db, identity.email, payload)
    return JSONResponse(
        status_code=201 if created else 200,
        content=UserOut.model_validate(user).model_dump(mode="json"),
    )

@router.get("/me", response_model=UserOut)
def api_me(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    return require_user(db, identity.email)

@router.patch("/me", response_model=UserOut)
def api_update_me(
    payload: ProfileUpdate,
    ctx: CallerContext = Depends(require_capability("active")),
    db: Session = Depends(get_db),
):
    return update_profile(db, ctx.user, payload)

@router.get("/{email}/role", response_model=RoleInfo)
def api_role(email: str, db: Session = Depends(get_db)):
    return role_info(db, email)

# --- admin ---

@router.get("", response_model=UserList)
def api_list_users(
    role: Role | None = Query(None),
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return {"items": list_users(db, role)}

@router.patch("/{email}/role", response_model=UserOut)
def api_set_role(
    email: str,
    payload: RoleUpdate,
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return set_role(db, email, payload.role)

@router.patch("/{email}/block", response_model=UserOut)
def api_set_blocked(
    email: str,
    payload: BlockUpdate,
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return set_blocked(db, email, payload.is_blocked)

@router.delete("/{email}")
def api_delete_user(
    email: str,
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return ok(delete_user(db, ctx.user, email))
