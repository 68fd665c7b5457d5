from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Role = Literal["citizen", "staff", "admin"]

class UserRegister(BaseModel):
    name: str = Field(default="", max_length=200)
    photo: Optional[str] = Field(default=None, max_length=1024)

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    photo: Optional[str] = Field(default=None, max_length=1024)

class RoleUpdate(BaseModel):
    role: Role

class BlockUpdate(BaseModel):
    is_blocked: bool

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    email: str
    name: str
    photo: str
    role: Role = Field(validation_alias="effective_role")
    is_premium: bool
    is_blocked: bool
    created_at: datetime

class RoleInfo(BaseModel):
    role: Role
    is_premium: bool
    is_blocked: bool

class UserList(BaseModel):
    items: List[UserOut]
