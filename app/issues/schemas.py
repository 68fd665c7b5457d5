from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.issues.lifecycle import IssueStatus

class IssueCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    category: str = Field(min_length=1, max_length=100)
    location: str = Field(min_length=1, max_length=300)
    image: Optional[str] = Field(default=None, max_length=1024)

class IssueUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    category: str = Field(min_length=1, max_length=100)
    location: str = Field(min_length=1, max_length=300)
    # only replaced when supplied
    image: Optional[str] = Field(default=None, max_length=1024)

class StatusUpdate(BaseModel):
    status: IssueStatus

class AssignStaff(BaseModel):
    staff_email: EmailStr

class IssueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    title: str
    description: str
    category: str
    location: str
    image: str
    reporter_id: str
    reporter_name: str
    reporter_email: str
    status: IssueStatus
    priority: Literal["normal", "high"]
    is_boosted: bool
    upvotes: List[str]
    upvote_count: int
    assigned_staff_id: str
    assigned_staff_name: str
    assigned_staff_email: str
    assigned_staff_photo: str
    created_at: datetime
    updated_at: datetime

class IssueList(BaseModel):
    items: List[IssueOut]
    total: int
    page: int
    limit: int
