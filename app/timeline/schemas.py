from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict

class TimelineEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    issue_id: str
    status: str
    message: str
    updated_by_name: str
    updated_by_role: str
    updated_by_email: str
    created_at: datetime

class TimelineList(BaseModel):
    items: List[TimelineEntryOut]
