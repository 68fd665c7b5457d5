from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.shared.db import Base
import uuid, json

def _id32() -> str:
    return uuid.uuid4().hex

def _now() -> datetime:
    return datetime.now(timezone.utc)

class Issue(Base):
    __tablename__ = "issues"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_id32)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(100), index=True)
    location: Mapped[str] = mapped_column(String(300), default="")
    image: Mapped[str] = mapped_column(String(1024), default="")

    reporter_id: Mapped[str] = mapped_column(String(32), default="")
    reporter_name: Mapped[str] = mapped_column(String(200), default="")
    reporter_email: Mapped[str] = mapped_column(String(255), index=True)

    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)  # see lifecycle.IssueStatus
    priority: Mapped[str] = mapped_column(String(8), default="normal")  # normal|high
    is_boosted: Mapped[bool] = mapped_column(Boolean, default=False)
    # list of upvoter emails as JSON text; use the .upvotes property
    upvotes_json: Mapped[str] = mapped_column(Text, default="[]")

    # all four empty until an admin assigns staff, then all four set together
    assigned_staff_id: Mapped[str] = mapped_column(String(32), default="")
    assigned_staff_name: Mapped[str] = mapped_column(String(200), default="")
    assigned_staff_email: Mapped[str] = mapped_column(String(255), default="", index=True)
    assigned_staff_photo: Mapped[str] = mapped_column(String(1024), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    @property
    def upvotes(self) -> list[str]:
        try:
            return json.loads(self.upvotes_json or "[]")
        except ValueError:
            return []

    @upvotes.setter
    def upvotes(self, val: list[str]):
        self.upvotes_json = json.dumps(val or [])

    @property
    def upvote_count(self) -> int:
        return len(self.upvotes)

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_staff_email)
