from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from app.shared.db import Base
import uuid

def _id32() -> str:
    return uuid.uuid4().hex

class TimelineEntry(Base):
    __tablename__ = "timelines"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_id32)
    # plain column, not a ForeignKey: entries are removed explicitly with their issue
    issue_id: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(16))
    message: Mapped[str] = mapped_column(Text, default="")
    updated_by_name: Mapped[str] = mapped_column(String(200), default="")
    updated_by_role: Mapped[str] = mapped_column(String(16))  # citizen|staff|admin
    updated_by_email: Mapped[str] = mapped_column(String(255), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
