from datetime import datetime, timezone
from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column
from app.shared.db import Base
import uuid

def _id32() -> str:
    return uuid.uuid4().hex

class Payment(Base):
    __tablename__ = "payments"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_id32)
    amount: Mapped[int] = mapped_column(Integer)  # minor units (cents)
    currency: Mapped[str] = mapped_column(String(8), default="usd")
    customer_email: Mapped[str] = mapped_column(String(255), index=True)
    customer_name: Mapped[str] = mapped_column(String(200), default="")
    # Stripe payment intent id; the unique constraint is what makes settlement idempotent
    transaction_id: Mapped[str] = mapped_column(String(255), unique=True)
    payment_type: Mapped[str] = mapped_column(String(16))  # boost_issue|subscription
    payment_status: Mapped[str] = mapped_column(String(16), default="paid")
    issue_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    issue_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
