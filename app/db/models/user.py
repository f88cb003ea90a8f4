# app/db/models/user.py

from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from app.db.session import Base, BigIntPK


class User(Base):
    """Account behind a doctor, patient or admin. Notifications are addressed to users."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    # doctor | patient | admin
    role: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="patient")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
