from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.salesops.models import Base


class Project(Base):
    """
    PM-side project record. Only the columns the quote handoff fills in live
    here; project management itself happens elsewhere.
    """

    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_factory", "factory"),
        Index("idx_projects_source_quote_id", "source_quote_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_number: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    factory: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Planning")

    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    client_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    contract_value: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)

    # Plain id; sales_quotes.project_id carries the foreign key the other way.
    source_quote_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
