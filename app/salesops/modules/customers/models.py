from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.salesops.models import Base


class SalesCustomer(Base):
    __tablename__ = "sales_customers"
    __table_args__ = (
        Index("idx_sales_customers_company_name", "company_name"),
        Index("idx_sales_customers_factory", "factory"),
        Index("idx_sales_customers_is_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Required
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    factory: Mapped[str] = mapped_column(String(64), nullable=False)
    company_type: Mapped[str] = mapped_column(String(32), nullable=False, default="general")

    # Primary contact
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Secondary contact
    secondary_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    secondary_contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    secondary_contact_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(32), nullable=True)

    source: Mapped[str | None] = mapped_column(String(32), nullable=True)  # referral, website, trade_show, ...
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
