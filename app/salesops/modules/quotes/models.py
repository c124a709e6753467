from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.salesops.models import Base, User

Money = Numeric(12, 2, asdecimal=False)


class SalesQuote(Base):
    __tablename__ = "sales_quotes"
    __table_args__ = (
        Index("idx_sales_quotes_status", "status"),
        Index("idx_sales_quotes_factory", "factory"),
        Index("idx_sales_quotes_assigned_to", "assigned_to_user_id"),
        Index("idx_sales_quotes_customer_id", "customer_id"),
        Index("idx_sales_quotes_latest_created", "is_latest_version", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    quote_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_latest_version: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")

    # Parties
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("sales_customers.id", ondelete="SET NULL"), nullable=True)
    dealer_id: Mapped[int | None] = mapped_column(ForeignKey("dealers.id", ondelete="SET NULL"), nullable=True)
    dealer_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    dealer_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_to_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Project
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    project_state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    factory: Mapped[str] = mapped_column(String(64), nullable=False)
    product_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    product_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Pricing
    base_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    options_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    discount_amount: Mapped[float | None] = mapped_column(Money, nullable=True)
    discount_percent: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    total_price: Mapped[float | None] = mapped_column(Money, nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(32), nullable=True)
    deposit_required: Mapped[float | None] = mapped_column(Money, nullable=True)

    # Schedule
    requested_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    estimated_production_weeks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quote_valid_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Outcome
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    won_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lost_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lost_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    competitor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Praxis building data
    praxis_quote_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    praxis_source_factory: Mapped[str | None] = mapped_column(String(64), nullable=True)
    building_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    building_width: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    building_length: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    square_footage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    module_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    state_tags: Mapped[str | None] = mapped_column(String(255), nullable=True)
    climate_zone: Mapped[int | None] = mapped_column(Integer, nullable=True)
    occupancy_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    set_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    sprinkler_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    has_plumbing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    wui_compliant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Pipeline tracking
    outlook_percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    waiting_on: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expected_close_timeframe: Mapped[str | None] = mapped_column(String(64), nullable=True)
    difficulty_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..5
    qa_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quote_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    promised_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # PM review flag
    pm_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pm_flagged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    pm_flagged_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    pm_flagged_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Handoff to project management
    handed_off_to_pm: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    handed_off_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    handed_off_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)

    # Provenance
    imported_from: Mapped[str | None] = mapped_column(String(32), nullable=True)  # manual_entry, csv_import, praxis_export
    praxis_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_modified_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer = relationship("SalesCustomer", lazy="selectin")
    dealer = relationship("Dealer", lazy="selectin")
    assigned_to: Mapped[User | None] = relationship(User, foreign_keys=[assigned_to_user_id], lazy="selectin")
    activities: Mapped[list["SalesActivity"]] = relationship(
        "SalesActivity",
        back_populates="quote",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SalesActivity.created_at.desc()",
    )
    revisions: Mapped[list["QuoteRevision"]] = relationship(
        "QuoteRevision",
        back_populates="quote",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuoteRevision.version.desc()",
    )


class SalesActivity(Base):
    __tablename__ = "sales_activities"
    __table_args__ = (
        Index("idx_sales_activities_quote_id", "quote_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int | None] = mapped_column(ForeignKey("sales_quotes.id", ondelete="CASCADE"), nullable=True)
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("sales_customers.id", ondelete="SET NULL"), nullable=True)

    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)  # call, email, meeting, note, status_change, other
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    old_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    quote: Mapped[SalesQuote | None] = relationship("SalesQuote", back_populates="activities")
    created_by: Mapped[User | None] = relationship(User, lazy="selectin")


class QuoteRevision(Base):
    """Snapshot of a quote taken just before an edit overwrote it."""

    __tablename__ = "sales_quote_revisions"
    __table_args__ = (
        Index("idx_sales_quote_revisions_quote_id", "quote_id", "version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey("sales_quotes.id", ondelete="CASCADE"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    change_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    changed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    quote: Mapped[SalesQuote] = relationship("SalesQuote", back_populates="revisions")
    changed_by: Mapped[User | None] = relationship(User, lazy="selectin")
