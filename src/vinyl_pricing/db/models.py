"""
ORM schema for policies, audits, releases and market snapshots.
"""
from datetime import datetime
from typing import Any, Optional
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..engine.models import utc_now


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class PricingPolicyRecord(Base):
    """One immutable version of a scope's pricing policy."""
    __tablename__ = "pricing_policies"
    __table_args__ = (
        UniqueConstraint("scope", "version", name="uq_pricing_policies_scope_version"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    scope: Mapped[str] = mapped_column(String(16), nullable=False)  # BUYER, SELLER
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    buy_formula: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    sell_formula: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    condition_curve: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    min_offer: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_offer: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    offer_expiry_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    audits: Mapped[list["PricingPolicyAuditRecord"]] = relationship(back_populates="policy")


# At most one active version per scope, enforced by the database itself
Index(
    "uq_pricing_policies_active_scope",
    PricingPolicyRecord.scope,
    unique=True,
    sqlite_where=PricingPolicyRecord.is_active == true(),
    postgresql_where=PricingPolicyRecord.is_active == true(),
)


class PricingPolicyAuditRecord(Base):
    """Append-only record of a policy transition."""
    __tablename__ = "pricing_policy_audits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    policy_id: Mapped[str] = mapped_column(String(36), ForeignKey("pricing_policies.id"), nullable=False, index=True)
    change_type: Mapped[str] = mapped_column(String(16), nullable=False)  # UPDATE, ROLLBACK
    previous_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    new_version: Mapped[int] = mapped_column(Integer, nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    changed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    policy: Mapped[PricingPolicyRecord] = relationship(back_populates="audits")


class ReleaseRecord(Base):
    """Catalog release; owned by the catalog subsystem, read-only here."""
    __tablename__ = "releases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    artist: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    catalog_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    discogs_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class MarketSnapshotRecord(Base):
    """Point-in-time market statistics for a release."""
    __tablename__ = "market_snapshots"
    __table_args__ = (
        Index("ix_market_snapshots_release_fetched", "release_id", "fetched_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    release_id: Mapped[str] = mapped_column(String(36), ForeignKey("releases.id", ondelete="CASCADE"), nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)  # DISCOGS, EBAY
    stat_low: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stat_median: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stat_high: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    sample_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
