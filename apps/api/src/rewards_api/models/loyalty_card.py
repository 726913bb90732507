from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from rewards_api.db.base import Base


class LoyaltyCardStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


class LoyaltyCard(Base):
    """Point-bearing card issued when a customer accepts a program invitation."""

    __tablename__ = "loyalty_cards"
    __table_args__ = (
        UniqueConstraint("customer_id", "program_id", name="uq_loyalty_cards_customer_program"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_programs.id", ondelete="CASCADE"), nullable=False)
    card_number = Column(String(length=50), nullable=False, unique=True)
    card_type = Column(String(length=32), nullable=False, default="STANDARD", server_default="STANDARD")
    tier = Column(String(length=32), nullable=False, default="STANDARD", server_default="STANDARD")
    points = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    points_multiplier = Column(Numeric(10, 2), nullable=False, default=1, server_default="1.0")
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    status = Column(
        String(length=16),
        nullable=False,
        default=LoyaltyCardStatus.ACTIVE.value,
        server_default=LoyaltyCardStatus.ACTIVE.value,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
