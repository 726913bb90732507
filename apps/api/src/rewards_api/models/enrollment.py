"""Enrollment invitations, program memberships, and customer/business links."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from rewards_api.db.base import Base


ENROLLMENT_REQUEST_TYPE = "ENROLLMENT"


class EnrollmentRequestStatus(str, Enum):
    """One-way lifecycle of an enrollment invitation."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProgramEnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class RelationshipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EnrollmentRequest(Base):
    """Invitation for a customer to join a business loyalty program."""

    __tablename__ = "enrollment_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    request_type = Column(
        String(length=32),
        nullable=False,
        default=ENROLLMENT_REQUEST_TYPE,
        server_default=ENROLLMENT_REQUEST_TYPE,
    )
    customer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_programs.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        SqlEnum(EnrollmentRequestStatus, name="enrollment_request_status"),
        nullable=False,
        default=EnrollmentRequestStatus.PENDING,
        server_default=EnrollmentRequestStatus.PENDING.value,
    )
    data = Column(JSON, nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ProgramEnrollment(Base):
    """Standing membership of a customer in a program, independent of the card."""

    __tablename__ = "program_enrollments"
    __table_args__ = (
        UniqueConstraint("customer_id", "program_id", name="uq_program_enrollments_customer_program"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_programs.id", ondelete="CASCADE"), nullable=False)
    business_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        SqlEnum(ProgramEnrollmentStatus, name="program_enrollment_status"),
        nullable=False,
        default=ProgramEnrollmentStatus.ACTIVE,
        server_default=ProgramEnrollmentStatus.ACTIVE.value,
    )
    current_points = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    total_points_earned = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")
    enrolled_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class CustomerBusinessRelationship(Base):
    """Denormalized edge marking that a customer deals with a business."""

    __tablename__ = "customer_business_relationships"
    __table_args__ = (
        UniqueConstraint("customer_id", "business_id", name="uq_customer_business_relationships_pair"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    business_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        String(length=16),
        nullable=False,
        default=RelationshipStatus.ACTIVE.value,
        server_default=RelationshipStatus.ACTIVE.value,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
