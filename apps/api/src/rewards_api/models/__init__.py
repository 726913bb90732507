"""SQLAlchemy models package."""

from .user import User, UserRoleEnum  # noqa: F401
from .loyalty_program import LoyaltyProgram  # noqa: F401
from .enrollment import (  # noqa: F401
    ENROLLMENT_REQUEST_TYPE,
    CustomerBusinessRelationship,
    EnrollmentRequest,
    EnrollmentRequestStatus,
    ProgramEnrollment,
    ProgramEnrollmentStatus,
    RelationshipStatus,
)
from .loyalty_card import LoyaltyCard, LoyaltyCardStatus  # noqa: F401
from .notification import Notification, NotificationTypeEnum  # noqa: F401
