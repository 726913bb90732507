"""Enrollment service exports."""

from .memberships import CustomerRelationshipService, ProgramEnrollmentService  # noqa: F401
from .requests import EnrollmentRequestContext, EnrollmentRequestRepository  # noqa: F401
from .results import EnrollmentErrorCode, EnrollmentResponse  # noqa: F401
from .steps import StepAborted, StepKind, StepRunReport, WorkflowRunner, WorkflowStep  # noqa: F401
from .workflow import EnrollmentResponseService  # noqa: F401
