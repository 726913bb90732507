"""Ordered step execution with critical and best-effort semantics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

from loguru import logger

from rewards_api.observability.enrollment import EnrollmentObservabilityStore, get_enrollment_store


class StepKind(str, Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


@dataclass
class WorkflowStep:
    """One unit of work in a decision path.

    ``error_code`` names the result code reported when this critical step
    fails; steps without one fall back to the path's generic code.
    """

    name: str
    action: Callable[[], Awaitable[Any]]
    kind: StepKind = StepKind.CRITICAL
    error_code: str | None = None


class StepAborted(Exception):
    """Raised by an action to fail its step without an underlying fault."""


@dataclass
class StepRunReport:
    completed: list[str] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)
    failed_step: WorkflowStep | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None


class WorkflowRunner:
    """Runs steps in order, stopping at the first critical failure."""

    def __init__(
        self,
        workflow: str,
        *,
        context: dict[str, Any] | None = None,
        store: EnrollmentObservabilityStore | None = None,
    ) -> None:
        self._workflow = workflow
        self._context = context or {}
        self._store = store or get_enrollment_store()

    async def run(self, steps: Sequence[WorkflowStep]) -> StepRunReport:
        report = StepRunReport()
        for step in steps:
            try:
                await step.action()
            except Exception as exc:
                if step.kind is StepKind.BEST_EFFORT:
                    logger.opt(exception=exc).warning(
                        "Best-effort workflow step failed",
                        workflow=self._workflow,
                        step=step.name,
                        **self._context,
                    )
                    self._store.record_step_failure(step.name)
                    report.degraded.append(step.name)
                    continue

                if isinstance(exc, StepAborted):
                    logger.warning(
                        "Critical workflow step aborted",
                        workflow=self._workflow,
                        step=step.name,
                        reason=str(exc),
                        **self._context,
                    )
                else:
                    logger.opt(exception=exc).error(
                        "Critical workflow step failed",
                        workflow=self._workflow,
                        step=step.name,
                        **self._context,
                    )
                report.failed_step = step
                report.error = exc
                return report
            report.completed.append(step.name)
        return report


__all__ = ["StepAborted", "StepKind", "StepRunReport", "WorkflowRunner", "WorkflowStep"]
