from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class EnrollmentSnapshot:
    decisions: Dict[str, int]
    outcomes: Dict[str, int]
    step_failures: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "decisions": dict(self.decisions),
            "outcomes": dict(self.outcomes),
            "stepFailures": dict(self.step_failures),
        }


class EnrollmentObservabilityStore:
    """Counts enrollment responses by decision, outcome, and degraded step."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._decisions: Dict[str, int] = defaultdict(int)
        self._outcomes: Dict[str, int] = defaultdict(int)
        self._step_failures: Dict[str, int] = defaultdict(int)

    def record_outcome(self, *, approved: bool, error_code: str | None) -> None:
        with self._lock:
            self._decisions["approved" if approved else "rejected"] += 1
            self._outcomes[error_code or "success"] += 1

    def record_step_failure(self, step: str) -> None:
        with self._lock:
            self._step_failures[step] += 1

    def snapshot(self) -> EnrollmentSnapshot:
        with self._lock:
            return EnrollmentSnapshot(
                decisions=dict(self._decisions),
                outcomes=dict(self._outcomes),
                step_failures=dict(self._step_failures),
            )

    def reset(self) -> None:
        with self._lock:
            self._decisions.clear()
            self._outcomes.clear()
            self._step_failures.clear()


_STORE = EnrollmentObservabilityStore()


def get_enrollment_store() -> EnrollmentObservabilityStore:
    return _STORE


__all__ = ["EnrollmentObservabilityStore", "EnrollmentSnapshot", "get_enrollment_store"]
