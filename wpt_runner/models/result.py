"""Models for harness results and run outcomes."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Self

from wpt_runner.errors import UnexpectedStatusError

type AssertionStatus = Literal[
    "PASS",
    "FAIL",
    "PRECONDITION_FAILED",
    "TIMEOUT",
    "NOTRUN",
]

type HarnessStatusCode = Literal["OK", "ERROR", "TIMEOUT"]

# Constants testharness.js exposes on each test object.
ASSERTION_STATUS_CODES: Mapping[AssertionStatus, int] = {
    "PASS": 0,
    "FAIL": 1,
    "TIMEOUT": 2,
    "NOTRUN": 3,
    "PRECONDITION_FAILED": 4,
}

HARNESS_STATUS_CODES: Mapping[HarnessStatusCode, int] = {
    "OK": 0,
    "ERROR": 1,
    "TIMEOUT": 2,
}


def _status_name[S: str](obj: Any, codes: Mapping[S, int], label: str) -> S:
    """Resolve obj.status against the named constants carried by obj."""
    status = getattr(obj, "status", None)
    for name, default in codes.items():
        if status == getattr(obj, name, default):
            return name
    raise UnexpectedStatusError(
        f"Unexpected {label} status: {status!r} "
        f"({label}: {getattr(obj, 'name', None)!r})"
    )


@dataclass(frozen=True, kw_only=True)
class AssertionResult:
    """Outcome of one named assertion inside a run."""

    name: str
    status: AssertionStatus
    message: str | None = None
    stack: str | None = None

    @classmethod
    def from_harness(cls, test: Any) -> Self:
        """Build from a testharness.js test object.

        Raises:
            UnexpectedStatusError: If the status is none of the five known ones

        """
        return cls(
            name=test.name,
            status=_status_name(test, ASSERTION_STATUS_CODES, "test"),
            message=getattr(test, "message", None),
            stack=getattr(test, "stack", None),
        )


@dataclass(frozen=True, kw_only=True)
class HarnessStatus:
    """Terminal status reported by the harness itself."""

    status: HarnessStatusCode
    message: str | None = None

    @classmethod
    def from_harness(cls, harness_status: Any) -> Self:
        """Build from a testharness.js TestsStatus object."""
        return cls(
            status=_status_name(harness_status, HARNESS_STATUS_CODES, "harness"),
            message=getattr(harness_status, "message", None),
        )


@dataclass(frozen=True, kw_only=True)
class UnhandledException:
    """Exception that escaped the harness and was reported by the environment."""

    message: str
    stack: str | None = None

    def __str__(self) -> str:
        if self.stack:
            return f"Unhandled exception: {self.message}\n\n{self.stack}"
        return f"Unhandled exception: {self.message}"


@dataclass(frozen=True, kw_only=True)
class RunOutcome:
    """Single verdict for a run."""

    status: Literal["resolved", "rejected"]
    message: str | None = None

    @classmethod
    def resolved(cls) -> Self:
        return cls(status="resolved")

    @classmethod
    def rejected(cls, message: str) -> Self:
        return cls(status="rejected", message=message)

    @property
    def ok(self) -> bool:
        return self.status == "resolved"


@dataclass(frozen=True, kw_only=True)
class TestCaseResult:
    """Result of executing one registered test, as seen by the outer runner."""

    __test__ = False

    title: str
    status: Literal["success", "failure", "timeout", "error"]
    duration: float
    message: str | None = None
