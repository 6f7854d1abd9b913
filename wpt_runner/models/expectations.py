"""Models for expected outcomes loaded from a to-run manifest."""

from collections.abc import Callable, Mapping, Sequence
from typing import Literal

from pydantic import Field, model_validator

from wpt_runner.models.base import Model

type ExpectationTable = Mapping[str, Sequence[str]]

# False: strict-pass, True: strict-fail, mapping: per-assertion table.
type ExpectFail = bool | ExpectationTable

type ReasonCategory = Literal["expect-fail", "expect-pass"]

type ReasonResolver = Callable[[str | None], str]


def is_table(expect_fail: ExpectFail) -> bool:
    """Return True when expect_fail is a per-assertion table."""
    return not isinstance(expect_fail, bool)


class TestEntry(Model):
    """One test file listed in the manifest."""

    __test__ = False

    path: str = Field(..., description="Test path relative to the suite root")
    title: str | None = Field(default=None, description="Display name (defaults to path)")
    reason: str | None = Field(
        default=None, description="Recorded reason for the whole test, if any"
    )
    assertions: Mapping[str, Sequence[str]] | None = Field(
        default=None,
        description="Recorded reasons per assertion name; first element is the reason",
    )

    @model_validator(mode="after")
    def _reason_or_assertions(self) -> "TestEntry":
        if self.reason is not None and self.assertions is not None:
            raise ValueError("'reason' and 'assertions' are mutually exclusive")
        for name, data in (self.assertions or {}).items():
            if not data:
                raise ValueError(f"assertion {name!r} needs at least a reason")
        return self

    def expect_fail(self, resolve_reason: ReasonResolver) -> ExpectFail:
        """Compute the expected-outcome mode for this entry."""
        if self.assertions is not None:
            return self.assertions
        if self.reason is None:
            return False
        return resolve_reason(self.reason) == "expect-fail"


class TestManifest(Model):
    """Complete to-run manifest."""

    __test__ = False

    version: str = Field(..., description="Manifest schema version")
    expect_fail_reasons: Sequence[str] = Field(
        default=("fail",),
        description="Reasons that mean the test or assertion is known to fail",
    )
    tests: Sequence[TestEntry] = Field(default_factory=list)
