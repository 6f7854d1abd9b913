"""Mutable state owned by a single run."""

from dataclasses import dataclass, field

from wpt_runner.models.expectations import ExpectFail
from wpt_runner.models.result import UnhandledException


@dataclass(kw_only=True)
class RunState:
    """Per-run state shared by the console listener, the shim and the reducer.

    Code inside the page can flip ``allow_unhandled_exceptions`` through
    ``setup({allow_uncaught_exception: true})``.
    """

    expect_fail: ExpectFail = False
    allow_unhandled_exceptions: bool = False
    errors: list[str] = field(default_factory=list)
    unhandled_exceptions: list[UnhandledException] = field(default_factory=list)
    tolerated_exceptions: list[UnhandledException] = field(default_factory=list)
