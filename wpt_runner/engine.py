"""Per-test lifecycle and reduction of harness results into a single verdict."""

import asyncio
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from wpt_runner.environments.base import (
    UNHANDLED_EXCEPTION,
    Environment,
    EnvironmentLoader,
    LoadOptions,
    PageErrorEvent,
    Window,
)
from wpt_runner.errors import UnexpectedStatusError
from wpt_runner.fetching import Fetcher, InterceptingFetcher
from wpt_runner.models.expectations import ExpectFail, ReasonResolver, is_table
from wpt_runner.models.result import (
    AssertionResult,
    AssertionStatus,
    HarnessStatus,
    RunOutcome,
    UnhandledException,
)
from wpt_runner.shim import install_shim
from wpt_runner.state import RunState

log = logging.getLogger(__name__)
page_log = logging.getLogger("wpt_runner.page")

READY_HOOK = "shimTest"

# Filling the default quota takes about a minute between two tests.
STORAGE_QUOTA = 100_000

UNEXPECTED_PASSING_TEST_MESSAGE = """
            Hey, did you fix a bug? This test used to be failing, but during
            this run there were no errors. If you have fixed the issue covered
            by this test, you can edit the manifest and remove the line
            containing this test. Thanks!
            """

FAILURE_PREFIXES: Mapping[AssertionStatus, str] = {
    "FAIL": "Failed in",
    "PRECONDITION_FAILED": "Failed in",
    "TIMEOUT": "Timeout in",
    "NOTRUN": "Uncompleted test",
}

ERROR_STATUSES: frozenset[AssertionStatus] = frozenset({"FAIL", "TIMEOUT", "NOTRUN"})

CONSOLE_LEVELS: Mapping[str, int] = {
    "debug": logging.DEBUG,
    "log": logging.INFO,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def format_failed_test(result: AssertionResult) -> str:
    """Format a result that deviates from what was expected."""
    name = json.dumps(result.name)
    if result.status == "PASS":
        return f"Unexpected passing test: {name}{UNEXPECTED_PASSING_TEST_MESSAGE}"
    prefix = FAILURE_PREFIXES[result.status]
    return f"{prefix} {name}:\n{result.message}\n\n{result.stack}"


def _joined(errors: Sequence[str], total: int) -> str:
    return f"{len(errors)}/{total} errors in test:\n\n" + "\n\n".join(errors)


def reconcile(
    test_path: str,
    tests: Sequence[AssertionResult],
    harness_status: HarnessStatus,
    state: RunState,
    resolve_reason: ReasonResolver,
) -> RunOutcome:
    """Reduce everything collected during a run into one outcome."""
    errors = list(state.errors)

    harness_failed = False
    if harness_status.status == "ERROR":
        harness_failed = True
        errors.append(
            f"test harness should not error: {test_path}\n{harness_status.message}"
        )
    elif harness_status.status == "TIMEOUT":
        harness_failed = True
        errors.append(f"test harness should not timeout: {test_path}")

    errors.extend(str(e) for e in state.unhandled_exceptions)

    expect_fail = state.expect_fail
    if is_table(expect_fail) and (
        harness_failed or state.unhandled_exceptions or state.tolerated_exceptions
    ):
        log.info("Ignoring per-assertion expectations for %s", test_path)
        expect_fail = False
        errors.extend(str(e) for e in state.tolerated_exceptions)

    if expect_fail is not False and not errors:
        return RunOutcome.rejected(UNEXPECTED_PASSING_TEST_MESSAGE)

    if expect_fail is False and errors:
        if len(errors) == 1 and (len(tests) == 1 or harness_failed):
            return RunOutcome.rejected(errors[0])
        return RunOutcome.rejected(_joined(errors, len(tests)))

    if not is_table(expect_fail):
        return RunOutcome.resolved()

    return _reconcile_table(tests, expect_fail, resolve_reason)


def _reconcile_table(
    tests: Sequence[AssertionResult],
    table: Mapping[str, Sequence[str]],
    resolve_reason: ReasonResolver,
) -> RunOutcome:
    unexpected: list[str] = []
    for result in tests:
        data = table.get(result.name)
        reason = data[0] if data else None

        if resolve_reason(reason) == "expect-fail":
            deviates = result.status == "PASS"
        else:
            deviates = result.status != "PASS"

        if deviates:
            unexpected.append(format_failed_test(result))

    if unexpected:
        return RunOutcome.rejected(_joined(unexpected, len(tests)))
    return RunOutcome.resolved()


class ReadyHook:
    """One-shot entry point the reporter stub calls once the harness is loaded."""

    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self.fired = False

    def __call__(self) -> None:
        if self.fired:
            raise RuntimeError(f"{READY_HOOK}() called more than once")
        self.fired = True
        self._callback()


class TestRun:
    """A single run of one test file in a fresh environment.

    Collects assertion results and out-of-band exceptions while the page runs
    and resolves exactly once, when the harness reports completion. There is
    no timeout here: a page that never completes never resolves.
    """

    __test__ = False

    def __init__(
        self,
        *,
        url: str,
        test_path: str,
        loader: EnvironmentLoader,
        base_fetcher: Fetcher,
        resources_root: Path,
        resolve_reason: ReasonResolver,
        expect_fail: ExpectFail = False,
    ) -> None:
        self.url = url
        self.test_path = test_path
        self.loader = loader
        self.base_fetcher = base_fetcher
        self.resources_root = resources_root
        self.resolve_reason = resolve_reason
        self.state = RunState(expect_fail=expect_fail)
        self._environment: Environment | None = None
        self._close_requested = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._outcome: asyncio.Future[RunOutcome] | None = None

    async def execute(self) -> RunOutcome:
        """Load the page and wait for the harness to complete."""
        self._loop = asyncio.get_running_loop()
        self._outcome = self._loop.create_future()

        log.info("Loading %s", self.url)
        options = LoadOptions(
            console=self,
            fetcher=InterceptingFetcher(
                base=self.base_fetcher, resources_root=self.resources_root
            ),
            scripting_enabled=True,
            pretend_to_be_visual=True,
            storage_quota=STORAGE_QUOTA,
            before_parse=self._before_parse,
        )
        self._environment = await self.loader.load(self.url, options)
        if self._close_requested:
            self._close()

        outcome = await self._outcome
        log.info("Finished %s: %s", self.test_path, outcome.status)
        return outcome

    def _before_parse(self, window: Window) -> None:
        window[READY_HOOK] = ReadyHook(lambda: self._on_ready(window))

    def _on_ready(self, window: Window) -> None:
        log.debug("Harness ready in %s", self.test_path)

        install_shim(window, self.state)
        window["add_result_callback"](self._on_result)
        window["add_completion_callback"](self._on_completion)

    def _on_result(self, test: Any) -> None:
        try:
            result = AssertionResult.from_harness(test)
        except UnexpectedStatusError as e:
            self._abort(e)
            return
        if result.status in ERROR_STATUSES:
            self.state.errors.append(format_failed_test(result))

    def _on_completion(self, tests: Sequence[Any], harness_status: Any) -> None:
        # Some tests keep doing work after signalling completion.
        if self._loop is None:
            raise RuntimeError("Completion reported before the run started")
        self._loop.call_soon(self._close)

        try:
            outcome = reconcile(
                self.test_path,
                [AssertionResult.from_harness(t) for t in tests],
                HarnessStatus.from_harness(harness_status),
                self.state,
                self.resolve_reason,
            )
        except UnexpectedStatusError as e:
            self._abort(e)
            return

        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(outcome)

    def _abort(self, error: UnexpectedStatusError) -> None:
        log.error("Aborting %s: %s", self.test_path, error)
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_exception(error)

    def _close(self) -> None:
        if self._environment is None:
            # Completed before the load resolved.
            self._close_requested = True
            return
        self._environment.close()

    def on_page_error(self, event: PageErrorEvent) -> None:
        if event.type != UNHANDLED_EXCEPTION:
            page_log.debug("%s: %s", event.type, event.message)
            return

        record = UnhandledException(message=event.message, stack=event.stack)
        if self.state.allow_unhandled_exceptions:
            self.state.tolerated_exceptions.append(record)
            log.debug("Tolerated unhandled exception in %s", self.test_path)
            return

        self.state.unhandled_exceptions.append(record)
        # Known-failing tests can be noisy.
        if self.state.expect_fail is False:
            log.error("%s", record.stack or record.message)

    def on_console_message(self, level: str, message: str) -> None:
        page_log.log(CONSOLE_LEVELS.get(level, logging.INFO), "%s", message)
