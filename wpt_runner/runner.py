"""Registration of tests with the outer runner and suite execution."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from wpt_runner.engine import TestRun
from wpt_runner.environments.base import EnvironmentLoader
from wpt_runner.errors import RunRejectedError
from wpt_runner.fetching import Fetcher
from wpt_runner.models.expectations import ExpectFail, ReasonResolver
from wpt_runner.models.result import RunOutcome, TestCaseResult

log = logging.getLogger(__name__)

# The harness enforces its own 60 second limit; this is an extra failsafe.
DEFAULT_TIMEOUT = 70.0


class RegisterFn(Protocol):
    """Registers one test file with a suite."""

    def __call__(
        self, test_path: str, title: str | None = None, expect_fail: ExpectFail = False
    ) -> None: ...


@dataclass(frozen=True, kw_only=True)
class RegisteredTest:
    """A named, timeout-bounded test registered with a suite."""

    __test__ = False

    title: str
    test_path: str
    timeout: float
    make_run: Callable[[], TestRun] = field(repr=False)

    async def run(self) -> RunOutcome:
        """Run once and raise RunRejectedError if the outcome was rejected."""
        async with asyncio.timeout(self.timeout):
            outcome = await self.make_run().execute()
        if not outcome.ok:
            raise RunRejectedError(outcome.message)
        return outcome


@dataclass(kw_only=True)
class TestSuite:
    """Collects registered tests and runs them concurrently."""

    __test__ = False

    tests: list[RegisteredTest] = field(default_factory=list)

    def add(self, test: RegisteredTest) -> None:
        self.tests.append(test)

    async def run_all(self, concurrency: int = 4) -> Sequence[TestCaseResult]:
        """Run every registered test, each with independent state.

        Args:
            concurrency: Maximum number of pages loaded at the same time

        Returns:
            One result per registered test, in registration order

        """
        if not self.tests:
            log.info("No tests registered")
            return []

        semaphore = asyncio.Semaphore(concurrency)

        async def bounded(test: RegisteredTest) -> TestCaseResult:
            async with semaphore:
                return await run_registered(test)

        log.info("Running %d test(s)...", len(self.tests))
        results = await asyncio.gather(
            *(bounded(test) for test in self.tests), return_exceptions=True
        )
        log.info("Test execution completed")

        return self._process_results(results)

    def _process_results(
        self, results: Sequence[TestCaseResult | BaseException]
    ) -> Sequence[TestCaseResult]:
        final_results: list[TestCaseResult] = []

        for test, result in zip(self.tests, results, strict=True):
            if isinstance(result, TestCaseResult):
                final_results.append(result)
            elif isinstance(result, Exception):
                log.error("Test %s aborted: %s", test.title, result, exc_info=result)
                final_results.append(
                    TestCaseResult(
                        title=test.title,
                        status="error",
                        duration=0.0,
                        message=str(result),
                    )
                )
            else:
                raise result

        return final_results


async def run_registered(test: RegisteredTest) -> TestCaseResult:
    """Run a registered test and map its verdict to a TestCaseResult.

    Contract violations (e.g. an unknown status) are not caught here.
    """
    start = time.monotonic()
    try:
        await test.run()
    except RunRejectedError as e:
        status, message = "failure", str(e)
    except TimeoutError:
        status = "timeout"
        message = f"Test did not complete within {test.timeout} seconds"
    else:
        status, message = "success", None
    duration = time.monotonic() - start

    log.info(
        "Test completed: title=%s status=%s duration=%.1fs",
        test.title,
        status,
        duration,
    )
    return TestCaseResult(
        title=test.title, status=status, duration=duration, message=message
    )


def create_register(
    url_prefix_factory: Callable[[], str],
    *,
    suite: TestSuite,
    loader: EnvironmentLoader,
    base_fetcher: Fetcher,
    resources_root: Path,
    resolve_reason: ReasonResolver,
    timeout: float = DEFAULT_TIMEOUT,
) -> RegisterFn:
    """Return a function registering one test file per call.

    The URL prefix is resolved when a test starts, since the server may not be
    up at registration time.
    """

    def register(
        test_path: str, title: str | None = None, expect_fail: ExpectFail = False
    ) -> None:
        def make_run() -> TestRun:
            return TestRun(
                url=url_prefix_factory() + test_path,
                test_path=test_path,
                loader=loader,
                base_fetcher=base_fetcher,
                resources_root=resources_root,
                resolve_reason=resolve_reason,
                expect_fail=expect_fail,
            )

        suite.add(
            RegisteredTest(
                title=title or test_path,
                test_path=test_path,
                timeout=timeout,
                make_run=make_run,
            )
        )

    return register
