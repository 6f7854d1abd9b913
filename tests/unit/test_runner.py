"""Tests for registration and suite execution."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from wpt_runner.errors import RunRejectedError
from wpt_runner.fetching import Fetcher
from wpt_runner.manifest_loader import ReasonClassifier
from wpt_runner.runner import (
    DEFAULT_TIMEOUT,
    RegisterFn,
    TestSuite,
    create_register,
    run_registered,
)
from wpt_runner.testing.environment import HarnessTest, Page, ScriptedLoader

URL_PREFIX = "http://web-platform.test:8000/"


def script(page: Page) -> None:
    """Page whose outcome is encoded in its file name."""
    if "fail" in page.url:
        page.harness.report("a", HarnessTest.FAIL, "nope", "stack")
    elif "hang" in page.url:
        return
    elif "weird" in page.url:
        page.harness.report("a", status=99)
    else:
        page.harness.report("a")
    page.harness.done()


@pytest.fixture
def loader() -> ScriptedLoader:
    """Create scripted loader."""
    return ScriptedLoader(script=script)


@pytest.fixture
def suite() -> TestSuite:
    """Create empty suite."""
    return TestSuite()


@pytest.fixture
def prefix_factory() -> Mock:
    """URL prefix factory."""
    return Mock(return_value=URL_PREFIX)


@pytest.fixture
def register(
    suite: TestSuite, loader: ScriptedLoader, prefix_factory: Mock, tmp_path: Path
) -> RegisterFn:
    """Create register function bound to the suite."""
    return create_register(
        prefix_factory,
        suite=suite,
        loader=loader,
        base_fetcher=AsyncMock(spec=Fetcher),
        resources_root=tmp_path,
        resolve_reason=ReasonClassifier.from_reasons(["fail"]),
        timeout=0.5,
    )


def test_register_adds_named_test(register: RegisterFn, suite: TestSuite) -> None:
    """Registers one test per call, titled after the path by default."""
    register("dom/a.html")
    register("dom/b.html", "custom title", True)

    assert [t.title for t in suite.tests] == ["dom/a.html", "custom title"]
    assert [t.test_path for t in suite.tests] == ["dom/a.html", "dom/b.html"]
    assert all(t.timeout == 0.5 for t in suite.tests)


def test_default_timeout() -> None:
    """Default per-test timeout is 70 seconds."""
    assert DEFAULT_TIMEOUT == 70.0


async def test_prefix_resolved_at_run_time(
    register: RegisterFn,
    suite: TestSuite,
    prefix_factory: Mock,
    loader: ScriptedLoader,
) -> None:
    """Calls the URL prefix factory when the test runs, not at registration."""
    register("dom/a.html")
    prefix_factory.assert_not_called()

    await suite.tests[0].run()

    prefix_factory.assert_called_once_with()
    assert loader.loads[0][0] == URL_PREFIX + "dom/a.html"


async def test_rejected_run_raises(register: RegisterFn, suite: TestSuite) -> None:
    """Raises RunRejectedError carrying the diagnostic."""
    register("dom/fail.html")

    with pytest.raises(RunRejectedError, match='Failed in "a"'):
        await suite.tests[0].run()


async def test_each_run_gets_fresh_state(
    register: RegisterFn, suite: TestSuite, loader: ScriptedLoader
) -> None:
    """Running the same registration twice loads two independent pages."""
    register("dom/a.html")

    await suite.tests[0].run()
    await suite.tests[0].run()

    assert len(loader.environments) == 2
    assert loader.environments[0].window is not loader.environments[1].window


async def test_run_registered_maps_statuses(
    register: RegisterFn, suite: TestSuite
) -> None:
    """Maps resolved, rejected and timed-out runs to result statuses."""
    register("dom/ok.html")
    register("dom/fail.html")
    register("dom/hang.html")
    register("dom/fail-expected.html", None, True)

    results = [await run_registered(test) for test in suite.tests]

    assert [r.status for r in results] == ["success", "failure", "timeout", "success"]
    assert results[1].message is not None
    assert results[2].message == "Test did not complete within 0.5 seconds"


async def test_run_all_isolates_aborted_runs(
    register: RegisterFn, suite: TestSuite
) -> None:
    """A contract violation in one run becomes an error result for that run."""
    register("dom/ok.html")
    register("dom/weird.html")
    register("dom/fail.html")

    results = await suite.run_all(concurrency=2)

    assert [(r.title, r.status) for r in results] == [
        ("dom/ok.html", "success"),
        ("dom/weird.html", "error"),
        ("dom/fail.html", "failure"),
    ]
    assert results[1].message is not None
    assert "99" in results[1].message


async def test_run_all_empty_suite(suite: TestSuite) -> None:
    """Returns no results for an empty suite."""
    assert await suite.run_all() == []
