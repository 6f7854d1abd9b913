"""Scripted stand-ins for a DOM environment and the testharness.js harness.

The fake page mirrors what a real environment does with a WPT file: it fetches
``/resources/testharnessreport.js`` through the configured fetcher, evaluates
the stub (which calls ``shimTest``) and then runs the test script.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from yarl import URL

from wpt_runner.environments.base import (
    UNHANDLED_EXCEPTION,
    LoadOptions,
    PageErrorEvent,
    Window,
)
from wpt_runner.fetching import REPORTER_PATH, REPORTER_STUB


def _error_class(name: str, base: type[Exception]) -> type[Exception]:
    return type(name, (base,), {"name": name})


# Page-realm constructors. Distinct from the controller's builtins.
PageError = _error_class("Error", Exception)
PageTypeError = _error_class("TypeError", PageError)
PageRangeError = _error_class("RangeError", PageError)
PageDOMException = _error_class("DOMException", Exception)


class HarnessAssertionError(Exception):
    """The harness's own AssertionError."""


@dataclass(kw_only=True)
class HarnessTest:
    """Minimal testharness.js Test object."""

    __test__ = False

    PASS = 0
    FAIL = 1
    TIMEOUT = 2
    NOTRUN = 3
    PRECONDITION_FAILED = 4

    name: str
    status: int = 0
    message: str | None = None
    stack: str | None = None

    def unreached_func(self, description: str) -> Callable[..., None]:
        def unreached(*args: Any) -> None:
            raise HarnessAssertionError(
                f"assert_unreached: {description} Reached unreachable code"
            )

        return unreached


@dataclass(kw_only=True)
class HarnessTestsStatus:
    """Minimal testharness.js TestsStatus object."""

    OK = 0
    ERROR = 1
    TIMEOUT = 2

    status: int = 0
    message: str | None = None


def assert_true(actual: Any, description: str) -> None:
    if actual is not True:
        raise HarnessAssertionError(
            f"assert_true: {description} expected true got {actual!r}"
        )


def assert_equals(actual: Any, expected: Any, description: str) -> None:
    if actual != expected:
        raise HarnessAssertionError(
            f"assert_equals: {description} expected {expected!r} but got {actual!r}"
        )


class FakeHarness:
    """Records setup calls and drives result and completion callbacks."""

    def __init__(self) -> None:
        self.window: Window = {}
        self.tests: list[HarnessTest] = []
        self.setup_calls: list[tuple[Any, ...]] = []
        self._result_callbacks: list[Callable[[Any], None]] = []
        self._completion_callbacks: list[Callable[[Any, Any], None]] = []

    def install(self, window: Window) -> None:
        self.window = window
        window.update(
            setup=self.setup,
            add_result_callback=self._result_callbacks.append,
            add_completion_callback=self._completion_callbacks.append,
            assert_true=assert_true,
            assert_equals=assert_equals,
            AssertionError=HarnessAssertionError,
            Error=PageError,
            TypeError=PageTypeError,
            RangeError=PageRangeError,
        )

    def setup(self, *args: Any, **kwargs: Any) -> None:
        self.setup_calls.append((*args, kwargs))

    def report(
        self,
        name: str,
        status: int = HarnessTest.PASS,
        message: str | None = None,
        stack: str | None = None,
    ) -> HarnessTest:
        """Record a finished test and notify result callbacks."""
        test = HarnessTest(name=name, status=status, message=message, stack=stack)
        self.tests.append(test)
        for callback in self._result_callbacks:
            callback(test)
        return test

    def test(self, name: str, func: Callable[[HarnessTest], Any]) -> HarnessTest:
        """Run func like testharness.js ``test()`` and report its status."""
        current = HarnessTest(name=name)
        try:
            func(current)
        except HarnessAssertionError as e:
            return self.report(name, HarnessTest.FAIL, str(e), "stack")
        return self.report(name)

    async def promise_test(
        self, name: str, func: Callable[[HarnessTest], Awaitable[Any]]
    ) -> HarnessTest:
        current = HarnessTest(name=name)
        try:
            await func(current)
        except HarnessAssertionError as e:
            return self.report(name, HarnessTest.FAIL, str(e), "stack")
        return self.report(name)

    def done(self, status: int = HarnessTestsStatus.OK, message: str | None = None) -> None:
        """Notify completion callbacks, as the harness does once all tests ran."""
        harness_status = HarnessTestsStatus(status=status, message=message)
        tests: Sequence[HarnessTest] = list(self.tests)
        for callback in self._completion_callbacks:
            callback(tests, harness_status)


@dataclass(kw_only=True)
class Page:
    """Handle given to page scripts."""

    url: str
    window: Window
    harness: FakeHarness
    options: LoadOptions

    def uncaught(self, message: str, stack: str | None = None) -> None:
        """Report an exception that escaped the harness."""
        self.options.console.on_page_error(
            PageErrorEvent(type=UNHANDLED_EXCEPTION, message=message, stack=stack)
        )

    def console(self, level: str, message: str) -> None:
        self.options.console.on_console_message(level, message)


type PageScript = Callable[[Page], Awaitable[None] | None]


@dataclass(kw_only=True)
class FakeEnvironment:
    """Loaded fake page."""

    window: Window = field(default_factory=dict)
    closed: bool = False
    task: "asyncio.Task[None] | None" = None

    def close(self) -> None:
        self.closed = True


@dataclass(kw_only=True)
class ScriptedLoader:
    """EnvironmentLoader that runs a Python script as the page's content."""

    script: PageScript
    load_reporter: bool = True
    loads: list[tuple[str, LoadOptions]] = field(default_factory=list)
    environments: list[FakeEnvironment] = field(default_factory=list)
    harnesses: list[FakeHarness] = field(default_factory=list)

    async def load(self, url: str, options: LoadOptions) -> FakeEnvironment:
        self.loads.append((url, options))

        environment = FakeEnvironment()
        harness = FakeHarness()
        if options.before_parse is not None:
            options.before_parse(environment.window)
        harness.install(environment.window)

        page = Page(url=url, window=environment.window, harness=harness, options=options)
        environment.task = asyncio.ensure_future(self._run_page(page))

        self.environments.append(environment)
        self.harnesses.append(harness)
        return environment

    async def _run_page(self, page: Page) -> None:
        if self.load_reporter:
            reporter_url = str(URL(page.url).with_path(REPORTER_PATH))
            stub = await page.options.fetcher.fetch(reporter_url, {})
            if stub == REPORTER_STUB:
                page.window["shimTest"]()

        result = self.script(page)
        if inspect.isawaitable(result):
            await result
