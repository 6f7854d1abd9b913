"""Assertion helpers that work across the page/controller realm boundary.

Exceptions raised by page script are instances of the page's own constructors,
so identity or isinstance checks against constructors handed over from another
realm are unreliable. The replacements below compare constructor names
instead, walking named parent links to decide whether a constructor is an
Error subtype.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from wpt_runner.environments.base import Window
from wpt_runner.state import RunState

log = logging.getLogger(__name__)

ERROR_ROOT_NAME = "Error"


class ThrownValue(Exception):
    """Wraps a non-exception value thrown by page script (``throw 42``)."""

    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value


def _name_of(obj: Any) -> str | None:
    name = getattr(obj, "name", None)
    if isinstance(name, str):
        return name
    return getattr(obj, "__name__", None)


def _error_name(value: Any) -> str:
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name
    return type(value).__name__


def _prototype_of(obj: Any) -> Any:
    if isinstance(obj, type):
        return obj.__base__
    return getattr(obj, "__proto__", None)


def _type_name(value: Any) -> str:
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"


def is_error_subtype(constructor: Any) -> bool:
    """Return True if a link named "Error" is found on constructor's parent chain."""
    obj = constructor
    while obj is not None:
        if callable(obj) and _name_of(obj) == ERROR_ROOT_NAME:
            return True
        obj = _prototype_of(obj)
    return False


def assert_throws_impl(
    window: Window,
    constructor: Any,
    func: Callable[[], Any],
    description: str | None,
    assertion_type: str,
) -> None:
    """Check that func throws an instance of the constructor named like constructor.

    Failures are reported through the page's own ``assert_true`` and
    ``assert_equals`` so they reach the harness result stream.
    """
    assert_true = window["assert_true"]
    assert_equals = window["assert_equals"]
    assertion_error = window.get("AssertionError", AssertionError)
    prefix = f"{assertion_type}: {description}"

    try:
        func()
    except Exception as e:
        if isinstance(e, assertion_error):
            raise

        value = e.value if isinstance(e, ThrownValue) else e

        # Sanity checks on the thrown value.
        assert_true(
            _type_name(value) == "object",
            f"{prefix}: {func} threw {value} with type {_type_name(value)}, "
            "not an object",
        )
        assert_true(value is not None, f"{prefix}: {func} threw null, not an object")

        # And on the constructor we were handed.
        assert_true(callable(constructor), f"{prefix}: {constructor} is not a constructor")
        assert_true(
            is_error_subtype(constructor),
            f"{prefix}: {constructor} is not an Error subtype",
        )

        expected_name = _name_of(constructor)
        actual_name = _error_name(value)
        assert_equals(
            actual_name,
            expected_name,
            f"{prefix}: {func} threw {value} ({actual_name}) "
            f"expected instance of {expected_name}",
        )
    else:
        assert_true(False, f"{prefix}: {func} did not throw")


def _allows_uncaught_exceptions(args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> bool:
    return any(
        isinstance(arg, Mapping) and bool(arg.get("allow_uncaught_exception"))
        for arg in (*args, kwargs)
    )


def install_shim(window: Window, state: RunState) -> None:
    """Replace setup, assert_throws_js and promise_rejects_js on window.

    Must run after the harness has been loaded into the page, since the
    replacements wrap or use harness primitives.
    """
    original_setup = window["setup"]

    def setup(*args: Any, **kwargs: Any) -> Any:
        if _allows_uncaught_exceptions(args, kwargs):
            log.debug("Page allows uncaught exceptions")
            state.allow_unhandled_exceptions = True
        return original_setup(*args, **kwargs)

    def assert_throws_js(
        constructor: Any, func: Callable[[], Any], description: str | None = None
    ) -> None:
        assert_throws_impl(window, constructor, func, description, "assert_throws_js")

    def promise_rejects_js(
        t: Any,
        expected: Any,
        promise: Awaitable[Any],
        description: str | None = None,
    ) -> "asyncio.Future[None]":
        async def check() -> None:
            try:
                value = await promise
            except Exception as e:
                reason = e

                def rethrow() -> None:
                    raise reason

                assert_throws_impl(
                    window, expected, rethrow, description, "promise_rejects_js"
                )
            else:
                t.unreached_func(f"Should have rejected: {description}")(value)

        return asyncio.ensure_future(check())

    window["setup"] = setup
    window["assert_throws_js"] = assert_throws_js
    window["promise_rejects_js"] = promise_rejects_js
