"""DOM-emulation environment contracts and plugin loading."""

from wpt_runner.environments.base import (
    UNHANDLED_EXCEPTION,
    ConsoleListener,
    Environment,
    EnvironmentLoader,
    LoadOptions,
    PageErrorEvent,
    Window,
)

__all__ = [
    "UNHANDLED_EXCEPTION",
    "ConsoleListener",
    "Environment",
    "EnvironmentLoader",
    "LoadOptions",
    "PageErrorEvent",
    "Window",
]
