"""Contracts of the DOM-emulation environment the runner drives.

The environment itself (DOM, HTML parsing, script execution) lives outside this
package. Implementations expose a page loader that honours ``LoadOptions`` and
returns an ``Environment`` with a mutable global scope.
"""

from collections.abc import Callable, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from wpt_runner.fetching import Fetcher

type Window = MutableMapping[str, Any]

UNHANDLED_EXCEPTION = "unhandled exception"


@dataclass(frozen=True, kw_only=True)
class PageErrorEvent:
    """Error reported by the environment outside the harness result stream."""

    type: str
    message: str
    stack: str | None = None


class ConsoleListener(Protocol):
    """Receives console output and error events from a page."""

    def on_page_error(self, event: PageErrorEvent) -> None:
        """Handle an environment-level error (e.g. an uncaught script error)."""

    def on_console_message(self, level: str, message: str) -> None:
        """Handle a console.* call made by page scripts."""


@dataclass(frozen=True, kw_only=True)
class LoadOptions:
    """Options passed to ``EnvironmentLoader.load``."""

    console: ConsoleListener
    fetcher: Fetcher
    scripting_enabled: bool = True
    pretend_to_be_visual: bool = True
    storage_quota: int | None = None
    # Called with the page's global scope before any page script runs.
    before_parse: Callable[[Window], None] | None = field(default=None, repr=False)


class Environment(Protocol):
    """A loaded page."""

    @property
    def window(self) -> Window:
        """Mutable global scope of the page."""

    def close(self) -> None:
        """Tear the page down."""


class EnvironmentLoader(Protocol):
    """Loads pages into fresh environments."""

    async def load(self, url: str, options: LoadOptions) -> Environment:
        """Load url and resolve once the page has loaded."""
