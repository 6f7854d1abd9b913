"""Exceptions raised by the runner."""


class UnexpectedStatusError(ValueError):
    """Raised when the harness reports a status outside the known set.

    This is a broken contract with the in-page harness, never a test failure.
    """


class RunRejectedError(AssertionError):
    """Raised by a registered test whose run was rejected."""


class FetchError(RuntimeError):
    """Raised when a resource cannot be fetched."""

    def __init__(self, url: str, status: int, reason: str | None = None) -> None:
        super().__init__(f"Failed to fetch {url}: {status} {reason or ''}".rstrip())
        self.url = url
        self.status = status
