"""Loading of DOM environments from entry points."""

from importlib.metadata import entry_points
from typing import Any

from wpt_runner.environments.manifest import EnvironmentManifest

ENTRY_POINT_GROUP = "wpt_runner.environments"


class EnvironmentNotFoundError(Exception):
    """Raised when no environment is registered under a key."""


def load_environment_manifest(key: str) -> EnvironmentManifest[Any]:
    """Load an environment manifest by key.

    Args:
        key: The environment key as registered under the
             ``wpt_runner.environments`` entry-point group

    Returns:
        The environment manifest instance

    Raises:
        EnvironmentNotFoundError: If no environment with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: EnvironmentManifest[Any] = entry.load()
            return manifest

    available = sorted(e.name for e in entries)
    raise EnvironmentNotFoundError(
        f"Environment '{key}' not found. Available environments: {available}"
    )
