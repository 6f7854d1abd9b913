"""Environment manifest definition for the plugin system."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from wpt_runner.environments.base import EnvironmentLoader


@dataclass(frozen=True, kw_only=True)
class EnvironmentManifest[ConfigT: BaseModel]:
    """Manifest describing an environment plugin.

    Holds the configuration class and a factory that opens a loader for the
    lifetime of a suite run.
    """

    config_cls: type[ConfigT]
    loader_factory: Callable[[ConfigT], AbstractAsyncContextManager[EnvironmentLoader]]
