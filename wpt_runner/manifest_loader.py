"""Load the to-run manifest and classify recorded reasons."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from wpt_runner.models.expectations import ReasonCategory, TestManifest

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ReasonClassifier:
    """Maps a recorded reason to ``expect-fail`` or ``expect-pass``."""

    expect_fail_reasons: frozenset[str]

    @classmethod
    def from_reasons(cls, reasons: Iterable[str]) -> "ReasonClassifier":
        return cls(expect_fail_reasons=frozenset(reasons))

    def __call__(self, reason: str | None) -> ReasonCategory:
        if reason is not None and reason in self.expect_fail_reasons:
            return "expect-fail"
        return "expect-pass"


async def load_manifest(path: Path) -> TestManifest:
    """Load and validate a to-run manifest.

    Raises:
        FileNotFoundError: If the manifest does not exist
        ValueError: If the file is empty, not YAML, or fails validation

    """
    if not path.is_file():
        raise FileNotFoundError(f"Manifest not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty manifest: {path}")

    try:
        manifest = TestManifest.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid manifest {path}: {e}") from e

    log.info("Loaded %d test(s) from %s", len(manifest.tests), path)
    return manifest
