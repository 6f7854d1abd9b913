"""CLI entry point for running web-platform-tests in a DOM environment."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from wpt_runner.environments.loading import load_environment_manifest
from wpt_runner.fetching import AiohttpFetcher
from wpt_runner.manifest_loader import ReasonClassifier, load_manifest
from wpt_runner.models.result import TestCaseResult
from wpt_runner.runner import DEFAULT_TIMEOUT, TestSuite, create_register

STATUS_SYMBOLS = {
    "success": "✅",
    "failure": "❌",
    "error": "❗",
    "timeout": "⏱️",
}


def log_results_summary(
    log: logging.Logger, results: Sequence[TestCaseResult]
) -> None:
    """Log a formatted summary of test results."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for result in results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s %s: %s (%.2fs)",
            symbol,
            result.title,
            result.status,
            result.duration,
        )
        if result.message:
            log.info("  Message: %s", result.message)


def format_output(results: Sequence[TestCaseResult]) -> dict[str, Any]:
    """Format test results for JSON output."""
    all_results = [
        {
            "title": result.title,
            "status": result.status,
            "duration": result.duration,
            "message": result.message,
        }
        for result in results
    ]

    return {
        "total": len(all_results),
        "passed": sum(1 for r in all_results if r["status"] == "success"),
        "failed": sum(1 for r in all_results if r["status"] == "failure"),
        "errors": sum(1 for r in all_results if r["status"] == "error"),
        "timeouts": sum(1 for r in all_results if r["status"] == "timeout"),
        "results": all_results,
    }


async def run(
    environment_key: str,
    environment_config_json: str,
    manifest_path: Path,
    url_prefix: str,
    resources_root: Path,
    concurrency: int = 4,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str | None = None,
) -> int:
    """Run the tests listed in a manifest and return exit code."""
    log = logging.getLogger("wpt_runner")

    log.info("Loading environment: %s", environment_key)
    env_manifest = load_environment_manifest(environment_key)

    config_dict = json.loads(environment_config_json)
    config = env_manifest.config_cls(**config_dict)

    manifest = await load_manifest(manifest_path)
    if not manifest.tests:
        log.info("No tests listed in %s", manifest_path)
        print(json.dumps(format_output([])))
        return 0

    resolve_reason = ReasonClassifier.from_reasons(manifest.expect_fail_reasons)
    suite = TestSuite()

    async with (
        env_manifest.loader_factory(config) as loader,
        AiohttpFetcher.from_config(user_agent=user_agent) as base_fetcher,
    ):
        register = create_register(
            lambda: url_prefix,
            suite=suite,
            loader=loader,
            base_fetcher=base_fetcher,
            resources_root=resources_root,
            resolve_reason=resolve_reason,
            timeout=timeout,
        )
        for entry in manifest.tests:
            register(entry.path, entry.title, entry.expect_fail(resolve_reason))

        results = await suite.run_all(concurrency=concurrency)

    log_results_summary(log, results)
    print(json.dumps(format_output(results), indent=2))

    return 0 if all(result.status == "success" for result in results) else 1


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run web-platform-tests inside a DOM environment"
    )
    parser.add_argument(
        "--environment",
        required=True,
        help="Environment key registered under the wpt_runner.environments group",
    )
    parser.add_argument(
        "--environment-config",
        default="{}",
        help="JSON configuration for the environment",
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        required=True,
        help="Path to the to-run manifest (YAML)",
    )
    parser.add_argument(
        "--url-prefix",
        required=True,
        help="URL the test paths are appended to (e.g. http://web-platform.test:8000/)",
    )
    parser.add_argument(
        "--resources-root",
        type=Path,
        required=True,
        help="Directory holding the local copy of /resources/",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=4,
        help="Number of tests to run at the same time",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Per-test timeout in seconds",
    )
    parser.add_argument(
        "--user-agent",
        default=None,
        help="User-Agent header sent when fetching test resources",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(
        run(
            environment_key=args.environment,
            environment_config_json=args.environment_config,
            manifest_path=args.manifest,
            url_prefix=args.url_prefix,
            resources_root=args.resources_root.resolve(),
            concurrency=args.concurrency,
            timeout=args.timeout,
            user_agent=args.user_agent,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
