"""CLI entry point running a test executor under flaky-test management."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import asdict
from pathlib import Path
from typing import Any

from flakeguard.aggregator import summarize
from flakeguard.api.client import ApiClient
from flakeguard.config import ConfigError, FlakeGuardConfig, load_config
from flakeguard.coordinator import RetryCoordinator
from flakeguard.executors.base import TestExecutor
from flakeguard.executors.loading import ExecutorNotFoundError, load_executor_manifest
from flakeguard.git import GitInfo, resolve_git_info
from flakeguard.manifest import fetch_manifest
from flakeguard.models.summary import RunSummary
from flakeguard.quarantine import QuarantineResolver
from flakeguard.upload import UploadPipeline

type GitResolver = Callable[[Mapping[str, str], bool], Awaitable[GitInfo]]


def log_run_summary(
    log: logging.Logger, summary: RunSummary, run_url: str | None = None
) -> None:
    """Log a formatted table of test and file counts."""
    log.info("=" * 80)
    log.info("Test Run Summary:")
    log.info("=" * 80)
    log.info("%-24s %8s %8s", "", "Tests", "Files")
    rows = [
        ("Passed", summary.passed_tests, summary.passed_suites),
        (
            "  with indep. failures",
            summary.passed_tests_with_independent_failures,
            summary.passed_suites_with_independent_failures,
        ),
        ("Failed", summary.failed_tests, summary.failed_suites),
        ("Flaky", summary.flaky_tests, None),
        ("Quarantined", summary.quarantined_tests, summary.quarantined_suites),
        ("Skipped", summary.skipped_tests, summary.skipped_suites),
        ("Errored", None, summary.errored_suites),
        ("Total", summary.total_tests, summary.total_suites),
    ]
    for label, tests, files in rows:
        log.info(
            "%-24s %8s %8s",
            label,
            "-" if tests is None else tests,
            "-" if files is None else files,
        )
    if run_url:
        log.info("Run URL: %s", run_url)


def format_output(summary: RunSummary, run_url: str | None = None) -> dict[str, Any]:
    """Format the run summary for JSON output."""
    return {
        **asdict(summary),
        "total_tests": summary.total_tests,
        "total_suites": summary.total_suites,
        "exit_code": summary.exit_code,
        "run_url": run_url,
    }


def parse_executor_config(raw: str) -> dict[str, Any]:
    """Decode the ``--executor-config`` JSON object.

    Raises:
        ConfigError: If ``raw`` is not a JSON object

    """
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid executor configuration JSON: {e}") from e
    if not isinstance(value, dict):
        raise ConfigError(
            f"Executor configuration must be a JSON object, got {type(value).__name__}"
        )
    return value


async def run(
    executor_key: str,
    executor_config_json: str,
    environ: Mapping[str, str],
    config_path: Path | None = None,
    test_name_pattern: str | None = None,
    failure_retries: int | None = None,
    git_resolver: GitResolver = resolve_git_info,
) -> int:
    """Run tests under flaky-test management and return exit code."""
    log = logging.getLogger("flakeguard")

    config = load_config(config_path, environ, failure_retries=failure_retries)

    log.info("Loading executor: %s", executor_key)
    manifest = load_executor_manifest(executor_key)
    executor_config = parse_executor_config(executor_config_json)

    watchdog = asyncio.timeout(config.timeout)
    try:
        async with watchdog:
            executor_cm = manifest.open(executor_config)
            if not config.enabled:
                log.info("Flaky test management is disabled")
                async with executor_cm as executor:
                    return await run_unmanaged(log, executor, test_name_pattern)
            return await run_managed(
                log, config, executor_cm, environ, test_name_pattern, git_resolver
            )
    except TimeoutError:
        # Only the watchdog expiring ends the run quietly.
        if not watchdog.expired():
            raise
        log.error("Test run timed out after %s second(s)", config.timeout)
        return 1


async def run_unmanaged(
    log: logging.Logger, executor: TestExecutor, test_name_pattern: str | None
) -> int:
    """Run every test once without quarantine, retries or upload."""
    coordinator = RetryCoordinator(
        executor=executor,
        resolver=QuarantineResolver.create(None, "no_quarantine"),
        failure_retries=0,
        name_pattern=test_name_pattern,
    )
    summary = summarize(await coordinator.run())
    log_run_summary(log, summary)
    print(json.dumps(format_output(summary), indent=2))
    return summary.exit_code


async def run_managed(
    log: logging.Logger,
    config: FlakeGuardConfig,
    executor_cm: AbstractAsyncContextManager[TestExecutor],
    environ: Mapping[str, str],
    test_name_pattern: str | None,
    git_resolver: GitResolver,
) -> int:
    """Run tests with retries and quarantine, then report the results.

    The manifest is fetched while the executor is being set up.
    """
    assert config.test_suite_id is not None
    independence_check = config.independence_check()

    async with ApiClient.from_config(config) as client:
        manifest_task = asyncio.create_task(
            fetch_manifest(client, config.test_suite_id)
        )
        try:
            async with executor_cm as executor:
                resolver = QuarantineResolver.create(
                    await manifest_task, config.quarantine_mode
                )
                coordinator = RetryCoordinator(
                    executor=executor,
                    resolver=resolver,
                    failure_retries=config.failure_retries,
                    independence_check=independence_check,
                    name_pattern=test_name_pattern,
                )
                results = await coordinator.run()
        finally:
            manifest_task.cancel()
        summary = summarize(results)

        run_url: str | None = None
        if config.upload_results:
            git_info = await git_resolver(environ, config.git_auto_detect)
            pipeline = UploadPipeline(client=client, test_suite_id=config.test_suite_id)
            run_url = await pipeline.upload(results, git_info.branch, git_info.commit)
        else:
            log.info("Result upload is disabled")

    log_run_summary(log, summary, run_url)
    print(json.dumps(format_output(summary, run_url), indent=2))
    return summary.exit_code


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run tests with retries and quarantine of flaky tests"
    )
    parser.add_argument(
        "--executor",
        required=True,
        help="Executor key (e.g., scripted)",
    )
    parser.add_argument(
        "--executor-config",
        default="{}",
        help="JSON configuration for the executor",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML or JSON config file",
    )
    parser.add_argument(
        "--test-name-pattern",
        default=None,
        help="Only run tests whose full name matches this regular expression",
    )
    parser.add_argument(
        "--failure-retries",
        type=int,
        default=None,
        help="Number of times to retry failed tests (overrides config)",
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

    try:
        exit_code = asyncio.run(
            run(
                executor_key=args.executor,
                executor_config_json=args.executor_config,
                environ=os.environ,
                config_path=args.config,
                test_name_pattern=args.test_name_pattern,
                failure_retries=args.failure_retries,
            )
        )
    except (ConfigError, ExecutorNotFoundError) as e:
        logging.getLogger("flakeguard").error("%s", e)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
