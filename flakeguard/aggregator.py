"""Folding attempt histories into per-test, per-file and whole-run results."""

from collections import Counter
from collections.abc import Iterable

from flakeguard.models.record import RunResults, SuiteRecord, TestRunRecord
from flakeguard.models.summary import RunSummary, SuiteStatus, TestStatus


def classify_test(record: TestRunRecord) -> TestStatus:
    """Terminal status of a single test.

    Failures whose every occurrence was classified as independent do not make
    a test flaky: a test that only failed for environmental reasons and then
    passed is ``passed``.
    """
    attempts = record.attempts
    if not attempts:
        return "skipped"
    if any(attempt.result == "quarantined" for attempt in attempts):
        return "quarantined"
    if attempts[-1].result != "pass":
        return "failed"
    if any(
        attempt.result == "fail" and not attempt.is_independent_failure
        for attempt in attempts
    ):
        return "flaky"
    return "passed"


def has_independent_failures(record: TestRunRecord) -> bool:
    """Whether any attempt of the test failed for test-independent reasons."""
    return any(attempt.is_independent_failure for attempt in record.attempts)


def classify_suite(suite: SuiteRecord) -> SuiteStatus:
    """Status of a test file derived from its tests.

    A file that could not be executed counts as failed.
    """
    if suite.exec_error is not None:
        return "failed"
    statuses = {classify_test(test) for test in suite.tests}
    if statuses & {"failed", "flaky"}:
        return "failed"
    if "quarantined" in statuses:
        return "quarantined"
    if statuses <= {"skipped"}:
        return "skipped"
    return "passed"


def _passed_with_independent_failures(tests: Iterable[TestRunRecord]) -> int:
    """Tests that ended up passing after at least one independent failure."""
    return sum(
        1
        for test in tests
        if classify_test(test) in {"passed", "flaky"}
        and has_independent_failures(test)
    )


def summarize(results: RunResults) -> RunSummary:
    """Count tests and files by terminal status.

    Args:
        results: Finished run history

    Returns:
        Summary whose ``exit_code`` decides the process exit status

    """
    tests = results.test_runs
    test_counts = Counter(classify_test(test) for test in tests)
    suite_statuses = [(suite, classify_suite(suite)) for suite in results.suites]
    suite_counts = Counter(status for _, status in suite_statuses)

    return RunSummary(
        passed_tests=test_counts["passed"],
        passed_tests_with_independent_failures=_passed_with_independent_failures(
            tests
        ),
        failed_tests=test_counts["failed"],
        flaky_tests=test_counts["flaky"],
        quarantined_tests=test_counts["quarantined"],
        skipped_tests=test_counts["skipped"],
        passed_suites=suite_counts["passed"],
        passed_suites_with_independent_failures=sum(
            1
            for suite, status in suite_statuses
            if status == "passed"
            and any(has_independent_failures(test) for test in suite.tests)
        ),
        failed_suites=suite_counts["failed"],
        quarantined_suites=suite_counts["quarantined"],
        skipped_suites=suite_counts["skipped"],
        errored_suites=sum(
            1 for suite in results.suites if suite.exec_error is not None
        ),
    )
