"""Run summary counts produced by the aggregator."""

from dataclasses import dataclass
from typing import Literal

type TestStatus = Literal["passed", "failed", "flaky", "quarantined", "skipped"]
type SuiteStatus = Literal["passed", "failed", "quarantined", "skipped"]


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Counts of tests and suites (files) by terminal classification."""

    passed_tests: int = 0
    passed_tests_with_independent_failures: int = 0
    failed_tests: int = 0
    flaky_tests: int = 0
    quarantined_tests: int = 0
    skipped_tests: int = 0
    passed_suites: int = 0
    passed_suites_with_independent_failures: int = 0
    failed_suites: int = 0
    quarantined_suites: int = 0
    skipped_suites: int = 0
    errored_suites: int = 0

    @property
    def total_tests(self) -> int:
        """Number of distinct tests seen during the run."""
        return (
            self.passed_tests
            + self.failed_tests
            + self.flaky_tests
            + self.quarantined_tests
            + self.skipped_tests
        )

    @property
    def total_suites(self) -> int:
        """Number of distinct test files seen during the run."""
        return (
            self.passed_suites
            + self.failed_suites
            + self.quarantined_suites
            + self.skipped_suites
        )

    @property
    def exit_code(self) -> int:
        """Process exit status: non-zero only for unresolved plain failures.

        Quarantined and skipped tests never fail the run; a file that could not
        be executed at all does.
        """
        return 1 if self.failed_tests > 0 or self.errored_suites > 0 else 0
