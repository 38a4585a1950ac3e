"""Per-test attempt history accumulated across retry rounds."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from flakeguard.identity import TestIdentity

type AttemptResult = Literal["pass", "fail", "quarantined"]
type FailureReason = Literal["independent"]


@dataclass(frozen=True, kw_only=True)
class AttemptRecord:
    """One execution of a single test.

    Captured output is kept only as classifier input and is never uploaded.
    """

    sequence_index: int
    result: AttemptResult
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: int | None = None
    failure_reason: FailureReason | None = None
    failure_text: str = field(default="", repr=False)

    @property
    def is_failure(self) -> bool:
        """Whether the test body failed, quarantined or not."""
        return self.result != "pass"

    @property
    def is_independent_failure(self) -> bool:
        """Whether the failure was attributed to the environment."""
        return self.failure_reason == "independent"


@dataclass(frozen=True, kw_only=True)
class TestRunRecord:
    """All attempts of one distinct test during a run.

    A record with no attempts is a test that was skipped entirely.
    """

    __test__ = False

    identity: TestIdentity
    attempts: tuple[AttemptRecord, ...] = ()

    @property
    def skipped(self) -> bool:
        """True when the test never executed."""
        return not self.attempts

    @property
    def last_attempt(self) -> AttemptRecord | None:
        """Most recent attempt, if any."""
        return self.attempts[-1] if self.attempts else None


@dataclass(frozen=True, kw_only=True)
class SuiteRecord:
    """Tests of one file, plus a file-level execution error if it never ran."""

    filename: str
    tests: tuple[TestRunRecord, ...] = ()
    exec_error: str | None = None


@dataclass(frozen=True, kw_only=True)
class RunResults:
    """Immutable snapshot of a finished run handed to aggregation and upload."""

    start_time: datetime
    end_time: datetime
    suites: Sequence[SuiteRecord]

    @property
    def test_runs(self) -> Sequence[TestRunRecord]:
        """Every test record across all suites, in suite order."""
        return [test for suite in self.suites for test in suite.tests]
