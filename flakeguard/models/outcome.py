"""Outcomes reported by a test executor for one execution round."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from flakeguard.identity import TestIdentity

type OutcomeStatus = Literal["pass", "fail", "skipped"]


@dataclass(frozen=True, kw_only=True)
class TestOutcome:
    """Result of executing (or declining to execute) one test.

    ``skipped`` covers tests the executor discovered but did not run, whether
    filtered out by a name pattern, skipped by the test itself, or listed in
    the selection's skip set.
    """

    __test__ = False

    filename: str
    name: Sequence[str]
    status: OutcomeStatus
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: int | None = None
    error: str = ""
    stdout: str = ""
    stderr: str = ""

    @property
    def identity(self) -> TestIdentity:
        """Normalized identity of the test."""
        return TestIdentity(filename=self.filename, name=tuple(self.name))

    @property
    def failure_text(self) -> str:
        """Error text followed by captured stdout and stderr."""
        parts = (self.error, self.stdout, self.stderr)
        return "\n".join(part for part in parts if part)


@dataclass(frozen=True, kw_only=True)
class TestFileResult:
    """All outcomes for a single test file within one round.

    ``exec_error`` is set when the file itself could not be loaded or run; such
    a file reports no outcomes.
    """

    __test__ = False

    filename: str
    outcomes: Sequence[TestOutcome] = field(default_factory=tuple)
    exec_error: str | None = None
