"""Retry round coordinator driving successive execution rounds."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from flakeguard.executors.base import TestExecutor, TestSelection
from flakeguard.identity import TestIdentity
from flakeguard.independence import FailureContext, IndependenceCheck, classify
from flakeguard.models.outcome import TestFileResult, TestOutcome
from flakeguard.models.record import (
    AttemptRecord,
    AttemptResult,
    RunResults,
    SuiteRecord,
    TestRunRecord,
)
from flakeguard.quarantine import QuarantineResolver

log = logging.getLogger(__name__)

type CoordinatorState = Literal["selecting", "executing", "evaluating", "done"]


@dataclass(kw_only=True)
class AttemptLedger:
    """Mutable attempt history of a run, owned by a single coordinator.

    Files and tests keep the order in which the executor first reported them.
    """

    files: dict[str, dict[TestIdentity, list[AttemptRecord]]] = field(
        default_factory=dict
    )
    exec_errors: dict[str, str] = field(default_factory=dict)

    def attempts(self, identity: TestIdentity) -> list[AttemptRecord]:
        """Attempt list of ``identity``, registering the test on first sight."""
        tests = self.files.setdefault(identity.filename, {})
        return tests.setdefault(identity, [])

    def snapshot(self, start_time: datetime, end_time: datetime) -> RunResults:
        """Freeze the history into immutable run results."""
        return RunResults(
            start_time=start_time,
            end_time=end_time,
            suites=[
                SuiteRecord(
                    filename=filename,
                    tests=tuple(
                        TestRunRecord(identity=identity, attempts=tuple(attempts))
                        for identity, attempts in tests.items()
                    ),
                    exec_error=self.exec_errors.get(filename),
                )
                for filename, tests in self.files.items()
            ],
        )


@dataclass(frozen=True, kw_only=True)
class RetryCoordinator:
    """Runs execution rounds until every failing test passes or runs out of retries.

    Each round is a barrier: the next selection is only computed once the
    executor has returned the outcomes of the whole current selection. A test
    is retried while its latest attempt failed (quarantined or not) and it has
    used fewer than ``failure_retries + 1`` attempts.
    """

    executor: TestExecutor
    resolver: QuarantineResolver
    failure_retries: int = 2
    independence_check: IndependenceCheck | None = None
    name_pattern: str | None = None

    @property
    def max_attempts(self) -> int:
        """Total attempts any single test may use."""
        return self.failure_retries + 1

    async def run(self) -> RunResults:
        """Drive rounds to completion and return the finished history.

        Raises:
            Exception: Whatever the independence check raises, unchanged

        """
        ledger = AttemptLedger()
        start_time = datetime.now(UTC)
        state: CoordinatorState = "selecting"
        round_index = 0
        retry: frozenset[TestIdentity] = frozenset()
        selection: TestSelection | None = None
        file_results: Sequence[TestFileResult] = ()

        while True:
            match state:
                case "selecting":
                    selection = self._select(round_index, retry)
                    state = "executing" if selection is not None else "done"
                case "executing":
                    assert selection is not None
                    file_results = await self.executor.run_tests(selection)
                    state = "evaluating"
                case "evaluating":
                    assert selection is not None
                    retry = await self._evaluate(ledger, selection, file_results)
                    round_index += 1
                    state = "selecting"
                case "done":
                    self._log_unresolved_failures(ledger)
                    return ledger.snapshot(start_time, datetime.now(UTC))

    def _select(
        self, round_index: int, retry: frozenset[TestIdentity]
    ) -> TestSelection | None:
        if round_index == 0:
            return TestSelection(
                attempt=0,
                skip=self.resolver.tests_to_skip(),
                name_pattern=self.name_pattern,
            )
        if not retry or round_index >= self.max_attempts:
            return None

        remaining = self.max_attempts - round_index - 1
        log.info(
            "Retrying %d failed test(s) from %d file(s) -- %d %s remaining",
            len(retry),
            len({identity.filename for identity in retry}),
            remaining,
            "retry" if remaining == 1 else "retries",
        )
        return TestSelection(
            attempt=round_index, tests=retry, name_pattern=self.name_pattern
        )

    async def _evaluate(
        self,
        ledger: AttemptLedger,
        selection: TestSelection,
        file_results: Sequence[TestFileResult],
    ) -> frozenset[TestIdentity]:
        """Record the round's outcomes and return the tests to retry next."""
        selected = selection.tests
        retry: set[TestIdentity] = set()
        reported: set[TestIdentity] = set()

        for file_result in file_results:
            if file_result.exec_error is not None:
                log.error(
                    "Failed to run test file %s: %s",
                    file_result.filename,
                    file_result.exec_error,
                )
                ledger.files.setdefault(file_result.filename, {})
                ledger.exec_errors.setdefault(
                    file_result.filename, file_result.exec_error
                )
                continue
            if selected is None:
                ledger.files.setdefault(file_result.filename, {})

            for outcome in file_result.outcomes:
                identity = outcome.identity
                if selected is not None and identity not in selected:
                    continue
                reported.add(identity)
                attempts = ledger.attempts(identity)
                if outcome.status == "skipped" or self.resolver.resolve(identity).skip:
                    continue

                attempt = await self._record_attempt(identity, outcome, len(attempts))
                attempts.append(attempt)
                if attempt.is_failure and len(attempts) < self.max_attempts:
                    retry.add(identity)

        if selected is not None and (missing := selected - reported):
            log.warning(
                "Executor reported no outcome for %d selected test(s); "
                "they will not be retried",
                len(missing),
            )
        return frozenset(retry)

    def _log_unresolved_failures(self, ledger: AttemptLedger) -> None:
        for tests in ledger.files.values():
            for identity, attempts in tests.items():
                if not attempts or attempts[-1].result != "fail":
                    continue
                log.debug(
                    "%s failed after %d attempt(s); last failure:\n%s",
                    identity,
                    len(attempts),
                    attempts[-1].failure_text,
                )

    async def _record_attempt(
        self, identity: TestIdentity, outcome: TestOutcome, sequence_index: int
    ) -> AttemptRecord:
        result: AttemptResult = (
            "pass"
            if outcome.status == "pass"
            else self.resolver.resolve(identity).treat_failure_as
        )
        independent = False
        if result != "pass" and self.independence_check is not None:
            independent = await classify(
                self.independence_check,
                FailureContext(
                    filename=identity.filename,
                    name=identity.name,
                    attempt=sequence_index,
                    failure=outcome.failure_text,
                ),
            )
        return AttemptRecord(
            sequence_index=sequence_index,
            result=result,
            start_time=outcome.start_time,
            end_time=outcome.end_time,
            duration_ms=outcome.duration_ms,
            failure_reason="independent" if independent else None,
            failure_text=outcome.failure_text if result != "pass" else "",
        )
