"""Abstract base class for test executors."""

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field

from flakeguard.identity import TestIdentity
from flakeguard.models.outcome import TestFileResult


@dataclass(frozen=True, kw_only=True)
class TestSelection:
    """The tests an executor must run in one round.

    ``tests`` is ``None`` on the first round, meaning every test the executor
    discovers. Later rounds name the exact tests to retry. Tests in ``skip``
    are reported as skipped without being executed.
    """

    __test__ = False

    attempt: int
    tests: frozenset[TestIdentity] | None = None
    skip: frozenset[TestIdentity] = field(default_factory=frozenset)
    name_pattern: str | None = None

    def includes(self, identity: TestIdentity) -> bool:
        """Whether ``identity`` belongs to this round's selection."""
        if self.tests is not None and identity not in self.tests:
            return False
        if self.name_pattern is not None:
            return re.search(self.name_pattern, identity.full_name) is not None
        return True

    def should_skip(self, identity: TestIdentity) -> bool:
        """Whether ``identity`` must be reported as skipped without running."""
        return identity in self.skip

    @property
    def filenames(self) -> frozenset[str] | None:
        """Files containing selected tests, or ``None`` for all files."""
        if self.tests is None:
            return None
        return frozenset(identity.filename for identity in self.tests)


class TestExecutor(ABC):
    """Runs a selection of tests and reports one outcome per test."""

    __test__ = False

    @abstractmethod
    async def run_tests(self, selection: TestSelection) -> Sequence[TestFileResult]:
        """Execute the selection and wait for every outcome.

        Args:
            selection: Tests to run this round

        Returns:
            One result per test file touched by the selection. Each file lists
            an outcome for every test it contains that was selected or skipped.

        """
