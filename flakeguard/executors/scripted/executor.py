"""Executor replaying pre-recorded attempt results."""

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

from flakeguard.executors.base import TestExecutor, TestSelection
from flakeguard.executors.scripted.config import ScriptedExecutorConfig
from flakeguard.executors.scripted.models import ScriptedFile, ScriptedTest
from flakeguard.identity import TestIdentity
from flakeguard.models.outcome import TestFileResult, TestOutcome

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ScriptedExecutor(TestExecutor):
    """Replays a script of per-attempt results instead of running real tests.

    Files of a round run concurrently, as a parallel test runner would. Each
    executed test consumes the next entry of its ``results`` and keeps
    repeating the last one once they run out.
    """

    files: Sequence[ScriptedFile]
    delay: float = 0.0
    executions: Counter[TestIdentity] = field(default_factory=Counter, repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: ScriptedExecutorConfig
    ) -> AsyncGenerator["ScriptedExecutor", None]:
        """Create executor from the scripted files."""
        files = config.load_files()
        log.debug("Loaded script with %d file(s)", len(files))
        yield cls(files=files, delay=config.delay)

    async def run_tests(self, selection: TestSelection) -> Sequence[TestFileResult]:
        """Replay the next result of every selected test."""
        filenames = selection.filenames
        files = [
            file
            for file in self.files
            if filenames is None or file.filename in filenames
        ]
        return await asyncio.gather(
            *(self._run_file(file, selection) for file in files)
        )

    async def _run_file(
        self, file: ScriptedFile, selection: TestSelection
    ) -> TestFileResult:
        if file.error is not None:
            return TestFileResult(filename=file.filename, exec_error=file.error)

        outcomes: list[TestOutcome] = []
        for test in file.tests:
            identity = TestIdentity(filename=file.filename, name=tuple(test.name))
            if selection.tests is not None and identity not in selection.tests:
                continue
            if selection.should_skip(identity) or not selection.includes(identity):
                outcomes.append(
                    TestOutcome(
                        filename=file.filename, name=test.name, status="skipped"
                    )
                )
                continue
            outcomes.append(await self._execute(file.filename, test, identity))

        return TestFileResult(filename=file.filename, outcomes=outcomes)

    async def _execute(
        self, filename: str, test: ScriptedTest, identity: TestIdentity
    ) -> TestOutcome:
        index = min(self.executions[identity], len(test.results) - 1)
        self.executions[identity] += 1
        status = test.results[index]

        start_time = datetime.now(UTC)
        if self.delay:
            await asyncio.sleep(self.delay)
        end_time = datetime.now(UTC)

        if status != "fail":
            return TestOutcome(
                filename=filename,
                name=test.name,
                status=status,
                start_time=start_time,
                end_time=end_time,
                duration_ms=test.duration_ms,
            )
        return TestOutcome(
            filename=filename,
            name=test.name,
            status=status,
            start_time=start_time,
            end_time=end_time,
            duration_ms=test.duration_ms,
            error=test.error or f"{' '.join(test.name)} failed",
            stdout=test.stdout,
            stderr=test.stderr,
        )
