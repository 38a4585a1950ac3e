"""Tests for the scripted executor."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from flakeguard.executors.base import TestSelection
from flakeguard.executors.scripted import ScriptedExecutor, ScriptedExecutorConfig
from flakeguard.executors.scripted.models import ScriptedFile, ScriptedTest
from flakeguard.identity import TestIdentity

FLAKY = TestIdentity(filename="tests/test_a.py", name=("suite", "is flaky"))
STABLE = TestIdentity(filename="tests/test_a.py", name=("suite", "is stable"))


@pytest.fixture
def files() -> list[ScriptedFile]:
    """Create a scripted file with a flaky and a stable test."""
    return [
        ScriptedFile(
            filename="tests/test_a.py",
            tests=[
                ScriptedTest(
                    name=["suite", "is flaky"],
                    results=["fail", "pass"],
                    error="AssertionError",
                    stdout="some output",
                ),
                ScriptedTest(name=["suite", "is stable"]),
            ],
        ),
        ScriptedFile(filename="tests/test_broken.py", error="ImportError: nope"),
    ]


@pytest.fixture
def executor(files: list[ScriptedFile]) -> ScriptedExecutor:
    """Create executor replaying ``files``."""
    return ScriptedExecutor(files=files)


async def test_replays_results_in_order(executor: ScriptedExecutor) -> None:
    """Each execution consumes the next scripted result."""
    first = await executor.run_tests(TestSelection(attempt=0))
    second = await executor.run_tests(
        TestSelection(attempt=1, tests=frozenset({FLAKY}))
    )

    assert [o.status for o in first[0].outcomes] == ["fail", "pass"]
    assert [o.status for o in second[0].outcomes] == ["pass"]


async def test_last_result_repeats(executor: ScriptedExecutor) -> None:
    """Once results run out the last one repeats."""
    for attempt in range(3):
        results = await executor.run_tests(
            TestSelection(attempt=attempt, tests=frozenset({FLAKY}))
        )

    assert [o.status for o in results[0].outcomes] == ["pass"]


async def test_reports_failure_text(executor: ScriptedExecutor) -> None:
    """Failed outcomes carry the scripted error and output."""
    (result, _) = await executor.run_tests(TestSelection(attempt=0))

    failed = result.outcomes[0]
    assert failed.failure_text == "AssertionError\nsome output"
    assert failed.start_time is not None
    assert failed.duration_ms == 1


async def test_reports_file_errors(executor: ScriptedExecutor) -> None:
    """Files that fail to load report an error and no outcomes."""
    (_, broken) = await executor.run_tests(TestSelection(attempt=0))

    assert broken.filename == "tests/test_broken.py"
    assert broken.exec_error == "ImportError: nope"
    assert broken.outcomes == ()


async def test_retry_rounds_only_touch_selected_files(
    executor: ScriptedExecutor,
) -> None:
    """Files without selected tests are not executed again."""
    results = await executor.run_tests(
        TestSelection(attempt=1, tests=frozenset({STABLE}))
    )

    assert [r.filename for r in results] == ["tests/test_a.py"]
    assert [o.identity for o in results[0].outcomes] == [STABLE]


async def test_skipped_tests_are_not_executed(executor: ScriptedExecutor) -> None:
    """Tests in the skip set are reported skipped and keep their results."""
    (result, _) = await executor.run_tests(
        TestSelection(attempt=0, skip=frozenset({FLAKY}))
    )
    assert [o.status for o in result.outcomes] == ["skipped", "pass"]

    (result, _) = await executor.run_tests(TestSelection(attempt=1))
    assert result.outcomes[0].status == "fail"


async def test_name_pattern_skips_other_tests(executor: ScriptedExecutor) -> None:
    """Tests not matching the name pattern are reported skipped."""
    (result, _) = await executor.run_tests(
        TestSelection(attempt=0, name_pattern="stable$")
    )

    assert [o.status for o in result.outcomes] == ["skipped", "pass"]


class TestScriptedExecutorConfig:
    """Tests for ScriptedExecutorConfig."""

    def test_requires_files_or_script(self) -> None:
        """An empty configuration is rejected."""
        with pytest.raises(ValidationError, match="either `script` or `files`"):
            ScriptedExecutorConfig()

    async def test_loads_script_file(self, tmp_path: Path) -> None:
        """Files are read from a YAML script."""
        script = tmp_path / "script.yaml"
        script.write_text(
            "files:\n"
            "  - filename: tests/test_a.py\n"
            "    tests:\n"
            "      - name: [suite, is flaky]\n"
            "        results: [fail, pass]\n"
        )
        config = ScriptedExecutorConfig(script=script)

        async with ScriptedExecutor.from_config(config) as executor:
            (result,) = await executor.run_tests(TestSelection(attempt=0))

        assert result.outcomes[0].identity == FLAKY
        assert result.outcomes[0].status == "fail"

    def test_rejects_empty_results(self) -> None:
        """Each test needs at least one scripted result."""
        with pytest.raises(ValidationError):
            ScriptedTest(name=["test"], results=[])
