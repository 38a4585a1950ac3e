"""Models for scripted test runs loaded from YAML files."""

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt


class ScriptedTest(BaseModel):
    """A test and the result of each of its successive attempts."""

    __test__ = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Sequence[str] = Field(
        ..., min_length=1, description="Describe chain and title"
    )
    results: Sequence[Literal["pass", "fail", "skipped"]] = Field(
        default=("pass",),
        min_length=1,
        description="Result per attempt; the last one repeats",
    )
    error: str = Field(default="", description="Error text reported on failure")
    stdout: str = Field(default="", description="Captured stdout reported on failure")
    stderr: str = Field(default="", description="Captured stderr reported on failure")
    duration_ms: NonNegativeInt = Field(default=1, description="Reported duration")


class ScriptedFile(BaseModel):
    """A test file, or a file that fails to load when ``error`` is set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    filename: str = Field(..., description="POSIX path relative to the project root")
    error: str | None = Field(default=None, description="File-level load error")
    tests: Sequence[ScriptedTest] = Field(default_factory=tuple)


class TestScript(BaseModel):
    """Complete script replayed by the scripted executor."""

    __test__ = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    files: Sequence[ScriptedFile] = Field(default_factory=tuple)
