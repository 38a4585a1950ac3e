"""Configuration for the scripted executor."""

from collections.abc import Sequence
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, NonNegativeFloat, model_validator

from flakeguard.executors.scripted.models import ScriptedFile, TestScript


class ScriptedExecutorConfig(BaseModel):
    """Configuration for the scripted executor.

    Files are given inline or through ``script``, a YAML file with a top-level
    ``files`` list. Inline files come first when both are given.
    """

    script: Path | None = None
    files: Sequence[ScriptedFile] = Field(default_factory=tuple)
    # Simulated execution time per test, in seconds.
    delay: NonNegativeFloat = 0.0

    @model_validator(mode="after")
    def require_tests(self) -> "ScriptedExecutorConfig":
        """A scripted executor without any file to replay is a mistake."""
        if self.script is None and not self.files:
            raise ValueError("either `script` or `files` must be provided")
        return self

    def load_files(self) -> Sequence[ScriptedFile]:
        """Inline files followed by those read from ``script``."""
        if self.script is None:
            return self.files
        with self.script.open(encoding="utf-8") as f:
            script = TestScript.model_validate(yaml.safe_load(f) or {})
        return [*self.files, *script.files]
