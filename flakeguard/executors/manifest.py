"""Executor manifest definition for the plugin system."""

from collections.abc import Callable, Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from flakeguard.config import ConfigError
from flakeguard.executors.base import TestExecutor


@dataclass(frozen=True, kw_only=True)
class ExecutorManifest[ConfigT: BaseModel]:
    """Manifest describing an executor plugin.

    Pairs the executor's configuration class with a factory producing the
    executor as an async context manager, so plugins are only imported once
    selected by key.
    """

    config_cls: type[ConfigT]
    executor_factory: Callable[[ConfigT], AbstractAsyncContextManager[TestExecutor]]

    def parse_config(self, raw: Mapping[str, Any]) -> ConfigT:
        """Validate executor settings given on the command line.

        Raises:
            ConfigError: If the settings do not match ``config_cls``

        """
        try:
            return self.config_cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid executor configuration: {e}") from e

    def open(
        self, raw: Mapping[str, Any]
    ) -> AbstractAsyncContextManager[TestExecutor]:
        """Executor context for the given raw settings."""
        return self.executor_factory(self.parse_config(raw))
