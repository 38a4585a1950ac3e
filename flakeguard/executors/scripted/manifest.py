"""Scripted executor manifest."""

from flakeguard.executors.manifest import ExecutorManifest
from flakeguard.executors.scripted.config import ScriptedExecutorConfig
from flakeguard.executors.scripted.executor import ScriptedExecutor

scripted_manifest = ExecutorManifest(
    config_cls=ScriptedExecutorConfig,
    executor_factory=ScriptedExecutor.from_config,
)
