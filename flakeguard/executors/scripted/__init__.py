"""Scripted executor module."""

from flakeguard.executors.scripted.config import ScriptedExecutorConfig
from flakeguard.executors.scripted.executor import ScriptedExecutor
from flakeguard.executors.scripted.manifest import scripted_manifest

__all__ = ["ScriptedExecutor", "ScriptedExecutorConfig", "scripted_manifest"]
