"""Test-execution collaborators driven by the retry coordinator."""

from flakeguard.executors.base import TestExecutor, TestSelection

__all__ = ["TestExecutor", "TestSelection"]
