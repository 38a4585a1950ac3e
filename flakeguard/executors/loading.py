"""Discovery of test executors registered as entry points."""

import logging
from importlib.metadata import entry_points
from typing import Any

from flakeguard.executors.manifest import ExecutorManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "flakeguard.executors"


class ExecutorNotFoundError(Exception):
    """Raised when no usable executor is registered under a key."""


def available_executors() -> list[str]:
    """Keys of every registered executor, sorted."""
    return sorted({entry.name for entry in entry_points(group=ENTRY_POINT_GROUP)})


def load_executor_manifest(key: str) -> ExecutorManifest[Any]:
    """Load an executor manifest by key.

    Args:
        key: The executor key as registered in pyproject.toml (e.g., "scripted")

    Returns:
        The executor manifest instance

    Raises:
        ExecutorNotFoundError: If no executor is registered under ``key``, or
            the entry point does not point at an ``ExecutorManifest``

    """
    matches = entry_points(group=ENTRY_POINT_GROUP, name=key)
    if not matches:
        raise ExecutorNotFoundError(
            f"Executor '{key}' not found. "
            f"Available executors: {available_executors()}"
        )

    (entry, *duplicates) = matches
    if duplicates:
        log.warning(
            "%d executors are registered as '%s'; using %s",
            len(duplicates) + 1,
            key,
            entry.value,
        )

    manifest = entry.load()
    if not isinstance(manifest, ExecutorManifest):
        raise ExecutorNotFoundError(
            f"Executor '{key}' ({entry.value}) is not an ExecutorManifest, "
            f"got {type(manifest).__name__}"
        )
    return manifest
