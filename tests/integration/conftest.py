"""Fixtures for integration tests."""

import subprocess
from collections.abc import AsyncGenerator, Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr

from flakeguard.api.client import ApiClient
from flakeguard.config import FlakeGuardConfig

API_BASE_URL = "http://flakeguard.test"
SUITE_ID = "MOCK_SUITE_ID"


def git(cwd: Path, *args: str) -> str:
    """Run a git command in ``cwd`` and return its output."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create an initialized git repository."""
    git(tmp_path, "init")
    git(tmp_path, "config", "user.email", "test@example.com")
    git(tmp_path, "config", "user.name", "Test")
    return tmp_path


@pytest.fixture
def git_commit(git_repo: Path) -> Callable[[str], str]:
    """Return a function to create commits in the test repo."""

    def _commit(message: str) -> str:
        git(git_repo, "add", "-A")
        git(git_repo, "commit", "--allow-empty", "-m", message)
        return git(git_repo, "rev-parse", "HEAD")

    return _commit


@pytest.fixture(autouse=True)
def _no_retry_delay() -> Iterator[None]:
    """Retry failed requests immediately."""
    with patch("flakeguard.api.client.RETRY_DELAY", 0):
        yield


@pytest.fixture
def config() -> FlakeGuardConfig:
    """Create test configuration."""
    return FlakeGuardConfig(
        test_suite_id=SUITE_ID,
        api_key=SecretStr("MOCK_API_KEY"),
        api_base_url=API_BASE_URL,
    )


@pytest.fixture
async def client(
    config: FlakeGuardConfig, aioresponses: aioresponses_cls
) -> AsyncGenerator[ApiClient, None]:
    """Create client with managed sessions."""
    async with ApiClient.from_config(config) as impl:
        yield impl
