"""Detect the current git branch and commit."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)

BRANCH_ENV_VAR = "FLAKEGUARD_BRANCH"
COMMIT_ENV_VAR = "FLAKEGUARD_COMMIT"


class GitError(RuntimeError):
    """Raised when a git command exits with a non-zero status."""


@dataclass(frozen=True, kw_only=True)
class GitInfo:
    """Branch and commit reported with an upload; either may be unknown."""

    branch: str | None = None
    commit: str | None = None


async def run_git(cwd: Path | None, *args: str) -> str:
    """Run a git command and return its stripped stdout.

    Raises:
        GitError: If git exits with a non-zero status

    """
    process = await asyncio.create_subprocess_exec(
        "git",
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()

    if process.returncode != 0:
        raise GitError(f"git {' '.join(args)} failed: {stderr.decode().strip()}")

    return stdout.decode().strip()


async def is_repository(cwd: Path | None) -> bool:
    """Check if ``cwd`` is inside a git work tree."""
    process = await asyncio.create_subprocess_exec(
        "git",
        "rev-parse",
        "--is-inside-work-tree",
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await process.communicate()
    return process.returncode == 0 and stdout.decode().strip() == "true"


async def get_current_branch(cwd: Path | None, commit: str) -> str | None:
    """Get the branch name, falling back to a ref matching a detached HEAD.

    CI systems often check out a detached HEAD (e.g. the merge commit of a pull
    request). The first ref pointing at ``commit``, as listed by ``show-ref``,
    is then abbreviated and used as the branch.
    """
    head_ref = await run_git(cwd, "rev-parse", "--abbrev-ref", "HEAD")
    if head_ref != "HEAD":
        return head_ref

    refs = await run_git(cwd, "show-ref")
    matching = [
        ref_name
        for sha, _, ref_name in (line.partition(" ") for line in refs.splitlines())
        if sha == commit
    ]
    log.debug(
        "git show-ref returned %d ref(s) for %s: %s",
        len(matching),
        commit,
        ", ".join(matching),
    )
    if not matching:
        return None
    return await run_git(cwd, "rev-parse", "--abbrev-ref", matching[0])


async def auto_detect_git(cwd: Path | None = None) -> GitInfo:
    """Detect branch and commit, yielding an empty ``GitInfo`` on any failure."""
    try:
        if await is_repository(cwd):
            commit = await run_git(cwd, "rev-parse", "HEAD")
            branch = await get_current_branch(cwd, commit)
            return GitInfo(branch=branch, commit=commit)
    except (GitError, OSError) as e:
        log.warning("Failed to auto-detect current git branch and commit: %s", e)
        log.warning(
            "HINT: set the %s and %s environment variables or disable git "
            "auto-detection by setting `git_auto_detect` to false in the config "
            "file.",
            BRANCH_ENV_VAR,
            COMMIT_ENV_VAR,
        )
    else:
        log.debug("Not a git repository; branch and commit are unknown")

    return GitInfo()


async def resolve_git_info(
    environ: Mapping[str, str], auto_detect: bool, cwd: Path | None = None
) -> GitInfo:
    """Combine environment overrides with auto-detection.

    Detection only fills in values the environment does not provide.
    """
    branch = environ.get(BRANCH_ENV_VAR) or None
    commit = environ.get(COMMIT_ENV_VAR) or None
    if auto_detect and (branch is None or commit is None):
        detected = await auto_detect_git(cwd)
        branch = branch or detected.branch
        commit = commit or detected.commit
    return GitInfo(branch=branch, commit=commit)
