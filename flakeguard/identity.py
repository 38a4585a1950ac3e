"""Canonical test identities used for quarantine matching and reporting."""

from collections.abc import Sequence
from dataclasses import dataclass

TEST_NAME_ENTRY_MAX_LENGTH = 4096


def normalize_test_name(name: Sequence[str]) -> tuple[str, ...]:
    """Truncate the last entry of a test name to the backend's maximum length.

    Long final entries (e.g. code snippets used as test titles) would otherwise
    be rejected by the backend. Tests that only differ past the limit collapse
    into a single identity. Other entries and the filename are never touched.
    """
    if not name:
        return ()
    *ancestors, title = name
    return (*ancestors, title[:TEST_NAME_ENTRY_MAX_LENGTH])


@dataclass(frozen=True, kw_only=True)
class TestIdentity:
    """A test's POSIX-relative filename plus its describe chain and title."""

    __test__ = False

    filename: str
    name: tuple[str, ...]

    def __post_init__(self) -> None:
        """Normalize the name path so equality always uses the truncated form."""
        object.__setattr__(self, "name", normalize_test_name(self.name))

    @property
    def full_name(self) -> str:
        """Space-joined name path, as most runners display it."""
        return " ".join(self.name)

    def __str__(self) -> str:
        """Render as ``filename > name > path``."""
        return " > ".join((self.filename, *self.name))
