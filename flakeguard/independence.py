"""Classification of failures caused by the environment rather than the test."""

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class FailureContext:
    """Everything a predicate gets to see about one failed attempt."""

    filename: str
    name: tuple[str, ...]
    attempt: int
    failure: str


type IndependenceCheck = Callable[[FailureContext], bool | Awaitable[bool]]


def pattern_check(patterns: Sequence[re.Pattern[str]]) -> IndependenceCheck:
    """Build a check that matches any of ``patterns`` against the failure text."""

    def check(context: FailureContext) -> bool:
        return any(pattern.search(context.failure) for pattern in patterns)

    return check


def compile_patterns(
    value: str | re.Pattern[str] | Sequence[str | re.Pattern[str]],
) -> list[re.Pattern[str]]:
    """Compile pattern strings with multi-line semantics.

    Raises:
        re.error: If a pattern string is not a valid regular expression

    """
    entries = [value] if isinstance(value, str | re.Pattern) else list(value)
    return [
        entry if isinstance(entry, re.Pattern) else re.compile(entry, re.MULTILINE)
        for entry in entries
    ]


async def classify(check: IndependenceCheck, context: FailureContext) -> bool:
    """Decide whether a failed attempt is independent of the test's own logic.

    Exceptions raised by ``check`` are not caught and abort the run.
    """
    result = check(context)
    if inspect.isawaitable(result):
        result = await result
    if result:
        log.debug(
            "Attempt %d of %s in %s classified as test-independent failure",
            context.attempt,
            context.name,
            context.filename,
        )
    return bool(result)
