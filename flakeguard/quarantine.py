"""Deciding how a test's failures are treated given the quarantine manifest."""

import logging
from dataclasses import dataclass
from typing import Literal

from flakeguard.api.models import TestRef, TestSuiteManifest
from flakeguard.config import QuarantineMode
from flakeguard.identity import TestIdentity

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class QuarantineDecision:
    """Whether to run a test and what a failure of it counts as."""

    skip: bool = False
    treat_failure_as: Literal["fail", "quarantined"] = "fail"


RUN_AND_FAIL = QuarantineDecision()
RUN_AND_QUARANTINE = QuarantineDecision(treat_failure_as="quarantined")
SKIP = QuarantineDecision(skip=True, treat_failure_as="quarantined")


def identity_of(test_ref: TestRef) -> TestIdentity:
    """Identity of a manifest entry."""
    return TestIdentity(filename=test_ref.filename, name=tuple(test_ref.name))


@dataclass(frozen=True)
class QuarantineResolver:
    """Resolves quarantine decisions against an immutable manifest.

    ``manifest`` is ``None`` when it could not be fetched, which disables
    quarantine entirely: nothing is skipped and every failure counts.
    """

    manifest: TestSuiteManifest | None
    mode: QuarantineMode
    quarantined: frozenset[TestIdentity]

    @classmethod
    def create(
        cls, manifest: TestSuiteManifest | None, mode: QuarantineMode
    ) -> "QuarantineResolver":
        """Index the manifest's entries by identity."""
        quarantined = (
            frozenset(identity_of(ref) for ref in manifest.quarantined_tests)
            if manifest is not None
            else frozenset()
        )
        return cls(manifest, mode, quarantined)

    @property
    def available(self) -> bool:
        """Whether quarantine data exists for this run."""
        return self.manifest is not None

    def is_quarantined(self, identity: TestIdentity) -> bool:
        """Whether the manifest lists the test (using normalized names)."""
        return identity in self.quarantined

    def resolve(self, identity: TestIdentity) -> QuarantineDecision:
        """Decide how ``identity`` is handled this run."""
        if not self.available or not self.is_quarantined(identity):
            return RUN_AND_FAIL

        match self.mode:
            case "quarantine" | "ignore_failures":
                return RUN_AND_QUARANTINE
            case "no_quarantine":
                log.debug(
                    "Not quarantining %s because quarantine mode is `no_quarantine`",
                    identity,
                )
                return RUN_AND_FAIL
            case "skip_tests":
                return SKIP

    def tests_to_skip(self) -> frozenset[TestIdentity]:
        """Quarantined tests that must not execute at all this run."""
        if not self.available or self.mode != "skip_tests":
            return frozenset()
        return self.quarantined
