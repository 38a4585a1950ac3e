"""Client for the flaky-test management backend."""

from flakeguard.api.client import ApiClient, ApiError
from flakeguard.api.models import (
    CreateTestSuiteRunRequest,
    TestRef,
    TestSuiteManifest,
    TestSuiteRunPendingSummary,
)

__all__ = [
    "ApiClient",
    "ApiError",
    "CreateTestSuiteRunRequest",
    "TestRef",
    "TestSuiteManifest",
    "TestSuiteRunPendingSummary",
]
