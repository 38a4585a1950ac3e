"""Pydantic models for the backend API requests and responses."""

from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict


class ApiModel(BaseModel):
    """Base for wire models; unknown response fields are ignored."""

    model_config = ConfigDict(frozen=True)


class TestRef(ApiModel):
    """A quarantined test as listed in the suite manifest."""

    __test__ = False

    test_id: str
    filename: str
    name: Sequence[str]


class TestSuiteManifest(ApiModel):
    """Tests currently quarantined server-side for a test suite."""

    __test__ = False

    quarantined_tests: Sequence[TestRef] = ()


class TestRunAttemptRecord(ApiModel):
    """A single uploaded attempt."""

    __test__ = False

    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: int | None = None
    result: Literal["pass", "fail", "quarantined"]
    failure_reason: Literal["independent"] | None = None


class TestRunRecord(ApiModel):
    """All uploaded attempts of one test."""

    __test__ = False

    filename: str
    name: Sequence[str]
    attempts: Sequence[TestRunAttemptRecord]


class CreateTestSuiteRunRequest(ApiModel):
    """Body uploaded (gzip-compressed) to the presigned upload URL."""

    __test__ = False

    branch: str | None = None
    commit: str | None = None
    start_time: datetime
    end_time: datetime
    test_runs: Sequence[TestRunRecord]


class CreateUploadResponse(ApiModel):
    """Response to the create-upload-request call."""

    upload_id: str


class CreateTestSuiteRunFromUploadRequest(ApiModel):
    """Finalizes an upload into a test suite run."""

    __test__ = False

    upload_id: str


class TestSuiteRunPendingSummary(ApiModel):
    """Response to the finalize call."""

    __test__ = False

    run_id: str
    suite_id: str
    branch: str | None = None
    commit: str | None = None
