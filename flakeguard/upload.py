"""Best-effort reporting of a finished run to the backend."""

import logging
from dataclasses import dataclass

import aiohttp

from flakeguard.api.client import ApiClient, ApiError
from flakeguard.api.models import (
    CreateTestSuiteRunRequest,
    TestRunAttemptRecord,
    TestRunRecord,
)
from flakeguard.models.record import RunResults

log = logging.getLogger(__name__)


def build_run_request(
    results: RunResults, branch: str | None = None, commit: str | None = None
) -> CreateTestSuiteRunRequest:
    """Serialize run results into the upload payload.

    Tests that never executed carry no attempts and are left out, as are the
    captured failure texts.
    """
    return CreateTestSuiteRunRequest(
        branch=branch,
        commit=commit,
        start_time=results.start_time,
        end_time=results.end_time,
        test_runs=[
            TestRunRecord(
                filename=test.identity.filename,
                name=test.identity.name,
                attempts=[
                    TestRunAttemptRecord(
                        start_time=attempt.start_time,
                        end_time=attempt.end_time,
                        duration_ms=attempt.duration_ms,
                        result=attempt.result,
                        failure_reason=attempt.failure_reason,
                    )
                    for attempt in test.attempts
                ],
            )
            for test in results.test_runs
            if not test.skipped
        ],
    )


@dataclass(frozen=True, kw_only=True)
class UploadPipeline:
    """Three-step upload: request a slot, PUT the results, finalize the run."""

    client: ApiClient
    test_suite_id: str

    async def upload(
        self,
        results: RunResults,
        branch: str | None = None,
        commit: str | None = None,
    ) -> str | None:
        """Report results and return the run URL, or ``None`` on failure.

        Errors are logged and never raised: reporting must not change the
        outcome of the run.
        """
        request = build_run_request(results, branch, commit)
        log.debug(
            "Uploading results for %d test(s) to suite %s",
            len(request.test_runs),
            self.test_suite_id,
        )
        try:
            upload_id, upload_url = await self.client.create_upload(self.test_suite_id)
            await self.client.upload_results(upload_url, request)
            summary = await self.client.create_run(self.test_suite_id, upload_id)
        except (ApiError, aiohttp.ClientError, ValueError) as e:
            log.warning("Failed to report test results: %s", e)
            return None

        run_url = self.client.run_url(summary.suite_id, summary.run_id)
        log.info("Test run report: %s", run_url)
        return run_url
