"""HTTP client for the flaky-test management backend."""

import asyncio
import gzip
import json
import logging
import platform
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

from flakeguard import __version__
from flakeguard.api.models import (
    CreateTestSuiteRunFromUploadRequest,
    CreateTestSuiteRunRequest,
    CreateUploadResponse,
    TestSuiteManifest,
    TestSuiteRunPendingSummary,
)

if TYPE_CHECKING:
    from flakeguard.config import FlakeGuardConfig

log = logging.getLogger(__name__)

REQUEST_ATTEMPTS = 3
RETRY_DELAY = 0.1


class ApiError(RuntimeError):
    """Raised when the backend or object store returns an unexpected response."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        """Store the HTTP status alongside the message."""
        super().__init__(message)
        self.status = status


@dataclass(frozen=True, kw_only=True)
class ApiResponse:
    """Fully-read response returned by the retrying transport."""

    status: int
    headers: Mapping[str, str]
    body: bytes

    def json(self) -> Any:  # noqa: ANN401
        """Decode the body as JSON."""
        return json.loads(self.body)


def user_agent(client_description: str | None = None) -> str:
    """Build the User-Agent identifying this client and its version."""
    agent = f"flakeguard/{__version__} (Python {platform.python_version()})"
    return f"{agent} {client_description}" if client_description else agent


async def request_with_retries(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    expected_status: int,
    **kwargs: Any,  # noqa: ANN401
) -> ApiResponse:
    """Send a request, retrying server errors and dropped connections.

    5xx responses, connection failures and timeouts are retried with a fixed
    delay up to ``REQUEST_ATTEMPTS`` total attempts. Any other unexpected
    status fails immediately.
    """
    error: ApiError | None = None
    for attempt in range(1, REQUEST_ATTEMPTS + 1):
        try:
            async with session.request(method, url, **kwargs) as response:
                body = await response.read()
                if response.status == expected_status:
                    return ApiResponse(
                        status=response.status,
                        headers=response.headers.copy(),
                        body=body,
                    )

                text = body.decode(errors="replace")
                error = ApiError(
                    f"received HTTP response `{response.status} {response.reason}` "
                    f"(expected `{expected_status}`)" + (f": {text}" if text else ""),
                    status=response.status,
                )
                if response.status < 500:
                    raise error
        except aiohttp.ClientConnectionError as e:
            error = ApiError(f"{method} request failed: {e}")
        except TimeoutError:
            error = ApiError(f"{method} request timed out")

        if attempt < REQUEST_ATTEMPTS:
            log.debug(
                "%s %s failed (attempt %d/%d): %s",
                method,
                url,
                attempt,
                REQUEST_ATTEMPTS,
                error,
            )
            await asyncio.sleep(RETRY_DELAY)

    assert error is not None
    raise error


@dataclass(frozen=True, kw_only=True)
class ApiClient:
    """Backend API client.

    Presigned upload URLs point at an object store that must not receive the
    API key, so uploads go through a separate session without credentials.
    """

    base_url: str
    session: aiohttp.ClientSession = field(repr=False)
    upload_session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: "FlakeGuardConfig", client_description: str | None = None
    ) -> AsyncGenerator["ApiClient", None]:
        """Create client with managed session lifecycle."""
        api_key = config.api_key.get_secret_value() if config.api_key else ""
        agent = user_agent(client_description)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "User-Agent": agent,
        }
        async with (
            aiohttp.ClientSession(
                base_url=f"{config.api_base_url}/api/v1/", headers=headers
            ) as session,
            aiohttp.ClientSession(headers={"User-Agent": agent}) as upload_session,
        ):
            yield cls(
                base_url=config.api_base_url,
                session=session,
                upload_session=upload_session,
            )

    async def get_manifest(self, test_suite_id: str) -> TestSuiteManifest:
        """Fetch the tests currently quarantined for the suite."""
        log.debug("Fetching manifest for test suite %s", test_suite_id)
        response = await request_with_retries(
            self.session,
            "GET",
            f"test-suites/{test_suite_id}/manifest",
            expected_status=200,
        )
        manifest = TestSuiteManifest.model_validate(response.json())
        log.debug("Received manifest: %s", manifest)
        return manifest

    async def create_upload(self, test_suite_id: str) -> tuple[str, str]:
        """Request an upload slot and return ``(upload_id, upload_url)``."""
        response = await request_with_retries(
            self.session,
            "POST",
            f"test-suites/{test_suite_id}/runs/upload",
            expected_status=201,
            data=b"",
            headers={"Content-Type": "application/json"},
        )
        location = response.headers.get("Location")
        if not location:
            raise ApiError("upload request response is missing a Location header")
        upload = CreateUploadResponse.model_validate(response.json())
        return upload.upload_id, location

    async def upload_results(
        self, upload_url: str, request: CreateTestSuiteRunRequest
    ) -> None:
        """PUT the gzip-compressed run record to the presigned upload URL."""
        payload = request.model_dump_json(exclude_none=True).encode()
        log.debug("Uploading %d byte(s) of test results", len(payload))
        await request_with_retries(
            self.upload_session,
            "PUT",
            upload_url,
            expected_status=200,
            data=gzip.compress(payload),
            headers={
                "Content-Encoding": "gzip",
                "Content-Type": "application/json",
            },
        )

    async def create_run(
        self, test_suite_id: str, upload_id: str
    ) -> TestSuiteRunPendingSummary:
        """Turn a completed upload into a test suite run."""
        response = await request_with_retries(
            self.session,
            "POST",
            f"test-suites/{test_suite_id}/runs",
            expected_status=201,
            json=CreateTestSuiteRunFromUploadRequest(upload_id=upload_id).model_dump(),
        )
        summary = TestSuiteRunPendingSummary.model_validate(response.json())
        log.debug("Created test suite run: %s", summary)
        return summary

    def run_url(self, test_suite_id: str, run_id: str) -> str:
        """Browser URL of a test suite run."""
        return f"{self.base_url}/test-suites/{test_suite_id}/runs/{run_id}"
