"""Fetching the quarantine manifest with graceful degradation."""

import logging

import aiohttp

from flakeguard.api.client import ApiClient, ApiError
from flakeguard.api.models import TestSuiteManifest

log = logging.getLogger(__name__)


async def fetch_manifest(
    client: ApiClient, test_suite_id: str
) -> TestSuiteManifest | None:
    """Fetch the suite manifest, returning ``None`` when it is unavailable.

    A missing manifest disables quarantine for the whole run but never stops
    the tests from running.
    """
    try:
        manifest = await client.get_manifest(test_suite_id)
    except (ApiError, aiohttp.ClientError, ValueError) as e:
        log.warning("Failed to get manifest: %s", e)
        log.warning("Test failures will NOT be quarantined.")
        return None

    log.info(
        "Fetched manifest with %d quarantined test(s)",
        len(manifest.quarantined_tests),
    )
    return manifest
