"""Flaky-test retry, quarantine and reporting engine."""

__version__ = "0.4.0"
