"""Pytest configuration for the Salt REST API client tests."""

from salt_fixtures import make_client  # noqa: F401
