"""Integration tests for pypowershades library.

These tests use real API credentials from .env file and make actual API calls.
They are marked with @pytest.mark.integration and skipped by default.

To run integration tests:
    pytest tests/integration -v -m integration

Environment variables required in .env:
    POWERSHADES_API_TOKEN: Static API token, or
    POWERSHADES_EMAIL / POWERSHADES_PASSWORD: Account credentials
    POWERSHADES_BASE_URL: API base URL (optional, defaults to production)
    POWERSHADES_TEST_SHADE: Shade name to move in slow tests (optional)
"""
