"""
Pytest configuration for silent-client tests.
"""


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "requires_browser: mark test as needing a real Chromium via Playwright"
    )
