"""Root pytest configuration for all tests."""

from __future__ import annotations

pytest_plugins = ("pytest_asyncio",)
