"""
External integrations for the session engine.

Modules:
- platform_client: HTTP client for content, attempts, bookmarks and hints
"""
from .platform_client import PlatformClient

__all__ = ["PlatformClient"]
