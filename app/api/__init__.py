"""
API routes package.
"""

from app.api import (
    auth,
    magic_links,
    client_portal,
)

__all__ = [
    "auth",
    "magic_links",
    "client_portal",
]
