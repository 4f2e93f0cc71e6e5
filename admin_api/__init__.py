"""
Admin API Package.

HTTP surface over the integration manager.
"""

from admin_api.main import create_app
from admin_api.router import router


__all__ = [
    "create_app",
    "router",
]
