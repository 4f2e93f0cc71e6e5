"""
Analytics Package.

Telemetry collaborator used by the integration manager and the
monitoring service.
"""

from .tracker import AnalyticsTracker, safe_track


__all__ = [
    "AnalyticsTracker",
    "safe_track",
]
