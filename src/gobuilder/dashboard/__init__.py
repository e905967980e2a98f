"""
Dashboard protocol client.
"""

from .client import KIND_BUILD_COMMIT, KIND_BUILD_PACKAGE, DashboardClient

__all__ = [
    "DashboardClient",
    "KIND_BUILD_COMMIT",
    "KIND_BUILD_PACKAGE",
]
