"""
Backend Gateway Module for the Gym Admin Dashboard.
"""

from gymdesk.gateways.api_client import (
    ApiResponse,
    DashboardApiClient,
    extract_error_message,
    extract_retry_after,
)

__all__ = [
    "ApiResponse",
    "DashboardApiClient",
    "extract_error_message",
    "extract_retry_after",
]
