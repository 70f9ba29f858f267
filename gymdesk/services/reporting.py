"""
Reporting Service.

Read-only aggregate endpoints: KPI stats, chart series and the location
list used for filter dropdowns. A rate-limited call returns None so the page
can keep showing its previous values.
"""

import logging
from typing import Optional

from gymdesk.gateways.api_client import DashboardApiClient
from gymdesk.schemas.common import ChartData, Location
from gymdesk.schemas.member import MemberStats
from gymdesk.schemas.reorder import ReorderStats

logger = logging.getLogger(__name__)


class ReportingService:
    """Fetches dashboard aggregates."""

    def __init__(self, client: DashboardApiClient):
        self._client = client

    async def member_stats(self) -> Optional[MemberStats]:
        response = await self._client.get("/members/stats")
        if response.rate_limited:
            return None
        return MemberStats.model_validate(response.data or {})

    async def reorder_stats(self) -> Optional[ReorderStats]:
        response = await self._client.get("/inventory/reorders/stats")
        if response.rate_limited:
            return None
        return ReorderStats.model_validate(response.data or {})

    async def reorder_status_breakdown(self) -> Optional[ChartData]:
        response = await self._client.get("/inventory/reorders/chart/status-breakdown")
        if response.rate_limited:
            return None
        return ChartData.model_validate(response.data or {})

    async def reorder_trends(self) -> Optional[ChartData]:
        response = await self._client.get("/inventory/reorders/chart/trends")
        if response.rate_limited:
            return None
        return ChartData.model_validate(response.data or {})

    async def locations(self) -> list[Location]:
        response = await self._client.get("/locations")
        if response.rate_limited:
            return []
        data = response.data
        if isinstance(data, dict):
            data = data.get("locations", [])
        locations = [Location.model_validate(item) for item in data or []]
        logger.debug(f"Loaded {len(locations)} locations")
        return locations
