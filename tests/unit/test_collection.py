"""
Unit tests for RemoteCollection.
"""

import asyncio

import httpx
import pytest

from gymdesk.core.enums import MemberStatus
from gymdesk.gateways.api_client import DashboardApiClient
from gymdesk.services.collection import (
    MEMBER_ENDPOINT,
    REORDER_ENDPOINT,
    RemoteCollection,
    active_criteria,
    is_active_criterion,
)
from gymdesk.utils.errors import ApiNetworkError, ApiPayloadError, ApiRejectedError
from tests.factories import make_member


class TestCriteria:
    """Tests for filter criterion normalization."""

    @pytest.mark.parametrize("value", [None, "", "   ", "all", "ALL", "All"])
    def test_inactive_values(self, value):
        assert is_active_criterion(value) is False

    @pytest.mark.parametrize("value", ["active", 0, 3, MemberStatus.FROZEN])
    def test_active_values(self, value):
        assert is_active_criterion(value) is True

    def test_active_criteria_drops_inactive(self):
        assert active_criteria({"plan": "all", "status": "active", "location": None}) == {
            "status": "active"
        }


class TestBuildParams:
    """Tests for query parameter mapping."""

    def test_member_params(self, client):
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        params = members.build_params(
            {"plan": "Elite", "status": MemberStatus.ACTIVE, "location": "all"}, " bob "
        )
        assert params == {"plan": "Elite", "status": "active", "search": "bob"}

    def test_reorder_location_maps_to_location_id(self, client):
        reorders = RemoteCollection(client, REORDER_ENDPOINT)
        assert reorders.build_params({"location": 3, "status": "pending"}) == {
            "location_id": 3,
            "status": "pending",
        }

    def test_unknown_filter_is_not_sent(self, client):
        reorders = RemoteCollection(client, REORDER_ENDPOINT)
        assert reorders.build_params({"plan": "Basic"}, "search ignored") == {}


class TestFetchCollection:
    """Tests for superset replacement, staleness and rate limiting."""

    @pytest.mark.asyncio
    async def test_unfiltered_fetch_replaces_superset(self, client, backend):
        backend.add("GET", "/members", {"members": [make_member(1), make_member(2)]})
        members = RemoteCollection(client, MEMBER_ENDPOINT)

        outcome = await members.fetch_collection()

        assert outcome.filtered is False
        assert [m.id for m in members.superset] == [1, 2]
        assert members.loaded is True

    @pytest.mark.asyncio
    async def test_filtered_fetch_keeps_superset(self, client, backend):
        backend.add("GET", "/members", {"members": [make_member(1), make_member(2)]})
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        await members.fetch_collection()

        backend.add("GET", "/members", {"members": [make_member(2)]})
        outcome = await members.fetch_collection({"status": "active"})

        assert outcome.filtered is True
        assert [m.id for m in members.last_result] == [2]
        assert [m.id for m in members.superset] == [1, 2]
        assert backend.requests[-1].url.params["status"] == "active"

    @pytest.mark.asyncio
    async def test_stale_response_is_discarded(self, client, backend):
        first_started = asyncio.Event()
        release_first = asyncio.Event()
        calls = {"n": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                first_started.set()
                await release_first.wait()
                return httpx.Response(200, json={"members": [make_member(99)]})
            return httpx.Response(200, json={"members": [make_member(1)]})

        backend.add("GET", "/members", handler=handler)
        members = RemoteCollection(client, MEMBER_ENDPOINT)

        first = asyncio.create_task(members.fetch_collection())
        await first_started.wait()
        second = await members.fetch_collection()
        release_first.set()
        first_outcome = await first

        assert second.stale is False
        assert first_outcome.stale is True
        assert [m.id for m in members.superset] == [1]

    @pytest.mark.asyncio
    async def test_superseded_failure_is_discarded(self, client, backend):
        first_started = asyncio.Event()
        release_first = asyncio.Event()
        calls = {"n": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                first_started.set()
                await release_first.wait()
                return httpx.Response(500, json={"error": "old failure"})
            return httpx.Response(200, json={"members": [make_member(1)]})

        backend.add("GET", "/members", handler=handler)
        members = RemoteCollection(client, MEMBER_ENDPOINT)

        first = asyncio.create_task(members.fetch_collection())
        await first_started.wait()
        await members.fetch_collection()
        release_first.set()
        first_outcome = await first

        assert first_outcome.stale is True
        assert [m.id for m in members.superset] == [1]

    @pytest.mark.asyncio
    async def test_latest_failure_still_raises(self, client, backend):
        backend.add("GET", "/members", {"error": "Database unavailable"}, status=500)
        members = RemoteCollection(client, MEMBER_ENDPOINT)

        with pytest.raises(ApiRejectedError):
            await members.fetch_collection()

    @pytest.mark.asyncio
    async def test_malformed_row_raises_payload_error(self, client, backend):
        broken = make_member(2)
        del broken["name"]
        backend.add("GET", "/members", {"members": [make_member(1), broken]})
        members = RemoteCollection(client, MEMBER_ENDPOINT)

        with pytest.raises(ApiPayloadError):
            await members.fetch_collection()
        assert members.superset == []

    @pytest.mark.asyncio
    async def test_unknown_enum_values_are_kept(self, client, backend):
        backend.add(
            "GET",
            "/members",
            {"members": [make_member(1), make_member(2, plan="Student", status="suspended")]},
        )
        members = RemoteCollection(client, MEMBER_ENDPOINT)

        await members.fetch_collection()

        student = members.get_cached(2)
        assert student.plan == "Student"
        assert student.status == "suspended"

    @pytest.mark.asyncio
    async def test_rate_limit_is_an_outcome(self, client, backend):
        backend.add("GET", "/members", {"members": [make_member(1)]})
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        await members.fetch_collection()

        backend.add(
            "GET", "/members", {"error": "Too many requests"}, status=429,
            headers={"Retry-After": "30"},
        )
        outcome = await members.fetch_collection()

        assert outcome.rate_limited is True
        assert outcome.retry_after == "30 seconds"
        assert members.retry_after == "30 seconds"
        assert [m.id for m in members.superset] == [1]

    @pytest.mark.asyncio
    async def test_network_failure_raises(self, settings):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = DashboardApiClient(transport=httpx.MockTransport(refuse), settings=settings)
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        with pytest.raises(ApiNetworkError):
            await members.fetch_collection()
        assert members.superset == []


class TestCache:
    """Tests for single-entity refresh and cache patching."""

    @pytest.mark.asyncio
    async def test_fetch_one_replaces_cached_copy(self, client, backend):
        backend.add("GET", "/members", {"members": [make_member(1), make_member(2)]})
        backend.add("GET", "/members/2", make_member(2, name="Renamed", total_check_ins=14))
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        await members.fetch_collection()

        member = await members.fetch_one(2)

        assert member.total_check_ins == 14
        assert members.get_cached(2).name == "Renamed"
        assert [m.id for m in members.superset] == [1, 2]

    @pytest.mark.asyncio
    async def test_fetch_one_rate_limited_returns_none(self, client, backend):
        backend.add("GET", "/members/2", {"retryAfter": "1 minute"}, status=429)
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        assert await members.fetch_one(2) is None
        assert members.retry_after == "1 minute"

    @pytest.mark.asyncio
    async def test_patch_cached(self, client, backend):
        backend.add("GET", "/members", {"members": [make_member(1)]})
        members = RemoteCollection(client, MEMBER_ENDPOINT)
        await members.fetch_collection()

        patched = members.patch_cached(1, status=MemberStatus.CANCELLED)

        assert patched.status == MemberStatus.CANCELLED
        assert members.get_cached(1).status == MemberStatus.CANCELLED
        assert members.patch_cached(404, status=MemberStatus.ACTIVE) is None
