"""Tests for the display API."""

import httpx
import pytest
import pytest_asyncio

from bustop.api import create_fastapi_app
from bustop.models import MethodStatistic
from bustop.ranking import RANKING_HEADER

from conftest import settle


@pytest_asyncio.fixture
async def client(orchestrator):
    """HTTP client bound to the API of a started orchestrator."""
    app = create_fastapi_app(orchestrator, manage_lifecycle=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestRankingRoutes:
    """Tests for /api/ranking."""

    @pytest.mark.asyncio
    async def test_get_ranking(self, client, bus):
        """Test that ranking rows are returned in order."""
        bus.set_statistics(
            "ALMemory",
            {
                100: MethodStatistic(count=1, min_wall=0.001, max_wall=0.001, cumulative_wall=0.001),
                101: MethodStatistic(count=9, min_wall=0.001, max_wall=0.002, cumulative_wall=0.010),
            },
        )
        await settle(0.15)

        response = await client.get("/api/ranking")

        assert response.status_code == 200
        data = response.json()
        assert [row["action"] for row in data] == ["ALMemory.insertData", "ALMemory.getData"]
        assert data[0]["rank"] == 1
        assert data[0]["count"] == 9

    @pytest.mark.asyncio
    async def test_get_ranking_lines(self, client):
        """Test the tabular ranking."""
        response = await client.get("/api/ranking/lines")

        assert response.status_code == 200
        assert response.json()["lines"][0] == RANKING_HEADER


class TestSelectionRoutes:
    """Tests for /api/selection."""

    @pytest.mark.asyncio
    async def test_empty_selection(self, client):
        """Test that no selection reports nulls."""
        response = await client.get("/api/selection")

        assert response.status_code == 200
        assert response.json()["service"] is None

    @pytest.mark.asyncio
    async def test_select_method(self, client, bus):
        """Test selecting a method over HTTP."""
        response = await client.post(
            "/api/selection", json={"service": "ALMemory", "method": "getData"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "ALMemory"
        assert data["slot"] == 100
        assert data["state"] == "active"
        assert bus.tracing_enabled("ALMemory")

    @pytest.mark.asyncio
    async def test_select_unknown_method(self, client):
        """Test that an unknown method is a 404 and keeps the selection."""
        await client.post("/api/selection", json={"service": "ALMemory", "method": "getData"})

        response = await client.post(
            "/api/selection", json={"service": "ALMemory", "method": "fly"}
        )

        assert response.status_code == 404
        current = await client.get("/api/selection")
        assert current.json()["method"] == "getData"

    @pytest.mark.asyncio
    async def test_select_lookup_failure(self, client, bus):
        """Test that a failing method lookup is mapped, not a server error."""

        async def broken(service, method):
            raise ConnectionError("Test error")

        bus.resolve_method_id = broken

        response = await client.post(
            "/api/selection", json={"service": "ALMemory", "method": "getData"}
        )

        assert response.status_code == 404
        assert "ALMemory.getData" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_clear_selection(self, client, bus):
        """Test clearing the selection over HTTP."""
        await client.post("/api/selection", json={"service": "ALMemory", "method": "getData"})

        response = await client.delete("/api/selection")

        assert response.status_code == 200
        assert not bus.tracing_enabled("ALMemory")


class TestSeriesRoutes:
    """Tests for /api/series."""

    @pytest.mark.asyncio
    async def test_get_series(self, client, bus):
        """Test reading a series of the selected method."""
        await client.post("/api/selection", json={"service": "ALMemory", "method": "getData"})
        bus.record_call("ALMemory", 100, duration=0.004)
        await settle()

        response = await client.get("/api/series/latency", params={"limit": 5})

        assert response.status_code == 200
        assert response.json() == {"name": "latency", "values": [4000.0]}

    @pytest.mark.asyncio
    async def test_limit_zero(self, client):
        """Test that a zero limit yields no values."""
        response = await client.get("/api/series/user_cpu", params={"limit": 0})

        assert response.status_code == 200
        assert response.json()["values"] == []

    @pytest.mark.asyncio
    async def test_unknown_series(self, client):
        """Test that unknown series names are 404."""
        response = await client.get("/api/series/bogus")

        assert response.status_code == 404
