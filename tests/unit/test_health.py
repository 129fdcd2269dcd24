"""
Unit tests for the health check service.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from mongosession.health.service import DependencyHealth, HealthCheckService


def _store(result=True, side_effect=None):
    store = MagicMock()
    store.health_check = AsyncMock(return_value=result, side_effect=side_effect)
    return store


class TestDependencyHealth:
    """Tests for DependencyHealth serialization."""

    def test_to_dict_rounds_and_omits_missing_error(self):
        health = DependencyHealth(name="session_store", healthy=True, response_time_ms=1.23456)

        assert health.to_dict() == {"name": "session_store", "healthy": True, "response_time_ms": 1.23}

    def test_to_dict_includes_error(self):
        health = DependencyHealth(name="session_store", healthy=False, response_time_ms=0.0, error="down")

        assert health.to_dict()["error"] == "down"


class TestHealthCheckService:
    """Tests for HealthCheckService."""

    @pytest.mark.asyncio
    async def test_ready_when_store_healthy(self):
        status = await HealthCheckService(session_store=_store()).check_readiness()

        assert status.status == "healthy"
        assert status.dependencies[0].name == "session_store"
        assert status.dependencies[0].healthy is True

    @pytest.mark.asyncio
    async def test_unhealthy_without_store(self):
        status = await HealthCheckService().check_readiness()

        assert status.status == "unhealthy"
        assert status.dependencies[0].error == "Session store not configured"

    @pytest.mark.asyncio
    async def test_unhealthy_when_store_reports_false(self):
        status = await HealthCheckService(session_store=_store(result=False)).check_readiness()

        assert status.status == "unhealthy"
        assert "returned False" in status.dependencies[0].error

    @pytest.mark.asyncio
    async def test_unhealthy_when_store_raises(self):
        service = HealthCheckService(session_store=_store(side_effect=RuntimeError("boom")))

        status = await service.check_readiness()

        assert status.status == "unhealthy"
        assert "boom" in status.dependencies[0].error

    @pytest.mark.asyncio
    async def test_unhealthy_when_store_times_out(self):
        async def slow():
            await asyncio.sleep(1)
            return True

        store = MagicMock()
        store.health_check = slow
        service = HealthCheckService(session_store=store, check_timeout=0.01)

        status = await service.check_readiness()

        assert status.status == "unhealthy"
        assert "timed out" in status.dependencies[0].error

    @pytest.mark.asyncio
    async def test_status_to_dict_uses_utc_z_suffix(self):
        status = await HealthCheckService(session_store=_store()).check_readiness()

        data = status.to_dict()
        assert data["timestamp"].endswith("Z")
        assert data["dependencies"][0]["healthy"] is True

    @pytest.mark.asyncio
    async def test_liveness_and_basic_health(self):
        service = HealthCheckService()

        assert (await service.check_liveness())["status"] == "alive"
        assert (await service.check_health())["status"] == "ok"
