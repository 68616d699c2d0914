from __future__ import annotations

import json

import pytest

from news_agent.config import HealthSettings
from news_agent.services.health import HealthServer
from news_agent.services.metrics import metrics
from news_agent.services.single_flight import SingleFlightGuard


@pytest.mark.asyncio
async def test_health_reports_running_task() -> None:
    guard = SingleFlightGuard(timeout_seconds=1.0)
    server = HealthServer(HealthSettings(), guard=guard)

    async with guard.hold("crawl"):
        response = await server._handle_health(None)  # type: ignore[arg-type]

    assert json.loads(response.text) == {"status": "ok", "running_task": "crawl"}


@pytest.mark.asyncio
async def test_metrics_endpoint_renders_registry() -> None:
    metrics.reset()
    metrics.inc_counter("tasks_skipped_total", labels={"task": "send"})

    response = await HealthServer._handle_metrics(None)  # type: ignore[arg-type]

    assert "# TYPE tasks_skipped_total counter" in response.text
    assert 'tasks_skipped_total{task="send"} 1.0' in response.text


def test_build_app_registers_routes() -> None:
    app = HealthServer(HealthSettings()).build_app()

    paths = {route.resource.canonical for route in app.router.routes()}
    assert {"/health", "/metrics"} <= paths
