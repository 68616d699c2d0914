"""Health and metrics HTTP server."""

from __future__ import annotations

from aiohttp import web

from news_agent.config import HealthSettings
from news_agent.logging import get_logger
from news_agent.services.metrics import metrics
from news_agent.services.single_flight import SingleFlightGuard


class HealthServer:
    def __init__(self, settings: HealthSettings, *, guard: SingleFlightGuard | None = None) -> None:
        self._settings = settings
        self._guard = guard
        self._runner: web.AppRunner | None = None
        self._log = get_logger(__name__)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        runner = web.AppRunner(self.build_app())
        await runner.setup()
        site = web.TCPSite(runner, host=self._settings.host, port=self._settings.port)
        await site.start()
        self._runner = runner
        self._log.info("health_server_started", host=self._settings.host, port=self._settings.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        running = self._guard.holder if self._guard else None
        return web.json_response({"status": "ok", "running_task": running})

    @staticmethod
    async def _handle_metrics(request: web.Request) -> web.Response:
        body = metrics.render()
        return web.Response(text=body, content_type="text/plain", charset="utf-8")
