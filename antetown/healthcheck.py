"""Healthcheck service for antetown

Runs a small HTTP server on HEALTHCHECK_PORT that returns JSON status for the
process and every registered table.
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from aiohttp import web

from .settings import Settings, get_server_info, load_settings


class HealthcheckService:
    def __init__(self, settings: Optional[Settings] = None, host: Optional[str] = None,
                 port: Optional[int] = None):
        self.settings = settings or load_settings()
        self.host = host or self.settings.health_host
        self.port = port if port is not None else self.settings.health_port
        self.started_at = time.time()
        self._tables: Dict[str, Any] = {}
        self._runner: Optional[web.AppRunner] = None

    def register(self, table):
        """Track a table (or a TableRunner wrapping one)."""
        machine = getattr(table, 'machine', table)
        self._tables[machine.table_id] = table

    def unregister(self, table_id: str):
        self._tables.pop(table_id, None)

    def table_status(self) -> List[Dict[str, Any]]:
        out = []
        for table_id, table in self._tables.items():
            machine = getattr(table, 'machine', table)
            out.append({
                'table_id': table_id,
                'game_type': machine.game_type,
                'phase': machine.phase.value,
                'round_id': machine.round.round_id if machine.round else None,
                'seats': len(machine.seats),
                'running': getattr(table, 'running', None),
            })
        return out

    def status_payload(self) -> Dict[str, Any]:
        return {
            'status': 'ok',
            'uptime': int(time.time() - self.started_at),
            'server': get_server_info(self.settings),
            'tables': self.table_status(),
        }

    async def status_handler(self, request):
        return web.json_response(self.status_payload())

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/health', self.status_handler)
        return app

    async def start(self):
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host=self.host, port=self.port)
        await site.start()
        logging.info(f'Healthcheck HTTP server listening on {self.host}:{self.port}')

    async def stop(self):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None


async def start_healthcheck_in_background(service: Optional[HealthcheckService] = None) -> HealthcheckService:
    svc = service or HealthcheckService()
    await svc.start()
    return svc


if __name__ == '__main__':
    import argparse
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser()
    parser.add_argument('--host', default=None)
    args = parser.parse_args()

    async def _serve():
        await HealthcheckService(host=args.host).start()
        await asyncio.Event().wait()

    asyncio.run(_serve())
