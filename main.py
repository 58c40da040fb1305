from __future__ import annotations

import asyncio

import uvloop
from aiohttp import web
from loguru import logger

from santadraw.core.config import load_settings
from santadraw.core.logging import setup_logging
from santadraw.db import init_engine
from santadraw.web import create_app


async def on_startup(app: web.Application) -> None:
    logger.info("santadraw starting...")


async def on_shutdown(app: web.Application) -> None:
    logger.info("santadraw stopped")


async def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_path)
    engine = init_engine(settings.database_url)

    app = create_app(settings)
    app.on_startup.append(on_startup)
    app.on_shutdown.append(on_shutdown)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.http_host, settings.http_port)
    await site.start()

    logger.info("Listening - http://{host}:{port}", host=settings.http_host, port=settings.http_port)
    logger.info("Database  - {dialect}", dialect=engine.dialect.name)
    logger.info("Draw attempts per run - {attempts}", attempts=settings.max_draw_attempts)

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        engine.dispose()


if __name__ == "__main__":
    if not getattr(asyncio, "debug", False):
        uvloop.install()

    asyncio.run(main())
