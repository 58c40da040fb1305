from __future__ import annotations

from aiohttp import web

from santadraw.core.config import Settings
from santadraw.services.rate_limit import RateLimiter
from santadraw.web.handlers import route_tables
from santadraw.web.keys import RATE_LIMITER, SETTINGS
from santadraw.web.middlewares import error_middleware, user_middleware


def create_app(settings: Settings, rate_limiter: RateLimiter | None = None) -> web.Application:
    app = web.Application(middlewares=[error_middleware, user_middleware])
    app[SETTINGS] = settings
    app[RATE_LIMITER] = rate_limiter or RateLimiter(max_calls=5, period_seconds=10)
    for routes in route_tables:
        app.add_routes(routes)
    return app
