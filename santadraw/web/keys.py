from aiohttp import web

from santadraw.core.config import Settings
from santadraw.services.rate_limit import RateLimiter

SETTINGS = web.AppKey("settings", Settings)
RATE_LIMITER = web.AppKey("rate_limiter", RateLimiter)

USER_ID = "user_id"
