from __future__ import annotations

from typing import Any, Dict, Optional

from aiohttp import web
from loguru import logger

from santadraw.db import User, repo
from santadraw.services.draw_flow import ValidationError
from santadraw.web.keys import RATE_LIMITER, USER_ID


def current_user(session, request: web.Request) -> User:
    user = repo.get_user_by_id(session, request[USER_ID])
    if user is None:
        raise web.HTTPUnauthorized(text='{"error": "Unauthorized"}', content_type="application/json")
    return user


def match_int(request: web.Request, name: str) -> int:
    try:
        return int(request.match_info[name])
    except (KeyError, ValueError) as exc:
        raise web.HTTPNotFound(text='{"error": "Not found"}', content_type="application/json") from exc


async def read_json(request: web.Request) -> Dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON.") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


def check_rate_limit(request: web.Request, action: str) -> None:
    result = request.app[RATE_LIMITER].allow(f"{request[USER_ID]}:{action}")
    if not result.allowed:
        raise web.HTTPTooManyRequests(
            text='{"error": "You\'re doing that too often. Please slow down."}',
            content_type="application/json",
            headers={"Retry-After": str(int(result.retry_after) + 1)},
        )


def log_handler_exception(request: web.Request, error: Exception, user_id: Optional[int] = None) -> None:
    logger.bind(method=request.method, path=request.path, user_id=user_id).exception(
        "Handler error: {error}", error=str(error)
    )
