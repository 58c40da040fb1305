from __future__ import annotations

import asyncio
from typing import Optional

from aiohttp import web

from santadraw.core.config import Settings
from santadraw.db import get_session
from santadraw.services import draw_flow, mailer
from santadraw.services.draw_flow import ValidationError
from santadraw.web.keys import SETTINGS, USER_ID
from santadraw.web.serializers import assignment_to_dict
from santadraw.web.utils import check_rate_limit, current_user, match_int, read_json

routes = web.RouteTableDef()


def _parse_seed(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Seed must be an integer.")
    return value


def _run(draw_session_id: int, user_id: int, seed: Optional[int], max_attempts: int) -> dict:
    with get_session() as session:
        user = draw_flow.get_user(session, user_id)
        draw_session = draw_flow.require_access(session, draw_session_id, user)
        result = draw_flow.run_draw(session, draw_session, seed=seed, max_attempts=max_attempts)
        return {"ok": True, "seed": result.seed, "count": len(result.assignments)}


@routes.post("/draw-sessions/{id}/run")
async def run_draw_handler(request: web.Request) -> web.Response:
    check_rate_limit(request, "run")
    body = await read_json(request)
    data = await asyncio.to_thread(
        _run,
        match_int(request, "id"),
        request[USER_ID],
        _parse_seed(body.get("seed")),
        request.app[SETTINGS].max_draw_attempts,
    )
    return web.json_response(data)


@routes.get("/draw-sessions/{id}/assignments")
async def list_assignments_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        assignments = draw_flow.list_assignments(session, draw_session)
        return web.json_response([assignment_to_dict(a) for a in assignments])


def _send_all(draw_session_id: int, user_id: int, settings: Settings) -> int:
    with get_session() as session:
        user = draw_flow.get_user(session, user_id)
        draw_session = draw_flow.require_access(session, draw_session_id, user)
        return mailer.send_all_for_session(session, draw_session, settings)


def _resend(assignment_id: int, user_id: int, settings: Settings) -> None:
    with get_session() as session:
        user = draw_flow.get_user(session, user_id)
        assignment = draw_flow.get_assignment_for_user(session, assignment_id, user)
        mailer.resend_for_assignment(session, assignment, settings)


@routes.post("/draw-sessions/{id}/send-all")
async def send_all_handler(request: web.Request) -> web.Response:
    check_rate_limit(request, "send-all")
    sent = await asyncio.to_thread(
        _send_all, match_int(request, "id"), request[USER_ID], request.app[SETTINGS]
    )
    return web.json_response({"ok": True, "sent": sent})


@routes.post("/assignments/{id}/resend")
async def resend_handler(request: web.Request) -> web.Response:
    check_rate_limit(request, "resend")
    await asyncio.to_thread(_resend, match_int(request, "id"), request[USER_ID], request.app[SETTINGS])
    return web.json_response({"ok": True})
