from __future__ import annotations

from aiohttp import web

from santadraw.db import get_session
from santadraw.services import draw_flow
from santadraw.web.serializers import draw_session_to_dict
from santadraw.web.utils import current_user, match_int, read_json

routes = web.RouteTableDef()


@routes.get("/draw-sessions")
async def list_draw_sessions_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        sessions = draw_flow.list_draw_sessions(session, user)
        return web.json_response([draw_session_to_dict(item) for item in sessions])


@routes.post("/draw-sessions")
async def create_draw_session_handler(request: web.Request) -> web.Response:
    body = await read_json(request)
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.create_draw_session(session, user, body.get("name"), body.get("description"))
        return web.json_response(draw_session_to_dict(draw_session), status=201)


@routes.get("/draw-sessions/{id}")
async def get_draw_session_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        return web.json_response(draw_session_to_dict(draw_session, detailed=True))


@routes.patch("/draw-sessions/{id}")
async def update_draw_session_handler(request: web.Request) -> web.Response:
    body = await read_json(request)
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        draw_flow.update_draw_session(
            session,
            draw_session,
            description=body.get("description"),
            email_subject_template=body.get("emailSubjectTemplate"),
            email_template=body.get("emailTemplate"),
        )
        return web.json_response(draw_session_to_dict(draw_session, detailed=True))


@routes.delete("/draw-sessions/{id}")
async def delete_draw_session_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_owner(session, match_int(request, "id"), user)
        draw_flow.delete_draw_session(session, draw_session)
    return web.json_response({"ok": True})
