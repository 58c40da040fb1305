from __future__ import annotations

from aiohttp import web

from santadraw.db import get_session
from santadraw.services import draw_flow
from santadraw.web.serializers import group_to_dict, participant_to_dict
from santadraw.web.utils import current_user, match_int, read_json

routes = web.RouteTableDef()


@routes.post("/draw-sessions/{id}/groups")
async def add_group_handler(request: web.Request) -> web.Response:
    body = await read_json(request)
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        group = draw_flow.add_group(session, draw_session, body.get("name"))
        return web.json_response(group_to_dict(group), status=201)


@routes.delete("/draw-sessions/{id}/groups/{group_id}")
async def delete_group_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        draw_flow.delete_group(session, draw_session, match_int(request, "group_id"))
    return web.json_response({"ok": True})


@routes.get("/draw-sessions/{id}/participants")
async def list_participants_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        participants = draw_flow.list_participants(session, draw_session)
        return web.json_response([participant_to_dict(p) for p in participants])


@routes.post("/draw-sessions/{id}/participants")
async def add_participant_handler(request: web.Request) -> web.Response:
    body = await read_json(request)
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        participant = draw_flow.add_participant(
            session,
            draw_session,
            body.get("name"),
            body.get("email"),
            body.get("groupIds"),
        )
        return web.json_response(participant_to_dict(participant), status=201)


@routes.patch("/draw-sessions/{id}/participants/{participant_id}")
async def update_participant_handler(request: web.Request) -> web.Response:
    body = await read_json(request)
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        participant = draw_flow.update_participant(
            session,
            draw_session,
            match_int(request, "participant_id"),
            body.get("name"),
            body.get("email"),
            body.get("groupIds"),
        )
        return web.json_response(participant_to_dict(participant))


@routes.delete("/draw-sessions/{id}/participants/{participant_id}")
async def delete_participant_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_access(session, match_int(request, "id"), user)
        draw_flow.delete_participant(session, draw_session, match_int(request, "participant_id"))
    return web.json_response({"ok": True})
