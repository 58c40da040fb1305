from __future__ import annotations

import asyncio

from aiohttp import web

from santadraw.core.config import Settings
from santadraw.db import get_session
from santadraw.services import draw_flow, mailer
from santadraw.web.keys import SETTINGS, USER_ID
from santadraw.web.serializers import share_to_dict
from santadraw.web.utils import check_rate_limit, current_user, match_int, read_json

routes = web.RouteTableDef()


def _share(draw_session_id: int, user_id: int, email, settings: Settings) -> dict:
    with get_session() as session:
        user = draw_flow.get_user(session, user_id)
        draw_session = draw_flow.require_owner(session, draw_session_id, user)
        share = draw_flow.share_draw_session(session, draw_session, user, email)
        invited = mailer.send_share_invitation(session, share, settings)
        return dict(share_to_dict(share), invitationSent=invited)


@routes.get("/draw-sessions/{id}/shares")
async def list_shares_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_owner(session, match_int(request, "id"), user)
        shares = draw_flow.list_shares(session, draw_session)
        return web.json_response([share_to_dict(share) for share in shares])


@routes.post("/draw-sessions/{id}/shares")
async def create_share_handler(request: web.Request) -> web.Response:
    check_rate_limit(request, "share")
    body = await read_json(request)
    data = await asyncio.to_thread(
        _share, match_int(request, "id"), request[USER_ID], body.get("email"), request.app[SETTINGS]
    )
    return web.json_response(data, status=201)


@routes.delete("/draw-sessions/{id}/shares/{share_id}")
async def delete_share_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_session = draw_flow.require_owner(session, match_int(request, "id"), user)
        draw_flow.delete_share(session, draw_session, match_int(request, "share_id"))
    return web.json_response({"ok": True})


@routes.get("/invitations")
async def list_invitations_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        shares = draw_flow.list_pending_invitations(session, user)
        return web.json_response([share_to_dict(share) for share in shares])


@routes.post("/draw-sessions/{id}/shares/{share_id}/accept")
async def accept_share_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        share = draw_flow.accept_share(
            session, match_int(request, "id"), match_int(request, "share_id"), user
        )
        return web.json_response(
            {"ok": True, "drawSessionId": share.draw_session_id, "sessionName": share.draw_session.name}
        )


@routes.post("/draw-sessions/{id}/shares/{share_id}/reject")
async def reject_share_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        draw_flow.reject_share(session, match_int(request, "id"), match_int(request, "share_id"), user)
    return web.json_response({"ok": True})
