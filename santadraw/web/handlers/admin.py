from __future__ import annotations

from aiohttp import web

from santadraw.db import get_session
from santadraw.services import draw_flow
from santadraw.web.serializers import user_to_dict
from santadraw.web.utils import current_user

routes = web.RouteTableDef()


@routes.get("/admin/setup")
async def setup_status_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        return web.json_response({"needsSetup": draw_flow.needs_super_admin_setup(session)})


@routes.post("/admin/setup")
async def setup_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = draw_flow.setup_super_admin(session, current_user(session, request))
        return web.json_response(user_to_dict(user), status=201)
