from __future__ import annotations

from aiohttp import web

from santadraw.db import get_session
from santadraw.services import draw_flow
from santadraw.web.serializers import smtp_config_to_dict
from santadraw.web.utils import current_user, read_json

routes = web.RouteTableDef()


@routes.get("/smtp")
async def get_smtp_handler(request: web.Request) -> web.Response:
    with get_session() as session:
        user = current_user(session, request)
        return web.json_response(smtp_config_to_dict(draw_flow.get_smtp_config(session, user)))


@routes.put("/smtp")
async def save_smtp_handler(request: web.Request) -> web.Response:
    body = await read_json(request)
    with get_session() as session:
        user = current_user(session, request)
        config = draw_flow.save_smtp_config(
            session,
            user,
            host=body.get("host"),
            port=body.get("port"),
            secure=body.get("secure", False),
            user_name=body.get("userName"),
            password=body.get("password"),
            sender=body.get("sender"),
        )
        return web.json_response(smtp_config_to_dict(config))
