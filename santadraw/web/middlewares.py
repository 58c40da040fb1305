from __future__ import annotations

from aiohttp import web
from loguru import logger

from santadraw.db import get_session
from santadraw.services import draw_flow
from santadraw.services.assignment import AssignmentError, AssignmentInfeasible, InsufficientParticipants
from santadraw.services.mailer import MailerError
from santadraw.web.keys import USER_ID
from santadraw.web.utils import log_handler_exception

USER_EMAIL_HEADER = "X-User-Email"
USER_NAME_HEADER = "X-User-Name"

_STATUS_BY_ERROR = (
    (draw_flow.NotFoundError, 404),
    (draw_flow.AccessDeniedError, 403),
    (draw_flow.ConflictError, 409),
    (draw_flow.ValidationError, 400),
    (AssignmentError, 400),
    (MailerError, 502),
)


def _error_kind(error: Exception) -> str:
    if isinstance(error, InsufficientParticipants):
        return "insufficient_participants"
    if isinstance(error, AssignmentInfeasible):
        return "infeasible"
    return type(error).__name__


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except tuple(error for error, _ in _STATUS_BY_ERROR) as exc:
        status = next(code for error, code in _STATUS_BY_ERROR if isinstance(exc, error))
        logger.bind(path=request.path, status=status).info("Request rejected: {error}", error=str(exc))
        return web.json_response({"error": str(exc), "kind": _error_kind(exc)}, status=status)
    except Exception as exc:
        log_handler_exception(request, exc, request.get(USER_ID))
        return web.json_response({"error": "Something went wrong. Please try again later."}, status=500)


@web.middleware
async def user_middleware(request: web.Request, handler):
    """Resolve the acting user from the identity headers set by the auth proxy."""
    email = (request.headers.get(USER_EMAIL_HEADER) or "").strip()
    if not email:
        return web.json_response({"error": "Unauthorized"}, status=401)

    with get_session() as session:
        user = draw_flow.ensure_user(session, email, request.headers.get(USER_NAME_HEADER))
        request[USER_ID] = user.id
    return await handler(request)
