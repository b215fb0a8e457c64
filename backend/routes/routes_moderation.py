from flask import Blueprint, request

from services.moderation_action_service import ModerationActionService
from services.moderation_log_service import ModerationLogService
from services.role_service import ROLE_ADMINISTRATOR, ROLE_MODERATOR, Actor
from utils.authz import require_role
from utils.db import get_session
from utils.pagination import PageRequest
from utils.response_helpers import json_body, paginated_response, success_response

bp = Blueprint("moderation", __name__, url_prefix="/api/moderation")

STAFF = (ROLE_MODERATOR, ROLE_ADMINISTRATOR)


@bp.get("/me")
@require_role()
def whoami(actor: Actor):
    return success_response(actor.to_dict())


# ---- moderation actions ----

@bp.post("/actions")
@require_role(ROLE_MODERATOR)
def create_action(actor: Actor):
    data = json_body()
    with get_session() as s:
        action = ModerationActionService.create(s, actor, data)
        return success_response(action.to_dict(), 201)


@bp.get("/actions")
@require_role(*STAFF)
def list_actions(actor: Actor):
    page = PageRequest.from_args(request.args)
    with get_session() as s:
        result = ModerationActionService.list(s, actor, request.args, page)
        return paginated_response(result, lambda a: a.to_summary())


@bp.get("/actions/<int:action_id>")
@require_role(*STAFF)
def get_action(action_id: int, actor: Actor):
    with get_session() as s:
        action = ModerationActionService.get(s, actor, action_id)
        return success_response(action.to_dict())


@bp.patch("/actions/<int:action_id>")
@require_role(*STAFF)
def update_action(action_id: int, actor: Actor):
    patch = json_body()
    with get_session() as s:
        action = ModerationActionService.update(s, actor, action_id, patch)
        return success_response(action.to_dict())


@bp.delete("/actions/<int:action_id>")
@require_role(ROLE_ADMINISTRATOR)
def erase_action(action_id: int, actor: Actor):
    with get_session() as s:
        ModerationActionService.erase(s, actor, action_id)
    return success_response({"id": action_id, "deleted": True})


# ---- moderation logs (always scoped by the path action id) ----

@bp.post("/actions/<int:action_id>/logs")
@require_role(*STAFF)
def create_log(action_id: int, actor: Actor):
    data = json_body()
    with get_session() as s:
        entry = ModerationLogService.create(s, actor, action_id, data)
        return success_response(entry.to_dict(), 201)


@bp.get("/actions/<int:action_id>/logs")
@require_role(*STAFF)
def index_logs(action_id: int, actor: Actor):
    page = PageRequest.from_args(request.args)
    with get_session() as s:
        result = ModerationLogService.index(s, actor, action_id, request.args, page)
        return paginated_response(result, lambda e: e.to_dict())


@bp.get("/actions/<int:action_id>/logs/<int:log_id>")
@require_role(*STAFF)
def get_log(action_id: int, log_id: int, actor: Actor):
    with get_session() as s:
        entry = ModerationLogService.get(s, actor, action_id, log_id)
        return success_response(entry.to_dict())


@bp.patch("/actions/<int:action_id>/logs/<int:log_id>")
@require_role(*STAFF)
def update_log(action_id: int, log_id: int, actor: Actor):
    patch = json_body()
    with get_session() as s:
        entry = ModerationLogService.update(s, actor, action_id, log_id, patch)
        return success_response(entry.to_dict())
