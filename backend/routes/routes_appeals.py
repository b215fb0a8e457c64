"""
Appeal endpoints - 申訴
Members file and follow their appeals; administrators resolve them.
"""
from flask import Blueprint, request

from services.appeal_service import AppealService
from services.role_service import ROLE_ADMINISTRATOR, ROLE_MODERATOR, Actor
from utils.authz import require_role
from utils.db import get_session
from utils.pagination import PageRequest
from utils.response_helpers import json_body, paginated_response, success_response

bp = Blueprint("appeals", __name__, url_prefix="/api/appeals")


@bp.post("")
@require_role()
def create_appeal(actor: Actor):
    data = json_body()
    with get_session() as s:
        appeal = AppealService.create(s, actor, data)
        return success_response(appeal.to_dict(), 201)


@bp.get("")
@require_role(ROLE_MODERATOR, ROLE_ADMINISTRATOR)
def index_appeals(actor: Actor):
    page = PageRequest.from_args(request.args)
    with get_session() as s:
        result = AppealService.index(s, actor, request.args, page)
        return paginated_response(result, lambda a: a.to_dict())


@bp.get("/mine")
@require_role()
def my_appeals(actor: Actor):
    page = PageRequest.from_args(request.args)
    with get_session() as s:
        result = AppealService.index_own(s, actor, request.args, page)
        return paginated_response(result, lambda a: a.to_dict())


@bp.get("/<int:appeal_id>")
@require_role()
def get_appeal(appeal_id: int, actor: Actor):
    with get_session() as s:
        appeal = AppealService.get(s, actor, appeal_id)
        return success_response(appeal.to_dict())


@bp.patch("/<int:appeal_id>")
@require_role(ROLE_ADMINISTRATOR)
def update_appeal(appeal_id: int, actor: Actor):
    patch = json_body()
    with get_session() as s:
        appeal = AppealService.update(s, actor, appeal_id, patch)
        return success_response(appeal.to_dict())


@bp.delete("/<int:appeal_id>")
@require_role(ROLE_ADMINISTRATOR)
def erase_appeal(appeal_id: int, actor: Actor):
    with get_session() as s:
        AppealService.erase(s, actor, appeal_id)
    return success_response({"id": appeal_id, "deleted": True})
