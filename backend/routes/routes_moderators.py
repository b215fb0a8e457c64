"""
Administrator endpoints for the role registry:
bootstrap self-registration and moderator grant lifecycle.
"""
from flask import Blueprint, request

from services.role_service import (
    ROLE_ADMINISTRATOR, Actor, RoleService, administrator_to_dict, moderator_to_dict,
)
from utils.authz import require_role
from utils.db import get_session
from utils.pagination import PageRequest
from utils.response_helpers import paginated_response, success_response

bp = Blueprint("moderators", __name__, url_prefix="/api/admin")


@bp.post("/administrators/join")
@require_role()
def join_administrators(actor: Actor):
    with get_session() as s:
        admin, created = RoleService.register_administrator(s, actor.member_id)
        return success_response(administrator_to_dict(admin), 201 if created else 200)


@bp.put("/members/<int:member_id>/moderator")
@require_role(ROLE_ADMINISTRATOR)
def assign_moderator(member_id: int, actor: Actor):
    with get_session() as s:
        grant, created = RoleService.assign_moderator(s, actor, member_id)
        return success_response(moderator_to_dict(grant), 201 if created else 200)


@bp.post("/moderators/<int:moderator_id>/revoke")
@require_role(ROLE_ADMINISTRATOR)
def revoke_moderator(moderator_id: int, actor: Actor):
    with get_session() as s:
        grant = RoleService.revoke_moderator(s, actor, moderator_id)
        return success_response(moderator_to_dict(grant))


@bp.get("/moderators")
@require_role(ROLE_ADMINISTRATOR)
def list_moderators(actor: Actor):
    page = PageRequest.from_args(request.args)
    with get_session() as s:
        result = RoleService.list_moderators(s, actor, request.args, page)
        return paginated_response(result, moderator_to_dict)


@bp.get("/moderators/<int:moderator_id>")
@require_role(ROLE_ADMINISTRATOR)
def get_moderator(moderator_id: int, actor: Actor):
    with get_session() as s:
        grant = RoleService.get_moderator(s, actor, moderator_id)
        return success_response(moderator_to_dict(grant))
