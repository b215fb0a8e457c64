"""
Module: backend/utils/authz.py
Role gate for blueprints. The JWT only proves identity; roles are looked up
from the grant tables on every request.
"""
import logging
from functools import wraps

from flask import request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from services.role_service import RoleService
from utils.db import get_session
from utils.errors import Forbidden

logger = logging.getLogger(__name__)


def require_role(*roles: str):
    """Resolve the caller and pass it to the view as ``actor``.

    With no roles any active member passes; otherwise the caller must hold
    at least one of them.
    """
    def wrap(fn):
        @wraps(fn)
        def inner(*a, **kw):
            verify_jwt_in_request()
            with get_session() as s:
                actor = RoleService.resolve_actor(s, get_jwt_identity())
            if roles and not actor.has_any(*roles):
                logger.warning(
                    "actor=%s roles=%s path=%s method=%s allow=%s",
                    actor.member_id, sorted(actor.roles), request.path, request.method, roles,
                )
                raise Forbidden(f"requires role: {' or '.join(roles)}")
            return fn(*a, actor=actor, **kw)
        return inner
    return wrap
