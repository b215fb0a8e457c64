"""
Moderation log recorder.
Append-only audit entries scoped to one moderation action; only
event_details can be corrected afterwards.
"""
from __future__ import annotations
import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.moderation import ModerationAction, ModerationLog
from services.content_directory import ContentDirectory
from services.moderation_action_service import ensure_owner_or_admin
from services.role_service import Actor, RoleService
from utils.errors import NotFound
from utils.pagination import Page, PageRequest, paginate
from utils.timefmt import parse_iso, utcnow
from utils.validation import check_keys, id_in_range, optional_id, optional_text, require_text

logger = logging.getLogger(__name__)

CREATE_FIELDS = {"event_type", "event_details", "actor_member_id"}
MUTABLE_FIELDS = {"event_details"}


class ModerationLogService:

    @staticmethod
    def create(session: Session, actor: Actor, action_id: int, data: Mapping[str, Any]) -> ModerationLog:
        RoleService.require_staff(actor)
        _parent(session, action_id)
        check_keys(data, CREATE_FIELDS, "moderation log")

        event_type = require_text(data.get("event_type"), "event_type", max_length=64)
        actor_member_id = optional_id(data.get("actor_member_id"), "actor_member_id")
        if actor_member_id is None:
            actor_member_id = actor.member_id
        else:
            ContentDirectory(session).ensure(member_id=actor_member_id)

        now = utcnow()
        entry = ModerationLog(
            related_action_id=action_id,
            actor_member_id=actor_member_id,
            event_type=event_type,
            event_details=optional_text(data.get("event_details"), "event_details"),
            created_at=now,
            updated_at=now,
        )
        session.add(entry)
        session.commit()
        logger.info("log %s (%s) appended to moderation action %s", entry.id, event_type, action_id)
        return entry

    @staticmethod
    def get(session: Session, actor: Actor, action_id: int, log_id: int) -> ModerationLog:
        RoleService.require_staff(actor)
        _parent(session, action_id)
        return _scoped(session, action_id, log_id)

    @staticmethod
    def update(session: Session, actor: Actor, action_id: int, log_id: int,
               patch: Mapping[str, Any]) -> ModerationLog:
        RoleService.require_staff(actor)
        action = _parent(session, action_id)
        entry = _scoped(session, action_id, log_id)
        ensure_owner_or_admin(session, actor, action)
        check_keys(patch, MUTABLE_FIELDS, "moderation log update")

        entry.event_details = optional_text(patch.get("event_details"), "event_details")
        entry.updated_at = utcnow()
        session.commit()
        logger.info("log %s of moderation action %s corrected by member %s", log_id, action_id, actor.member_id)
        return entry

    @staticmethod
    def index(session: Session, actor: Actor, action_id: int, filters: Mapping[str, Any],
              page: PageRequest) -> Page:
        RoleService.require_staff(actor)
        _parent(session, action_id)

        # the path id is the only scope; related_action_id in the query is ignored
        stmt = select(ModerationLog).where(ModerationLog.related_action_id == action_id)
        actor_member_id = optional_id(filters.get("actor_member_id"), "actor_member_id")
        if actor_member_id is not None:
            stmt = stmt.where(ModerationLog.actor_member_id == actor_member_id)
        event_type = optional_text(filters.get("event_type"), "event_type")
        if event_type is not None:
            stmt = stmt.where(ModerationLog.event_type == event_type)
        created_from = parse_iso(filters.get("created_from"), "created_from")
        created_to = parse_iso(filters.get("created_to"), "created_to")
        if created_from is not None:
            stmt = stmt.where(ModerationLog.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(ModerationLog.created_at <= created_to)

        stmt = stmt.order_by(ModerationLog.created_at.asc(), ModerationLog.id.asc())
        return paginate(session, stmt, page)


def _parent(session: Session, action_id: int) -> ModerationAction:
    action = session.get(ModerationAction, action_id) if id_in_range(action_id) else None
    if action is None:
        raise NotFound(f"moderation action {action_id} not found", details={"action_id": action_id})
    return action


def _scoped(session: Session, action_id: int, log_id: int) -> ModerationLog:
    entry = session.get(ModerationLog, log_id) if id_in_range(log_id) else None
    if entry is None or entry.related_action_id != action_id:
        raise NotFound(
            f"log {log_id} not found under moderation action {action_id}",
            details={"action_id": action_id, "log_id": log_id},
        )
    return entry
