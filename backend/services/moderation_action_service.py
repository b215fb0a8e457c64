"""
Moderation action service - 審核處分
Create, amend, list and hard-delete enforcement decisions.
"""
from __future__ import annotations
import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.base import Moderator
from models.moderation import ActionStatus, ActionType, ModerationAction
from services.content_directory import ContentDirectory
from services.role_service import Actor, RoleService
from services.state_machines import ensure_transition
from utils.db import commit_or_conflict
from utils.errors import Forbidden, InvalidArgument, NotFound
from utils.pagination import Page, PageRequest, paginate
from utils.timefmt import as_utc, parse_iso, utcnow
from utils.validation import (
    check_keys, id_in_range, optional_enum, optional_id, optional_text, parse_enum, require_text,
)

logger = logging.getLogger(__name__)

CREATE_FIELDS = {
    "moderator_id", "target_member_id", "target_post_id", "target_comment_id",
    "action_type", "action_reason", "decision_narrative", "details",
    "effective_from", "effective_until", "status",
}
MUTABLE_FIELDS = {"action_reason", "decision_narrative", "status", "effective_until", "details"}
SORTABLE = {
    "created_at": ModerationAction.created_at,
    "updated_at": ModerationAction.updated_at,
    "effective_from": ModerationAction.effective_from,
}


class ModerationActionService:

    @staticmethod
    def create(session: Session, actor: Actor, data: Mapping[str, Any]) -> ModerationAction:
        check_keys(data, CREATE_FIELDS, "moderation action")

        # grant is re-read inside this transaction; the actor snapshot may be stale
        grant = RoleService.active_moderator_grant(session, actor.member_id)
        if grant is None:
            logger.warning("member %s tried to create a moderation action without an active grant", actor.member_id)
            raise Forbidden("an active moderator grant is required")
        requested = optional_id(data.get("moderator_id"), "moderator_id")
        if requested is None or requested != grant.id:
            raise Forbidden(
                "moderator_id must be your own active moderator grant",
                details={"moderator_id": requested, "your_moderator_id": grant.id},
            )

        action_type = parse_enum(ActionType, data.get("action_type"), "action_type")
        target_member_id = optional_id(data.get("target_member_id"), "target_member_id")
        target_post_id = optional_id(data.get("target_post_id"), "target_post_id")
        target_comment_id = optional_id(data.get("target_comment_id"), "target_comment_id")
        if target_member_id is None and target_post_id is None and target_comment_id is None:
            raise InvalidArgument(
                "at least one of target_member_id, target_post_id, target_comment_id is required",
                details={"fields": ["target_member_id", "target_post_id", "target_comment_id"]},
            )
        action_reason = require_text(data.get("action_reason"), "action_reason")
        if data.get("status") not in (None, ActionStatus.ACTIVE.value):
            raise InvalidArgument("new moderation actions always start as active", details={"field": "status"})

        now = utcnow()
        effective_from = parse_iso(data.get("effective_from"), "effective_from") or now
        effective_until = parse_iso(data.get("effective_until"), "effective_until")
        _check_window(effective_from, effective_until)

        ContentDirectory(session).ensure(
            member_id=target_member_id, post_id=target_post_id, comment_id=target_comment_id,
        )

        action = ModerationAction(
            moderator_id=grant.id,
            target_member_id=target_member_id,
            target_post_id=target_post_id,
            target_comment_id=target_comment_id,
            action_type=action_type.value,
            action_reason=action_reason,
            decision_narrative=optional_text(data.get("decision_narrative"), "decision_narrative"),
            details=optional_text(data.get("details"), "details"),
            status=ActionStatus.ACTIVE.value,
            effective_from=effective_from,
            effective_until=effective_until,
            created_at=now,
            updated_at=now,
        )
        session.add(action)
        session.commit()
        logger.info(
            "moderation action %s (%s) created by moderator %s",
            action.id, action.action_type, action.moderator_id,
        )
        return action

    @staticmethod
    def get(session: Session, actor: Actor, action_id: int) -> ModerationAction:
        RoleService.require_staff(actor)
        return _load(session, action_id)

    @staticmethod
    def update(session: Session, actor: Actor, action_id: int, patch: Mapping[str, Any]) -> ModerationAction:
        RoleService.require_staff(actor)
        action = _load(session, action_id, for_update=True)
        ensure_owner_or_admin(session, actor, action)
        check_keys(patch, MUTABLE_FIELDS, "moderation action update")

        if "action_reason" in patch:
            action.action_reason = require_text(patch.get("action_reason"), "action_reason")
        if "decision_narrative" in patch:
            action.decision_narrative = optional_text(patch.get("decision_narrative"), "decision_narrative")
        if "details" in patch:
            action.details = optional_text(patch.get("details"), "details")
        if "effective_until" in patch:
            until = parse_iso(patch.get("effective_until"), "effective_until")
            _check_window(as_utc(action.effective_from), until)
            action.effective_until = until
        if "status" in patch:
            target = parse_enum(ActionStatus, patch.get("status"), "status")
            current = ActionStatus(action.status)
            if target != current:
                ensure_transition(current, target, "moderation action")
                action.status = target.value

        # bump even when nothing else changed so the edit is visible in the audit trail
        action.updated_at = utcnow()
        commit_or_conflict(session, f"moderation action {action_id}")
        logger.info("moderation action %s updated by member %s: %s", action_id, actor.member_id, sorted(patch))
        return action

    @staticmethod
    def erase(session: Session, actor: Actor, action_id: int) -> None:
        RoleService.require_administrator(actor)
        action = _load(session, action_id, for_update=True)
        session.delete(action)
        session.commit()
        logger.info("moderation action %s erased by administrator %s", action_id, actor.administrator_id)

    @staticmethod
    def list(session: Session, actor: Actor, filters: Mapping[str, Any], page: PageRequest) -> Page:
        RoleService.require_staff(actor)
        stmt = select(ModerationAction)

        for field, column in (
            ("moderator_id", ModerationAction.moderator_id),
            ("target_member_id", ModerationAction.target_member_id),
            ("target_post_id", ModerationAction.target_post_id),
            ("target_comment_id", ModerationAction.target_comment_id),
        ):
            value = optional_id(filters.get(field), field)
            if value is not None:
                stmt = stmt.where(column == value)

        action_type = optional_enum(ActionType, filters.get("action_type"), "action_type")
        if action_type is not None:
            stmt = stmt.where(ModerationAction.action_type == action_type.value)
        status = optional_enum(ActionStatus, filters.get("status"), "status")
        if status is not None:
            stmt = stmt.where(ModerationAction.status == status.value)

        created_from = parse_iso(filters.get("created_from"), "created_from")
        created_to = parse_iso(filters.get("created_to"), "created_to")
        if created_from is not None:
            stmt = stmt.where(ModerationAction.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(ModerationAction.created_at <= created_to)
        effective_from = parse_iso(filters.get("effective_from"), "effective_from")
        effective_to = parse_iso(filters.get("effective_to"), "effective_to")
        if effective_from is not None:
            stmt = stmt.where(ModerationAction.effective_from >= effective_from)
        if effective_to is not None:
            stmt = stmt.where(ModerationAction.effective_from <= effective_to)

        stmt = stmt.order_by(*_ordering(filters))
        return paginate(session, stmt, page)


def ensure_owner_or_admin(session: Session, actor: Actor, action: ModerationAction) -> None:
    """Owning moderator (same member, still a moderator) or any administrator."""
    if actor.is_administrator:
        return
    owner = session.get(Moderator, action.moderator_id)
    if actor.is_moderator and owner is not None and owner.member_id == actor.member_id:
        return
    logger.warning("member %s denied on moderation action %s: not owner", actor.member_id, action.id)
    raise Forbidden(
        "only the owning moderator or an administrator may modify this action",
        details={"action_id": action.id},
    )


def _load(session: Session, action_id: int, *, for_update: bool = False) -> ModerationAction:
    action = session.get(ModerationAction, action_id, with_for_update=for_update) if id_in_range(action_id) else None
    if action is None:
        raise NotFound(f"moderation action {action_id} not found", details={"action_id": action_id})
    return action


def _check_window(effective_from, effective_until) -> None:
    if effective_until is not None and as_utc(effective_until) < as_utc(effective_from):
        raise InvalidArgument(
            "effective_until must not be earlier than effective_from",
            details={"field": "effective_until"},
        )


def _ordering(filters: Mapping[str, Any]):
    sort_by = (filters.get("sort_by") or "created_at").strip()
    if sort_by not in SORTABLE:
        raise InvalidArgument(
            f"sort_by must be one of: {', '.join(sorted(SORTABLE))}",
            details={"field": "sort_by", "value": sort_by},
        )
    direction = (filters.get("sort_direction") or "desc").strip().lower()
    if direction not in {"asc", "desc"}:
        raise InvalidArgument("sort_direction must be asc or desc", details={"field": "sort_direction"})
    column = SORTABLE[sort_by]
    if direction == "asc":
        return column.asc(), ModerationAction.id.asc()
    return column.desc(), ModerationAction.id.desc()
