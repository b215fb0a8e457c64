"""
Appeal service - 申訴流程
Members contest a moderation action or a flag report; administrators resolve.
"""
from __future__ import annotations
import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.appeal import Appeal, AppealStatus
from models.flag_report import FlagReport
from models.moderation import ModerationAction
from services.role_service import Actor, RoleService
from services.state_machines import ensure_transition, is_terminal
from utils.db import commit_or_conflict
from utils.errors import Conflict, Forbidden, InvalidArgument, NotFound
from utils.pagination import Page, PageRequest, paginate
from utils.timefmt import parse_iso, utcnow
from utils.validation import (
    check_keys, exactly_one, id_in_range, optional_enum, optional_id, optional_text, parse_enum, require_text,
)

logger = logging.getLogger(__name__)

CREATE_FIELDS = {"moderation_action_id", "flag_report_id", "appeal_rationale"}
MUTABLE_FIELDS = {"status", "resolution_notes"}
OPEN_STATUSES = (AppealStatus.PENDING.value, AppealStatus.IN_REVIEW.value)


class AppealService:

    @staticmethod
    def create(session: Session, actor: Actor, data: Mapping[str, Any]) -> Appeal:
        check_keys(data, CREATE_FIELDS, "appeal")
        parent_field = exactly_one(data, ("moderation_action_id", "flag_report_id"))
        parent_id = optional_id(data.get(parent_field), parent_field)
        rationale = require_text(data.get("appeal_rationale"), "appeal_rationale")

        if parent_field == "moderation_action_id":
            action = session.get(ModerationAction, parent_id)
            if action is None:
                raise NotFound(f"moderation action {parent_id} not found", details={"moderation_action_id": parent_id})
            if action.target_member_id is not None and action.target_member_id != actor.member_id:
                logger.warning("member %s tried to appeal action %s targeting another member", actor.member_id, parent_id)
                raise Forbidden(
                    "only the targeted member may appeal this action",
                    details={"moderation_action_id": parent_id},
                )
            column = Appeal.moderation_action_id
        else:
            report = session.get(FlagReport, parent_id)
            if report is None or report.deleted_at is not None:
                raise NotFound(f"flag report {parent_id} not found", details={"flag_report_id": parent_id})
            column = Appeal.flag_report_id

        open_appeal = session.scalars(
            select(Appeal).where(
                Appeal.appellant_member_id == actor.member_id,
                column == parent_id,
                Appeal.status.in_(OPEN_STATUSES),
            )
        ).first()
        if open_appeal is not None:
            raise Conflict(
                f"an open appeal already exists for {parent_field} {parent_id}",
                details={"appeal_id": open_appeal.id},
            )

        now = utcnow()
        appeal = Appeal(
            appellant_member_id=actor.member_id,
            appeal_rationale=rationale,
            status=AppealStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            **{parent_field: parent_id},
        )
        session.add(appeal)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise Conflict(
                f"an open appeal already exists for {parent_field} {parent_id}",
                details={parent_field: parent_id},
            )
        logger.info("appeal %s filed by member %s on %s %s", appeal.id, actor.member_id, parent_field, parent_id)
        return appeal

    @staticmethod
    def update(session: Session, actor: Actor, appeal_id: int, patch: Mapping[str, Any]) -> Appeal:
        RoleService.require_administrator(actor)
        appeal = _load(session, appeal_id, for_update=True)
        current = AppealStatus(appeal.status)
        if is_terminal(current):
            raise Conflict(
                f"appeal {appeal_id} is already {current.value}",
                details={"appeal_id": appeal_id, "status": current.value},
            )
        check_keys(patch, MUTABLE_FIELDS, "appeal update")

        notes = optional_text(patch.get("resolution_notes"), "resolution_notes") \
            if "resolution_notes" in patch else appeal.resolution_notes
        if "status" in patch:
            target = parse_enum(AppealStatus, patch.get("status"), "status")
            if target != current:
                ensure_transition(current, target, "appeal")
                if is_terminal(target):
                    if not notes:
                        raise InvalidArgument(
                            f"resolution_notes are required to mark an appeal {target.value}",
                            details={"field": "resolution_notes"},
                        )
                    appeal.resolved_at = utcnow()
                    appeal.resolved_by_administrator_id = actor.administrator_id
                appeal.status = target.value
        appeal.resolution_notes = notes
        appeal.updated_at = utcnow()

        commit_or_conflict(session, f"appeal {appeal_id}")
        logger.info("appeal %s -> %s by administrator %s", appeal_id, appeal.status, actor.administrator_id)
        return appeal

    @staticmethod
    def erase(session: Session, actor: Actor, appeal_id: int) -> None:
        RoleService.require_administrator(actor)
        appeal = _load(session, appeal_id, for_update=True)
        session.delete(appeal)
        session.commit()
        logger.info("appeal %s erased by administrator %s", appeal_id, actor.administrator_id)

    @staticmethod
    def get(session: Session, actor: Actor, appeal_id: int) -> Appeal:
        appeal = _load(session, appeal_id)
        if actor.is_administrator or actor.is_moderator or appeal.appellant_member_id == actor.member_id:
            return appeal
        logger.warning("member %s denied on appeal %s", actor.member_id, appeal_id)
        raise Forbidden("you may only view your own appeals", details={"appeal_id": appeal_id})

    @staticmethod
    def index(session: Session, actor: Actor, filters: Mapping[str, Any], page: PageRequest) -> Page:
        RoleService.require_staff(actor)
        stmt = _filtered(select(Appeal), filters)
        appellant_id = optional_id(filters.get("appellant_id"), "appellant_id")
        if appellant_id is not None:
            stmt = stmt.where(Appeal.appellant_member_id == appellant_id)
        return paginate(session, stmt.order_by(Appeal.created_at.desc(), Appeal.id.desc()), page)

    @staticmethod
    def index_own(session: Session, actor: Actor, filters: Mapping[str, Any], page: PageRequest) -> Page:
        stmt = _filtered(select(Appeal).where(Appeal.appellant_member_id == actor.member_id), filters)
        return paginate(session, stmt.order_by(Appeal.created_at.desc(), Appeal.id.desc()), page)


def _load(session: Session, appeal_id: int, *, for_update: bool = False) -> Appeal:
    appeal = session.get(Appeal, appeal_id, with_for_update=for_update) if id_in_range(appeal_id) else None
    if appeal is None:
        raise NotFound(f"appeal {appeal_id} not found", details={"appeal_id": appeal_id})
    return appeal


def _filtered(stmt, filters: Mapping[str, Any]):
    status = optional_enum(AppealStatus, filters.get("status"), "status")
    if status is not None:
        stmt = stmt.where(Appeal.status == status.value)
    for field, column in (
        ("moderation_action_id", Appeal.moderation_action_id),
        ("flag_report_id", Appeal.flag_report_id),
    ):
        value = optional_id(filters.get(field), field)
        if value is not None:
            stmt = stmt.where(column == value)
    created_from = parse_iso(filters.get("created_from"), "created_from")
    created_to = parse_iso(filters.get("created_to"), "created_to")
    if created_from is not None:
        stmt = stmt.where(Appeal.created_at >= created_from)
    if created_to is not None:
        stmt = stmt.where(Appeal.created_at <= created_to)
    return stmt
