"""
Flag report triage - 檢舉處理
Members flag posts/comments with a controlled reason; staff triage them.
"""
from __future__ import annotations
import logging
from typing import Any, Mapping

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.flag_report import FlagReason, FlagReport, FlagStatus, FlagTargetType
from models.moderation import ModerationAction
from services.content_directory import ContentDirectory
from services.role_service import Actor, RoleService
from services.state_machines import ensure_transition, is_terminal
from utils.db import commit_or_conflict
from utils.errors import Conflict, Forbidden, InvalidArgument, NotFound
from utils.pagination import Page, PageRequest, paginate
from utils.timefmt import parse_iso, utcnow
from utils.validation import (
    check_keys, exactly_one, id_in_range, optional_enum, optional_id, optional_text, parse_enum,
)

logger = logging.getLogger(__name__)

CREATE_FIELDS = {"post_id", "comment_id", "reason", "details"}
MUTABLE_FIELDS = {"status", "details", "reviewed_at", "moderation_action_id"}
# pending is only ever the initial state
TARGET_STATUSES = tuple(s for s in FlagStatus if s is not FlagStatus.PENDING)
SORTABLE = {
    "created_at": FlagReport.created_at,
    "status": FlagReport.status,
    "reason": FlagReport.reason,
}
DETAILS_MAX = 2000


class FlagReportService:

    @staticmethod
    def create(session: Session, actor: Actor, data: Mapping[str, Any]) -> FlagReport:
        check_keys(data, CREATE_FIELDS, "flag report")
        target_field = exactly_one(data, ("post_id", "comment_id"))
        target_id = optional_id(data.get(target_field), target_field)
        reason = parse_enum(FlagReason, data.get("reason"), "reason")
        details = optional_text(data.get("details"), "details", max_length=DETAILS_MAX)

        ContentDirectory(session).ensure(**{target_field: target_id})

        column = FlagReport.post_id if target_field == "post_id" else FlagReport.comment_id
        duplicate = session.scalars(
            select(FlagReport).where(
                FlagReport.reporter_id == actor.member_id,
                column == target_id,
                FlagReport.deleted_at.is_(None),
            )
        ).first()
        if duplicate is not None:
            raise Conflict(
                f"you have already reported this {target_field.removesuffix('_id')}",
                details={"flag_report_id": duplicate.id},
                hint="同一內容只能檢舉一次",
            )

        now = utcnow()
        report = FlagReport(
            reporter_id=actor.member_id,
            reason=reason.value,
            details=details,
            status=FlagStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            **{target_field: target_id},
        )
        session.add(report)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise Conflict(
                f"you have already reported this {target_field.removesuffix('_id')}",
                details={target_field: target_id},
                hint="同一內容只能檢舉一次",
            )
        logger.info("flag report %s (%s) on %s %s by member %s",
                    report.id, reason.value, target_field, target_id, actor.member_id)
        return report

    @staticmethod
    def update(session: Session, actor: Actor, report_id: int, patch: Mapping[str, Any]) -> FlagReport:
        RoleService.require_staff(actor)
        report = _load(session, report_id, for_update=True)
        if is_terminal(FlagStatus(report.status)):
            raise Conflict(
                f"flag report {report_id} is already {report.status}",
                details={"flag_report_id": report_id, "status": report.status},
            )
        check_keys(patch, MUTABLE_FIELDS, "flag report update")

        reviewed_at = parse_iso(patch.get("reviewed_at"), "reviewed_at") if "reviewed_at" in patch else None
        if "status" in patch:
            target = parse_enum(FlagStatus, patch.get("status"), "status", allowed=TARGET_STATUSES)
            current = FlagStatus(report.status)
            if target != current:
                ensure_transition(current, target, "flag report")
                report.status = target.value
                if report.reviewed_at is None and reviewed_at is None:
                    reviewed_at = utcnow()
                report.reviewed_by_member_id = actor.member_id
        if reviewed_at is not None:
            report.reviewed_at = reviewed_at
        if "details" in patch:
            report.details = optional_text(patch.get("details"), "details", max_length=DETAILS_MAX)
        if "moderation_action_id" in patch:
            action_id = optional_id(patch.get("moderation_action_id"), "moderation_action_id")
            if action_id is not None and session.get(ModerationAction, action_id) is None:
                raise NotFound(f"moderation action {action_id} not found", details={"moderation_action_id": action_id})
            report.moderation_action_id = action_id
        report.updated_at = utcnow()

        commit_or_conflict(session, f"flag report {report_id}")
        logger.info("flag report %s -> %s by member %s", report_id, report.status, actor.member_id)
        return report

    @staticmethod
    def get(session: Session, actor: Actor, report_id: int) -> FlagReport:
        report = _load(session, report_id)
        if actor.is_administrator or actor.is_moderator or report.reporter_id == actor.member_id:
            return report
        logger.warning("member %s denied on flag report %s", actor.member_id, report_id)
        raise Forbidden("you may only view your own flag reports", details={"flag_report_id": report_id})

    @staticmethod
    def withdraw(session: Session, actor: Actor, report_id: int) -> FlagReport:
        """Soft delete. Reporters may withdraw while pending; staff may remove any report."""
        report = _load(session, report_id, for_update=True)
        staff = actor.is_administrator or actor.is_moderator
        if not staff:
            if report.reporter_id != actor.member_id:
                logger.warning("member %s denied withdrawing flag report %s", actor.member_id, report_id)
                raise Forbidden("you may only withdraw your own flag reports", details={"flag_report_id": report_id})
            if report.status != FlagStatus.PENDING.value:
                raise Conflict(
                    f"flag report {report_id} is already {report.status}",
                    details={"flag_report_id": report_id, "status": report.status},
                    hint="已進入審查的檢舉無法撤回",
                )
        now = utcnow()
        report.deleted_at = now
        report.deleted_by_member_id = actor.member_id
        report.updated_at = now
        commit_or_conflict(session, f"flag report {report_id}")
        logger.info("flag report %s withdrawn by member %s", report_id, actor.member_id)
        return report

    @staticmethod
    def index(session: Session, actor: Actor, filters: Mapping[str, Any], page: PageRequest) -> Page:
        RoleService.require_staff(actor)
        stmt = select(FlagReport).where(FlagReport.deleted_at.is_(None))

        for field, column in (
            ("reporter_id", FlagReport.reporter_id),
            ("post_id", FlagReport.post_id),
            ("comment_id", FlagReport.comment_id),
        ):
            value = optional_id(filters.get(field), field)
            if value is not None:
                stmt = stmt.where(column == value)

        target_type = optional_enum(FlagTargetType, filters.get("target_type"), "target_type")
        if target_type is FlagTargetType.POST:
            stmt = stmt.where(FlagReport.post_id.is_not(None))
        elif target_type is FlagTargetType.COMMENT:
            stmt = stmt.where(FlagReport.comment_id.is_not(None))

        reason = optional_enum(FlagReason, filters.get("reason"), "reason")
        if reason is not None:
            stmt = stmt.where(FlagReport.reason == reason.value)
        status = optional_enum(FlagStatus, filters.get("status"), "status")
        if status is not None:
            stmt = stmt.where(FlagReport.status == status.value)

        created_from = parse_iso(filters.get("created_from"), "created_from")
        created_to = parse_iso(filters.get("created_to"), "created_to")
        if created_from is not None:
            stmt = stmt.where(FlagReport.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(FlagReport.created_at <= created_to)

        search = optional_text(filters.get("search"), "search", max_length=200)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(FlagReport.reason.ilike(pattern), FlagReport.details.ilike(pattern)))

        stmt = stmt.order_by(*_ordering(filters))
        return paginate(session, stmt, page)


def _load(session: Session, report_id: int, *, for_update: bool = False) -> FlagReport:
    report = session.get(FlagReport, report_id, with_for_update=for_update) if id_in_range(report_id) else None
    if report is None or report.deleted_at is not None:
        raise NotFound(f"flag report {report_id} not found", details={"flag_report_id": report_id})
    return report


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
        return column.asc(), FlagReport.id.asc()
    return column.desc(), FlagReport.id.desc()
