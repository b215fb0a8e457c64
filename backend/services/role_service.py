"""
Identity & role registry.
Members are plain identities; moderator and administrator capabilities come
from independent grant rows looked up per request.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.base import Administrator, Member, MemberStatus, Moderator
from utils.config_handler import load_config
from utils.errors import Conflict, Forbidden, InvalidArgument, NotFound, Unauthenticated
from utils.pagination import Page, PageRequest, paginate
from utils.timefmt import iso, utcnow
from utils.validation import id_in_range, optional_id

logger = logging.getLogger(__name__)

ROLE_MEMBER = "member"
ROLE_MODERATOR = "moderator"
ROLE_ADMINISTRATOR = "administrator"


@dataclass(frozen=True)
class Actor:
    """Capability snapshot of the caller, passed explicitly into every service call."""
    member_id: int
    moderator_id: Optional[int] = None
    administrator_id: Optional[int] = None

    @property
    def is_moderator(self) -> bool:
        return self.moderator_id is not None

    @property
    def is_administrator(self) -> bool:
        return self.administrator_id is not None

    @property
    def roles(self) -> frozenset[str]:
        roles = {ROLE_MEMBER}
        if self.is_moderator:
            roles.add(ROLE_MODERATOR)
        if self.is_administrator:
            roles.add(ROLE_ADMINISTRATOR)
        return frozenset(roles)

    def has_any(self, *roles: str) -> bool:
        return bool(self.roles.intersection(roles))

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "moderator_id": self.moderator_id,
            "administrator_id": self.administrator_id,
            "roles": sorted(self.roles),
        }


def moderator_to_dict(m: Moderator) -> dict:
    return {
        "id": m.id,
        "member_id": m.member_id,
        "assigned_by_administrator_id": m.assigned_by_administrator_id,
        "assigned_at": iso(m.assigned_at),
        "revoked_at": iso(m.revoked_at),
        "revoked_by_administrator_id": m.revoked_by_administrator_id,
        "is_active": m.is_active,
    }


def administrator_to_dict(a: Administrator) -> dict:
    return {"id": a.id, "member_id": a.member_id, "created_at": iso(a.created_at)}


class RoleService:

    @staticmethod
    def resolve_actor(session: Session, member_id: Any) -> Actor:
        """Map an authenticated identity onto its active grants."""
        try:
            mid = int(member_id)
        except (TypeError, ValueError):
            raise Unauthenticated("token identity is not a member id")
        member = session.get(Member, mid) if id_in_range(mid) else None
        if member is None or member.status != MemberStatus.active.value:
            raise Unauthenticated("no active member for this identity")
        grant = RoleService.active_moderator_grant(session, mid)
        admin = RoleService.administrator_for(session, mid)
        return Actor(
            member_id=mid,
            moderator_id=grant.id if grant else None,
            administrator_id=admin.id if admin else None,
        )

    @staticmethod
    def active_moderator_grant(session: Session, member_id: int, *, for_update: bool = False) -> Moderator | None:
        stmt = select(Moderator).where(Moderator.member_id == member_id, Moderator.revoked_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()

    @staticmethod
    def administrator_for(session: Session, member_id: int) -> Administrator | None:
        return session.scalars(select(Administrator).where(Administrator.member_id == member_id)).first()

    @staticmethod
    def is_active_moderator(session: Session, member_id: int) -> bool:
        return RoleService.active_moderator_grant(session, member_id) is not None

    @staticmethod
    def is_active_administrator(session: Session, member_id: int) -> bool:
        return RoleService.administrator_for(session, member_id) is not None

    @staticmethod
    def require_administrator(actor: Actor) -> None:
        if not actor.is_administrator:
            logger.warning("member %s denied: administrator required", actor.member_id)
            raise Forbidden("administrator role required")

    @staticmethod
    def require_staff(actor: Actor) -> None:
        if not (actor.is_moderator or actor.is_administrator):
            logger.warning("member %s denied: moderator or administrator required", actor.member_id)
            raise Forbidden("moderator or administrator role required")

    @staticmethod
    def register_administrator(session: Session, member_id: int) -> Tuple[Administrator, bool]:
        """Bootstrap self-registration. Returns (record, created)."""
        if not load_config().get("allow_admin_self_registration", True):
            raise Forbidden("administrator self-registration is disabled")
        member = session.get(Member, member_id)
        if member is None or member.status != MemberStatus.active.value:
            raise Unauthenticated("no active member for this identity")
        existing = RoleService.administrator_for(session, member_id)
        if existing is not None:
            return existing, False
        admin = Administrator(member_id=member_id, created_at=utcnow())
        session.add(admin)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = RoleService.administrator_for(session, member_id)
            if existing is None:
                raise
            return existing, False
        logger.info("member %s registered as administrator %s", member_id, admin.id)
        return admin, True

    @staticmethod
    def assign_moderator(session: Session, actor: Actor, member_id: int) -> Tuple[Moderator, bool]:
        """Escalate a member to moderator. Idempotent for an already active grant."""
        RoleService.require_administrator(actor)
        member = session.get(Member, member_id) if id_in_range(member_id) else None
        if member is None or member.status == MemberStatus.deleted.value:
            raise NotFound(f"member {member_id} not found", details={"member_id": member_id})
        if member.status != MemberStatus.active.value:
            raise InvalidArgument(
                f"member {member_id} is {member.status} and cannot be a moderator",
                details={"member_id": member_id, "status": member.status},
            )

        existing = RoleService.active_moderator_grant(session, member_id, for_update=True)
        if existing is not None:
            return existing, False

        grant = Moderator(
            member_id=member_id,
            assigned_by_administrator_id=actor.administrator_id,
            assigned_at=utcnow(),
        )
        session.add(grant)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise Conflict(
                f"member {member_id} was assigned concurrently",
                details={"member_id": member_id},
            )
        logger.info("administrator %s assigned moderator %s to member %s", actor.administrator_id, grant.id, member_id)
        return grant, True

    @staticmethod
    def revoke_moderator(session: Session, actor: Actor, moderator_id: int) -> Moderator:
        RoleService.require_administrator(actor)
        grant = session.get(Moderator, moderator_id, with_for_update=True) if id_in_range(moderator_id) else None
        if grant is None:
            raise NotFound(f"moderator {moderator_id} not found", details={"moderator_id": moderator_id})
        if grant.revoked_at is not None:
            raise Conflict(
                f"moderator {moderator_id} is already revoked",
                details={"moderator_id": moderator_id, "revoked_at": iso(grant.revoked_at)},
            )
        grant.revoked_at = utcnow()
        grant.revoked_by_administrator_id = actor.administrator_id
        session.commit()
        logger.info("administrator %s revoked moderator %s", actor.administrator_id, moderator_id)
        return grant

    @staticmethod
    def get_moderator(session: Session, actor: Actor, moderator_id: int) -> Moderator:
        RoleService.require_administrator(actor)
        grant = session.get(Moderator, moderator_id) if id_in_range(moderator_id) else None
        if grant is None:
            raise NotFound(f"moderator {moderator_id} not found", details={"moderator_id": moderator_id})
        return grant

    @staticmethod
    def list_moderators(session: Session, actor: Actor, filters: Mapping[str, Any], page: PageRequest) -> Page:
        RoleService.require_administrator(actor)
        stmt = select(Moderator)
        member_id = optional_id(filters.get("member_id"), "member_id")
        if member_id is not None:
            stmt = stmt.where(Moderator.member_id == member_id)
        active = filters.get("active")
        if active not in (None, ""):
            flag = str(active).strip().lower()
            if flag in {"1", "true", "yes"}:
                stmt = stmt.where(Moderator.revoked_at.is_(None))
            elif flag in {"0", "false", "no"}:
                stmt = stmt.where(Moderator.revoked_at.is_not(None))
            else:
                raise InvalidArgument("active must be a boolean", details={"field": "active", "value": active})
        stmt = stmt.order_by(Moderator.assigned_at.desc(), Moderator.id.desc())
        return paginate(session, stmt, page)
