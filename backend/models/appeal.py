"""
Appeal model - 申訴
A member contests a moderation action or a flag report outcome.
"""
from __future__ import annotations
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from utils.db import Base
from utils.timefmt import utcnow, iso


class AppealStatus(str, enum.Enum):
    """申訴狀態機"""
    PENDING = "pending"        # 已提交，尚未受理
    IN_REVIEW = "in_review"    # 管理員審查中
    ACCEPTED = "accepted"      # 申訴成立（終態）
    DISMISSED = "dismissed"    # 申訴駁回（終態）


OPEN_APPEAL_SQL = "status IN ('pending', 'in_review')"


class Appeal(Base):
    __tablename__ = "appeals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    appellant_member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)

    # parent references are validated on write only; erasing an action leaves the appeal intact
    moderation_action_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    flag_report_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    appeal_rationale: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AppealStatus.PENDING.value, index=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_administrator_id: Mapped[int | None] = mapped_column(ForeignKey("administrators.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_appeals_status_created", "status", "created_at"),
        # one open appeal per appellant and parent
        Index(
            "uq_appeals_open_action", "appellant_member_id", "moderation_action_id",
            unique=True,
            sqlite_where=text(OPEN_APPEAL_SQL),
            postgresql_where=text(OPEN_APPEAL_SQL),
        ),
        Index(
            "uq_appeals_open_flag_report", "appellant_member_id", "flag_report_id",
            unique=True,
            sqlite_where=text(OPEN_APPEAL_SQL),
            postgresql_where=text(OPEN_APPEAL_SQL),
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appellant_member_id": self.appellant_member_id,
            "moderation_action_id": self.moderation_action_id,
            "flag_report_id": self.flag_report_id,
            "appeal_rationale": self.appeal_rationale,
            "status": self.status,
            "resolution_notes": self.resolution_notes,
            "resolved_at": iso(self.resolved_at),
            "resolved_by_administrator_id": self.resolved_by_administrator_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
