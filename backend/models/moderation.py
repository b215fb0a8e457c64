from __future__ import annotations
from datetime import datetime
from typing import List
import enum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, ForeignKey, DateTime, Text, Index
from utils.db import Base
from utils.timefmt import utcnow, iso


class ActionType(str, enum.Enum):
    WARN = "warn"
    MUTE = "mute"
    REMOVE_CONTENT = "remove_content"
    BAN_USER = "ban_user"
    RESTRICT = "restrict"
    RESTORE = "restore"
    ESCALATE = "escalate"


class ActionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    REVERSED = "reversed"


class LogEventType(str, enum.Enum):
    """Recommended event types. Logs accept any non-empty value."""
    ACTION_TAKEN = "action_taken"
    STATUS_UPDATE = "status_update"
    REPORT_RECEIVED = "report_received"
    ADMIN_ESCALATION_RECORDED = "admin_escalation_recorded"
    NOTE = "note"


class ModerationAction(Base):
    __tablename__ = "moderation_actions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    moderator_id: Mapped[int] = mapped_column(ForeignKey("moderators.id"), nullable=False, index=True)
    target_member_id: Mapped[int | None] = mapped_column(ForeignKey("members.id"), nullable=True, index=True)
    target_post_id: Mapped[int | None] = mapped_column(ForeignKey("posts.id"), nullable=True, index=True)
    target_comment_id: Mapped[int | None] = mapped_column(ForeignKey("comments.id"), nullable=True, index=True)
    action_type: Mapped[str] = mapped_column(String(32), nullable=False)
    action_reason: Mapped[str] = mapped_column(Text, nullable=False)
    decision_narrative: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ActionStatus.ACTIVE.value, index=True)
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    effective_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    moderator: Mapped["Moderator"] = relationship("Moderator", foreign_keys=[moderator_id])  # noqa: F821
    logs: Mapped[List["ModerationLog"]] = relationship(
        "ModerationLog",
        back_populates="action",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ModerationLog.created_at",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "moderator_id": self.moderator_id,
            "target_member_id": self.target_member_id,
            "target_post_id": self.target_post_id,
            "target_comment_id": self.target_comment_id,
            "action_type": self.action_type,
            "status": self.status,
            "effective_from": iso(self.effective_from),
            "effective_until": iso(self.effective_until),
            "created_at": iso(self.created_at),
        }

    def to_dict(self) -> dict:
        return {
            **self.to_summary(),
            "action_reason": self.action_reason,
            "decision_narrative": self.decision_narrative,
            "details": self.details,
            "updated_at": iso(self.updated_at),
        }


class ModerationLog(Base):
    __tablename__ = "moderation_logs"
    id: Mapped[int] = mapped_column(primary_key=True)
    related_action_id: Mapped[int] = mapped_column(
        ForeignKey("moderation_actions.id", ondelete="CASCADE"), nullable=False
    )
    actor_member_id: Mapped[int | None] = mapped_column(ForeignKey("members.id"), nullable=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    event_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    action: Mapped["ModerationAction"] = relationship("ModerationAction", back_populates="logs")

    __table_args__ = (
        Index("ix_mlogs_action_actor", "related_action_id", "actor_member_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "related_action_id": self.related_action_id,
            "actor_member_id": self.actor_member_id,
            "event_type": self.event_type,
            "event_details": self.event_details,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
