from __future__ import annotations
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from utils.db import Base
from utils.timefmt import utcnow, iso


class FlagReason(str, enum.Enum):
    """Controlled vocabulary for flag reports."""
    SPAM = "spam"
    HARASSMENT = "harassment"
    ABUSE = "abuse"
    OFFENSIVE = "offensive"
    INAPPROPRIATE = "inappropriate"
    MISINFORMATION = "misinformation"
    OFF_TOPIC = "off_topic"
    OTHER = "other"


class FlagStatus(str, enum.Enum):
    PENDING = "pending"
    TRIAGED = "triaged"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    ESCALATED = "escalated"


class FlagTargetType(str, enum.Enum):
    POST = "post"
    COMMENT = "comment"


class FlagReport(Base):
    __tablename__ = "flag_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reporter_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    post_id: Mapped[int | None] = mapped_column(ForeignKey("posts.id"), nullable=True, index=True)
    comment_id: Mapped[int | None] = mapped_column(ForeignKey("comments.id"), nullable=True, index=True)
    reason: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=FlagStatus.PENDING.value, index=True)
    # action produced by triage; plain column, checked on write like appeal parents
    moderation_action_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reviewed_by_member_id: Mapped[int | None] = mapped_column(ForeignKey("members.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # withdrawn reports stay on disk but drop out of every read
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by_member_id: Mapped[int | None] = mapped_column(ForeignKey("members.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_flag_reports_status_created", "status", "created_at"),
        # one live report per reporter and target
        Index(
            "uq_flag_reports_live_post", "reporter_id", "post_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index(
            "uq_flag_reports_live_comment", "reporter_id", "comment_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    @property
    def target_type(self) -> str:
        return FlagTargetType.POST.value if self.post_id is not None else FlagTargetType.COMMENT.value

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "reporter_id": self.reporter_id,
            "target_type": self.target_type,
            "post_id": self.post_id,
            "comment_id": self.comment_id,
            "reason": self.reason,
            "status": self.status,
            "created_at": iso(self.created_at),
            "reviewed_at": iso(self.reviewed_at),
        }

    def to_dict(self) -> dict:
        return {
            **self.to_summary(),
            "details": self.details,
            "moderation_action_id": self.moderation_action_id,
            "reviewed_by_member_id": self.reviewed_by_member_id,
            "updated_at": iso(self.updated_at),
        }
