"""
Module: backend/models/__init__.py
Unified comment style: module docstring + minimal inline notes.
"""
from utils.db import Base
from .base import Member, MemberStatus, Post, Comment, Administrator, Moderator
from .moderation import ModerationAction, ModerationLog, ActionType, ActionStatus, LogEventType
from .appeal import Appeal, AppealStatus
from .flag_report import FlagReport, FlagReason, FlagStatus, FlagTargetType

__all__ = [
    "Base",
    "Member", "MemberStatus", "Post", "Comment", "Administrator", "Moderator",
    "ModerationAction", "ModerationLog", "ActionType", "ActionStatus", "LogEventType",
    "Appeal", "AppealStatus",
    "FlagReport", "FlagReason", "FlagStatus", "FlagTargetType",
]
