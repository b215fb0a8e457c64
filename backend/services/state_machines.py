"""
Status transition tables for moderation actions, appeals and flag reports.
Services call ensure_transition() before every status write.
"""
from __future__ import annotations
from typing import Mapping

from models.moderation import ActionStatus
from models.appeal import AppealStatus
from models.flag_report import FlagStatus
from utils.errors import Conflict

ACTION_TRANSITIONS: Mapping[ActionStatus, frozenset[ActionStatus]] = {
    ActionStatus.ACTIVE: frozenset({ActionStatus.COMPLETED, ActionStatus.REVERSED}),
    ActionStatus.COMPLETED: frozenset({ActionStatus.REVERSED}),
    ActionStatus.REVERSED: frozenset(),
}

APPEAL_TRANSITIONS: Mapping[AppealStatus, frozenset[AppealStatus]] = {
    AppealStatus.PENDING: frozenset({AppealStatus.IN_REVIEW, AppealStatus.ACCEPTED, AppealStatus.DISMISSED}),
    AppealStatus.IN_REVIEW: frozenset({AppealStatus.ACCEPTED, AppealStatus.DISMISSED}),
    AppealStatus.ACCEPTED: frozenset(),
    AppealStatus.DISMISSED: frozenset(),
}

FLAG_TRANSITIONS: Mapping[FlagStatus, frozenset[FlagStatus]] = {
    FlagStatus.PENDING: frozenset({FlagStatus.TRIAGED, FlagStatus.ACCEPTED, FlagStatus.DISMISSED, FlagStatus.ESCALATED}),
    FlagStatus.TRIAGED: frozenset({FlagStatus.ACCEPTED, FlagStatus.DISMISSED, FlagStatus.ESCALATED}),
    FlagStatus.ESCALATED: frozenset({FlagStatus.ACCEPTED, FlagStatus.DISMISSED}),
    FlagStatus.ACCEPTED: frozenset(),
    FlagStatus.DISMISSED: frozenset(),
}

_TABLES = {
    ActionStatus: ACTION_TRANSITIONS,
    AppealStatus: APPEAL_TRANSITIONS,
    FlagStatus: FLAG_TRANSITIONS,
}


def allowed_transitions(current):
    return _TABLES[type(current)][current]


def is_terminal(current) -> bool:
    return not allowed_transitions(current)


def ensure_transition(current, target, what: str) -> None:
    if target not in allowed_transitions(current):
        raise Conflict(
            f"{what} cannot move from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value,
                     "allowed": sorted(s.value for s in allowed_transitions(current))},
        )
