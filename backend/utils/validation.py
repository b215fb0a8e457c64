"""
Module: backend/utils/validation.py
Input coercion shared by the moderation services. Everything raises
InvalidArgument with the offending field in details.
"""
from __future__ import annotations
import enum
from typing import Any, Iterable, Mapping, TypeVar

from utils.errors import InvalidArgument

E = TypeVar("E", bound=enum.Enum)

# signed BIGINT ceiling shared by every id column and row offset
MAX_ID = 2**63 - 1


def require_text(value: Any, field: str, max_length: int | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field} must be a non-empty string", details={"field": field})
    cleaned = value.strip()
    if max_length is not None and len(cleaned) > max_length:
        raise InvalidArgument(f"{field} exceeds {max_length} characters", details={"field": field})
    return cleaned


def optional_text(value: Any, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgument(f"{field} must be a string", details={"field": field})
    cleaned = value.strip()
    if not cleaned:
        return None
    if max_length is not None and len(cleaned) > max_length:
        raise InvalidArgument(f"{field} exceeds {max_length} characters", details={"field": field})
    return cleaned


def optional_id(value: Any, field: str) -> int | None:
    """Positive integer id; digit strings from query args are accepted."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidArgument(f"{field} must be an integer id", details={"field": field})
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or not id_in_range(value):
        raise InvalidArgument(f"{field} must be a positive integer id", details={"field": field, "value": value})
    return value


def id_in_range(value: int) -> bool:
    """Path ids outside the column range can never match a row."""
    return 1 <= value <= MAX_ID


def parse_enum(enum_cls: type[E], value: Any, field: str, allowed: Iterable[E] | None = None) -> E:
    choices = list(allowed) if allowed is not None else list(enum_cls)
    if isinstance(value, enum_cls) and value in choices:
        return value
    if isinstance(value, str):
        for member in choices:
            if member.value == value.strip():
                return member
    raise InvalidArgument(
        f"{field} must be one of: {', '.join(m.value for m in choices)}",
        details={"field": field, "value": value},
    )


def optional_enum(enum_cls: type[E], value: Any, field: str) -> E | None:
    if value is None or value == "":
        return None
    return parse_enum(enum_cls, value, field)


def check_keys(payload: Mapping[str, Any], allowed: Iterable[str], what: str) -> None:
    """Reject any key outside the whitelisted update path."""
    extra = sorted(set(payload) - set(allowed))
    if extra:
        raise InvalidArgument(
            f"{what} does not accept: {', '.join(extra)}",
            details={"fields": extra, "allowed": sorted(allowed)},
        )


def exactly_one(payload: Mapping[str, Any], fields: tuple[str, str]) -> str:
    """Name of the single populated field of a mutually exclusive pair."""
    present = [f for f in fields if payload.get(f) not in (None, "")]
    if len(present) != 1:
        raise InvalidArgument(
            f"exactly one of {fields[0]} or {fields[1]} must be provided",
            details={"fields": list(fields)},
        )
    return present[0]
