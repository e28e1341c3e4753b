"""
models/enums.py — Closed enumerations shared by models, schemas and services.

Role strings arrive in mixed case from clients and from old tokens. They are
normalised ONCE, at the boundary (schema load or token verification), via
Role.parse(); everything past the boundary compares enum members by value.
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    """user_role_enum ('regular', 'admin')"""
    REGULAR = "regular"
    ADMIN   = "admin"

    @classmethod
    def parse(cls, raw: object) -> "Role":
        """
        Case-insensitive lookup. Raises ValueError for anything that is not a
        known role (including None and non-strings).
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise ValueError(f"Invalid role: {raw!r}")
        return cls(raw.strip().lower())


class Priority(str, enum.Enum):
    """task_priority_enum ('low', 'medium', 'high')"""
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'admin'), not names ('ADMIN')."""
    return [member.value for member in enum_cls]
