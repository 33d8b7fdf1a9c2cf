"""Closed value sets stored as strings.

Each enum parses case-insensitively and ignores underscores, so
``"InProgress"``, ``"in_progress"`` and ``"IN_PROGRESS"`` are the same status.
Unknown strings raise ValueError; the one exception is a card visibility read
back from storage, which falls back to the most restrictive tier.
"""

import enum


def _squash(value):
    return str(value).strip().lower().replace("_", "")


class _StoredEnum(str, enum.Enum):
    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        if value is not None:
            key = _squash(value)
            for member in cls:
                if _squash(member.value) == key:
                    return member
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid {cls.__name__} '{value}'. Must be one of: {allowed}")

    def __str__(self):
        return self.value


class BoardRole(_StoredEnum):
    OWNER = "owner"
    EDITOR = "editor"
    READER = "reader"


class Visibility(_StoredEnum):
    PRIVATE = "private"
    RESTRICTED = "restricted"
    PUBLIC = "public"

    @classmethod
    def from_stored(cls, value):
        """Read a persisted visibility; anything unrecognised is Private."""
        try:
            return cls.parse(value)
        except ValueError:
            return cls.PRIVATE


class CardStatus(_StoredEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CLOSED = "closed"
