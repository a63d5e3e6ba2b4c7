"""Per-field constraint primitives.

Each rule is a small frozen object whose ``check(value)`` returns ``None``
when the value is acceptable, or a human-readable message otherwise.
Rules other than :class:`Required` ignore ``None`` so optional fields
only get checked when set.
"""

from __future__ import annotations

import re
from collections.abc import Sized
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Required:
    def check(self, value: object) -> str | None:
        if value is None:
            return "This value should not be blank."
        if isinstance(value, str) and not value.strip():
            return "This value should not be blank."
        return None


@dataclass(frozen=True)
class Length:
    exact: int | None = None
    min: int | None = None
    max: int | None = None

    def check(self, value: object) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            return "This value should be of type string."
        n = len(value)
        if self.exact is not None and n != self.exact:
            return f"This value should have exactly {self.exact} characters."
        if self.min is not None and n < self.min:
            return f"This value is too short. It should have {self.min} characters or more."
        if self.max is not None and n > self.max:
            return f"This value is too long. It should have {self.max} characters or less."
        return None


@dataclass(frozen=True)
class Pattern:
    regex: str

    def check(self, value: object) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str) or not re.fullmatch(self.regex, value):
            return "This value is not valid."
        return None


@dataclass(frozen=True)
class Count:
    min: int | None = None
    max: int | None = None

    def check(self, value: object) -> str | None:
        if value is None:
            return None
        if not isinstance(value, Sized):
            return "This value should be a collection."
        n = len(value)
        if self.min is not None and n < self.min:
            return f"This collection should contain {self.min} elements or more."
        if self.max is not None and n > self.max:
            return f"This collection should contain {self.max} elements or less."
        return None


@dataclass(frozen=True)
class Member:
    enum: type[Enum]

    def check(self, value: object) -> str | None:
        if value is None:
            return None
        if not isinstance(value, self.enum):
            return "The value you selected is not a valid choice."
        return None


@dataclass(frozen=True)
class Positive:
    def check(self, value: object) -> str | None:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return "This value should be positive."
        return None


@dataclass(frozen=True)
class IsBool:
    nullable: bool = False

    def check(self, value: object) -> str | None:
        if value is None and self.nullable:
            return None
        if not isinstance(value, bool):
            return "This value should be of type bool."
        return None


FieldRule = Required | Length | Pattern | Count | Member | Positive | IsBool
