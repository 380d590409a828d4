"""Entity models stored in the suggestion database."""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class AliasStatus(IntEnum):
    NEW = 0
    APPROVED = 1
    REJECTED = 2

    @classmethod
    def parse(cls, value: str | int) -> AliasStatus:
        """Accept a member name ("approved") or its integer value."""
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"{value!r} is not a valid alias status") from None
        return cls(int(value))


class EntityModel(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class Suggestion(EntityModel):
    """A free-text suggestion submitted by a user."""

    id: int = Field(default=0, ge=0)
    username: str = ""
    text: str = ""
    created: datetime = Field(default_factory=datetime.now)


class Alias(EntityModel):
    """A proposed tag rename (old -> new) awaiting admin review."""

    id: int = Field(default=0, ge=0)
    username: str = ""
    old: str = ""
    new: str = ""
    comment: str = ""
    created: datetime = Field(default_factory=datetime.now)
    status: AliasStatus = AliasStatus.NEW


class AliasPatch(BaseModel):
    """Fields an admin review may overwrite on an existing alias."""

    model_config = ConfigDict(extra="forbid")

    old: str
    new: str
    comment: str = ""
    status: AliasStatus = AliasStatus.NEW
