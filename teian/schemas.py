"""Pydantic schemas validating caller input before it reaches the repositories."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from .models import AliasPatch, AliasStatus


class TeianBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


def _require_username(v: str) -> str:
    if not v:
        raise ValueError("username is required")
    return v


def _validate_tag(v: str) -> str:
    if not v:
        raise ValueError("tag must not be empty")
    if any(c.isspace() for c in v):
        raise ValueError("a tag cannot contain spaces")
    return v


class SuggestionCreate(TeianBaseModel):
    username: str
    text: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _require_username(v)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v:
            raise ValueError("suggestion text must not be empty")
        return v


class AliasCreate(TeianBaseModel):
    username: str
    old: str
    new: str
    comment: str = ""

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _require_username(v)

    @field_validator("old", "new")
    @classmethod
    def validate_tags(cls, v: str) -> str:
        return _validate_tag(v)


class AliasUpdate(TeianBaseModel):
    old: str
    new: str
    comment: str = ""
    status: AliasStatus = AliasStatus.NEW

    @field_validator("old", "new")
    @classmethod
    def validate_tags(cls, v: str) -> str:
        return _validate_tag(v)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        if isinstance(v, AliasStatus):
            return v
        return AliasStatus.parse(v)

    def to_patch(self) -> AliasPatch:
        return AliasPatch(old=self.old, new=self.new, comment=self.comment, status=self.status)
