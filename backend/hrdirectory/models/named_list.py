"""Named-list models: remotely managed category trees (departments, titles, sites)."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class NamedListItem(BaseModel):
    """One node of a category tree. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True, extra="ignore")

    id: str
    name: str = ""
    value: str = ""
    archived: bool = False
    children: tuple[NamedListItem, ...] = ()

    @field_validator("name", "value", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("children", mode="before")
    @classmethod
    def _none_to_empty_children(cls, value: Any) -> Any:
        return () if value is None else value


class NamedList(BaseModel):
    """A named category tree, keyed case-insensitively by ``name``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    items: tuple[NamedListItem, ...] = Field(default=(), validation_alias=AliasChoices("values", "items"))

    @property
    def key(self) -> str:
        return self.name.strip().lower()
