"""Employee models for HR directory data."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

_CATEGORY_FIELDS = ("department", "title", "site")


def normalize_identity(identity: str) -> str:
    key = identity.strip().lower() if identity else ""
    if not key:
        raise ValueError("Employee identity must not be blank")
    return key


class RawEmployeeRecord(BaseModel):
    """Employee record as returned by the directory service.

    Category fields carry whatever the upstream put there: usually a named-list
    code, sometimes free text. ``*_text`` fields hold the human-readable form
    when the upstream supplies one.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")

    email: str
    display_name: str = Field(default="", validation_alias=AliasChoices("displayName", "fullName", "display_name"))
    department: str | None = None
    department_text: str | None = None
    title: str | None = None
    title_text: str | None = None
    site: str | None = None
    site_text: str | None = None
    manager_email: str | None = Field(default=None, validation_alias=AliasChoices("managerEmail", "manager_email"))

    @model_validator(mode="before")
    @classmethod
    def _flatten_work_section(cls, data: Any) -> Any:
        # Search payloads nest categories under "work" and their labels under "humanReadable.work"
        if not isinstance(data, dict):
            return data

        flat = dict(data)
        work = data.get("work")
        if isinstance(work, dict):
            for key in _CATEGORY_FIELDS:
                if flat.get(key) is None:
                    flat[key] = work.get(key)
            reports_to = work.get("reportsTo")
            if isinstance(reports_to, dict) and flat.get("managerEmail") is None:
                flat["managerEmail"] = reports_to.get("email")

        readable = data.get("humanReadable")
        readable_work = readable.get("work") if isinstance(readable, dict) else None
        if isinstance(readable_work, dict):
            for key in _CATEGORY_FIELDS:
                if flat.get(f"{key}_text") is None:
                    flat[f"{key}_text"] = readable_work.get(key)

        return flat

    @field_validator("email", mode="before")
    @classmethod
    def _require_email(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            raise ValueError("email is required")
        return str(value).strip()

    @field_validator(
        "department",
        "department_text",
        "title",
        "title_text",
        "site",
        "site_text",
        "manager_email",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, (dict, list)):
            return None
        return value


class EnrichedEmployeeRecord(BaseModel):
    """Employee record with resolved team, title and site names."""

    email: str
    display_name: str = ""
    team: str = ""
    title: str = ""
    site: str | None = None
    department_id: str | None = None
    title_id: str | None = None
    site_id: str | None = None
    manager: str = ""


class EmployeeLookupRequest(BaseModel):
    emails: list[str] = Field(..., min_length=1, max_length=1000)


class EmployeeLookupResponse(BaseModel):
    employees: dict[str, EnrichedEmployeeRecord | None]
    missing: list[str] = []
