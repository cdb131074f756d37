"""Merge raw directory records with resolved named-list names and ids."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from hrdirectory.models.employee import EnrichedEmployeeRecord, RawEmployeeRecord
from hrdirectory.models.named_list import NamedList
from hrdirectory.services.named_list_resolver import find_by_text, flatten

logger = logging.getLogger(__name__)

DEPARTMENTS = "departments"
WORK_TITLES = "work titles"
SITES = "sites"


def _resolve(code: str | None, text: str | None, table: dict[str, str]) -> tuple[str | None, str | None]:
    """Return ``(display name, id)`` for one category value."""
    if code:
        name = table.get(code)
        if name:
            return name, code
    return text or code, None


@dataclass
class EnrichmentContext:
    """Named lists for one enrichment pass, with their id tables built once."""

    departments: NamedList | None = None
    titles: NamedList | None = None
    sites: NamedList | None = None
    _department_table: dict[str, str] = field(init=False, repr=False)
    _title_table: dict[str, str] = field(init=False, repr=False)
    _site_table: dict[str, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._department_table = flatten(self.departments.items) if self.departments else {}
        self._title_table = flatten(self.titles.items) if self.titles else {}
        self._site_table = flatten(self.sites.items) if self.sites else {}

    def enrich(self, raw: RawEmployeeRecord) -> EnrichedEmployeeRecord:
        team, department_id = _resolve(raw.department, raw.department_text, self._department_table)
        title, title_id = _resolve(raw.title, raw.title_text, self._title_table)
        site, site_id = _resolve(raw.site, raw.site_text, self._site_table)

        return EnrichedEmployeeRecord(
            email=raw.email,
            display_name=raw.display_name,
            team=team or "",
            title=title or "",
            site=site,
            department_id=department_id,
            title_id=title_id,
            site_id=site_id,
            manager=raw.manager_email or "",
        )

    def fill_ids(self, record: EnrichedEmployeeRecord) -> EnrichedEmployeeRecord:
        """Text-match missing ids against active nodes only; existing ids are kept."""
        updates: dict[str, str] = {}

        if record.department_id is None and record.team and self.departments is not None:
            item = find_by_text(self.departments.items, record.team, include_archived=False)
            if item is not None:
                updates["department_id"] = item.id

        if record.title_id is None and record.title and self.titles is not None:
            item = find_by_text(self.titles.items, record.title, include_archived=False)
            if item is not None:
                updates["title_id"] = item.id

        if record.site_id is None and record.site and self.sites is not None:
            item = find_by_text(self.sites.items, record.site, include_archived=False)
            if item is not None:
                updates["site_id"] = item.id

        if not updates:
            return record
        logger.debug("Filled named-list ids for %s: %s", record.email, updates)
        return record.model_copy(update=updates)

    def build(self, raw: RawEmployeeRecord) -> EnrichedEmployeeRecord:
        """Full pipeline: resolve codes to names, then text-match any ids still missing."""
        return self.fill_ids(self.enrich(raw))


def enrich(
    raw: RawEmployeeRecord,
    department_list: NamedList | None,
    title_list: NamedList | None,
    site_list: NamedList | None = None,
) -> EnrichedEmployeeRecord:
    return EnrichmentContext(department_list, title_list, site_list).enrich(raw)


def fill_named_list_ids(
    record: EnrichedEmployeeRecord,
    department_list: NamedList | None,
    title_list: NamedList | None,
    site_list: NamedList | None = None,
) -> EnrichedEmployeeRecord:
    return EnrichmentContext(department_list, title_list, site_list).fill_ids(record)
