"""Tolerant decoding of directory service payloads.

The directory service returns the same logical payload in more than one
shape. Each shape gets a decoder; decoders are tried in order and report a
tagged ``DecodeResult`` instead of raising, so the caller can fall through to
the next candidate and give up with a single diagnostic.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from hrdirectory.models.employee import RawEmployeeRecord
from hrdirectory.models.named_list import NamedList, NamedListItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DecodeStatus(str, Enum):
    OK = "ok"
    SCHEMA_MISMATCH = "schema_mismatch"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    status: DecodeStatus
    value: T | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is DecodeStatus.OK

    @classmethod
    def success(cls, value: T) -> DecodeResult[T]:
        return cls(DecodeStatus.OK, value=value)

    @classmethod
    def mismatch(cls, detail: str) -> DecodeResult[T]:
        return cls(DecodeStatus.SCHEMA_MISMATCH, detail=detail)

    @classmethod
    def malformed(cls, detail: str) -> DecodeResult[T]:
        return cls(DecodeStatus.MALFORMED, detail=detail)


Decoder = Callable[[Any], DecodeResult[T]]

_ITEMS_ADAPTER: TypeAdapter[tuple[NamedListItem, ...]] = TypeAdapter(tuple[NamedListItem, ...])
_LISTS_ADAPTER: TypeAdapter[list[NamedList]] = TypeAdapter(list[NamedList])


def parse_json(text: str) -> DecodeResult[Any]:
    if not text or not text.strip():
        return DecodeResult.malformed("empty response body")
    try:
        return DecodeResult.success(json.loads(text))
    except ValueError as e:
        return DecodeResult.malformed(f"invalid JSON: {e}")


def decode_with_fallbacks(text: str, decoders: Sequence[tuple[str, Decoder[T]]]) -> DecodeResult[T]:
    parsed = parse_json(text)
    if not parsed.ok:
        return DecodeResult.malformed(parsed.detail)
    return decode_first_shape(parsed.value, decoders)


def _validate(adapter: TypeAdapter[T], data: Any) -> DecodeResult[T]:
    try:
        return DecodeResult.success(adapter.validate_python(data))
    except ValidationError as e:
        return DecodeResult.mismatch(f"{e.error_count()} validation error(s)")


# -- named lists ------------------------------------------------------------


def wrapped_named_list(category: str) -> Decoder[NamedList]:
    """``{"name": ..., "values": [...]}``"""

    def decode(data: Any) -> DecodeResult[NamedList]:
        if not isinstance(data, dict):
            return DecodeResult.mismatch(f"expected object, got {type(data).__name__}")
        raw_items = data.get("values", data.get("items"))
        if not isinstance(raw_items, list):
            return DecodeResult.mismatch("missing 'values' array")
        items = _validate(_ITEMS_ADAPTER, raw_items)
        if not items.ok:
            return DecodeResult.mismatch(items.detail)
        name = data.get("name") if isinstance(data.get("name"), str) and data.get("name") else category
        return DecodeResult.success(NamedList(name=name, items=items.value))

    return decode


def bare_named_list(category: str) -> Decoder[NamedList]:
    """``[{"id": ..., "name": ..., "children": [...]}, ...]``"""

    def decode(data: Any) -> DecodeResult[NamedList]:
        if not isinstance(data, list):
            return DecodeResult.mismatch(f"expected array, got {type(data).__name__}")
        items = _validate(_ITEMS_ADAPTER, data)
        if not items.ok:
            return DecodeResult.mismatch(items.detail)
        return DecodeResult.success(NamedList(name=category, items=items.value))

    return decode


def named_list_array(data: Any) -> DecodeResult[list[NamedList]]:
    """``[{"name": "departments", "values": [...]}, ...]``"""
    if not isinstance(data, list):
        return DecodeResult.mismatch(f"expected array, got {type(data).__name__}")
    return _validate(_LISTS_ADAPTER, data)


def named_list_mapping(data: Any) -> DecodeResult[list[NamedList]]:
    """``{"departments": {"values": [...]}, "sites": [...]}``"""
    if not isinstance(data, dict):
        return DecodeResult.mismatch(f"expected object, got {type(data).__name__}")

    named_lists: list[NamedList] = []
    for name, body in data.items():
        result = decode_first_shape(body, named_list_decoders(name))
        if not result.ok:
            return DecodeResult.mismatch(f"list '{name}': {result.detail}")
        named_lists.append(result.value)
    return DecodeResult.success(named_lists)


def named_list_decoders(category: str) -> list[tuple[str, Decoder[NamedList]]]:
    return [("wrapped", wrapped_named_list(category)), ("bare", bare_named_list(category))]


NAMED_LIST_COLLECTION_DECODERS: list[tuple[str, Decoder[list[NamedList]]]] = [
    ("array", named_list_array),
    ("mapping", named_list_mapping),
]


def decode_first_shape(data: Any, decoders: Sequence[tuple[str, Decoder[T]]]) -> DecodeResult[T]:
    """Like ``decode_with_fallbacks`` but for an already parsed value."""
    mismatches: list[str] = []
    for label, decoder in decoders:
        result = decoder(data)
        if result.ok:
            if mismatches:
                logger.debug("Decoded payload with fallback shape '%s' after: %s", label, "; ".join(mismatches))
            return result
        mismatches.append(f"{label}: {result.detail}")
    return DecodeResult.mismatch("; ".join(mismatches) or "no decoders")


# -- people -----------------------------------------------------------------


def employee_envelope(data: Any) -> DecodeResult[list[dict[str, Any]]]:
    """``{"employees": [...]}``"""
    if not isinstance(data, dict):
        return DecodeResult.mismatch(f"expected object, got {type(data).__name__}")
    rows = data.get("employees")
    if not isinstance(rows, list):
        return DecodeResult.mismatch("missing 'employees' array")
    return DecodeResult.success([row for row in rows if isinstance(row, dict)])


def employee_array(data: Any) -> DecodeResult[list[dict[str, Any]]]:
    if not isinstance(data, list):
        return DecodeResult.mismatch(f"expected array, got {type(data).__name__}")
    return DecodeResult.success([row for row in data if isinstance(row, dict)])


EMPLOYEE_DECODERS: list[tuple[str, Decoder[list[dict[str, Any]]]]] = [
    ("envelope", employee_envelope),
    ("array", employee_array),
]


def records_from_rows(rows: Sequence[dict[str, Any]]) -> list[RawEmployeeRecord]:
    """Validate rows one by one; rows without a usable email are dropped."""
    records: list[RawEmployeeRecord] = []
    dropped = 0
    for row in rows:
        try:
            records.append(RawEmployeeRecord.model_validate(row))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.debug("Dropped %d employee rows without a valid email", dropped)
    return records
