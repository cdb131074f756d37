from __future__ import annotations

import json

from hrdirectory.models.employee import RawEmployeeRecord
from hrdirectory.services.named_list_resolver import flatten
from hrdirectory.services.payload_decoding import (
    EMPLOYEE_DECODERS,
    NAMED_LIST_COLLECTION_DECODERS,
    DecodeStatus,
    decode_with_fallbacks,
    named_list_decoders,
    records_from_rows,
)

DEPARTMENT_ITEMS = [
    {
        "id": 100,
        "name": "R&D",
        "value": "rnd",
        "archived": False,
        "children": [
            {"id": 101, "name": "Engineering", "value": "engineering", "children": []},
            {"id": 102, "name": "Research", "value": "research", "children": None},
        ],
    },
    {"id": 200, "name": "Sales", "value": "sales"},
]


def test_wrapped_and_bare_named_list_flatten_identically():
    wrapped = decode_with_fallbacks(
        json.dumps({"name": "departments", "values": DEPARTMENT_ITEMS}),
        named_list_decoders("departments"),
    )
    bare = decode_with_fallbacks(json.dumps(DEPARTMENT_ITEMS), named_list_decoders("departments"))

    assert wrapped.ok
    assert bare.ok
    assert flatten(wrapped.value.items) == flatten(bare.value.items)
    assert flatten(bare.value.items) == {"100": "R&D", "101": "Engineering", "102": "Research", "200": "Sales"}


def test_bare_named_list_takes_category_as_name():
    result = decode_with_fallbacks(json.dumps(DEPARTMENT_ITEMS), named_list_decoders("departments"))
    assert result.value.name == "departments"


def test_malformed_json_is_reported_as_malformed():
    result = decode_with_fallbacks("{not json", named_list_decoders("departments"))
    assert result.status is DecodeStatus.MALFORMED
    assert result.value is None


def test_empty_body_is_malformed():
    result = decode_with_fallbacks("", named_list_decoders("departments"))
    assert result.status is DecodeStatus.MALFORMED


def test_unknown_shape_is_schema_mismatch_with_all_details():
    result = decode_with_fallbacks(json.dumps({"unexpected": True}), named_list_decoders("departments"))
    assert result.status is DecodeStatus.SCHEMA_MISMATCH
    assert "wrapped" in result.detail
    assert "bare" in result.detail


def test_items_without_id_are_schema_mismatch():
    result = decode_with_fallbacks(json.dumps([{"name": "No id"}]), named_list_decoders("sites"))
    assert result.status is DecodeStatus.SCHEMA_MISMATCH


def test_named_list_collection_array_shape():
    payload = [
        {"name": "departments", "values": DEPARTMENT_ITEMS},
        {"name": "sites", "values": [{"id": 1, "name": "Berlin", "value": "berlin"}]},
    ]
    result = decode_with_fallbacks(json.dumps(payload), NAMED_LIST_COLLECTION_DECODERS)

    assert result.ok
    assert [named_list.name for named_list in result.value] == ["departments", "sites"]


def test_named_list_collection_mapping_fallback():
    payload = {
        "departments": {"values": DEPARTMENT_ITEMS},
        "sites": [{"id": 1, "name": "Berlin", "value": "berlin"}],
    }
    result = decode_with_fallbacks(json.dumps(payload), NAMED_LIST_COLLECTION_DECODERS)

    assert result.ok
    by_name = {named_list.key: named_list for named_list in result.value}
    assert flatten(by_name["sites"].items) == {"1": "Berlin"}
    assert flatten(by_name["departments"].items)["101"] == "Engineering"


def test_employee_envelope_and_array_shapes():
    rows = [{"email": "a@x.com", "displayName": "A"}]

    envelope = decode_with_fallbacks(json.dumps({"employees": rows}), EMPLOYEE_DECODERS)
    array = decode_with_fallbacks(json.dumps(rows), EMPLOYEE_DECODERS)

    assert envelope.ok
    assert array.ok
    assert envelope.value == array.value == rows


def test_records_from_rows_drops_rows_without_email():
    rows = [
        {"email": "a@x.com", "displayName": "A"},
        {"displayName": "No Email"},
        {"email": "   ", "displayName": "Blank Email"},
        {"email": None},
    ]
    records = records_from_rows(rows)

    assert [record.email for record in records] == ["a@x.com"]


def test_raw_record_flattens_work_section():
    record = RawEmployeeRecord.model_validate(
        {
            "email": "jane@example.com",
            "displayName": "Jane",
            "work": {"department": 101, "title": 7, "site": 3, "reportsTo": {"email": "boss@example.com"}},
            "humanReadable": {"work": {"department": "Engineering", "title": "SWE", "site": "Berlin"}},
        }
    )

    assert record.department == "101"
    assert record.department_text == "Engineering"
    assert record.title == "7"
    assert record.title_text == "SWE"
    assert record.site == "3"
    assert record.site_text == "Berlin"
    assert record.manager_email == "boss@example.com"


def test_raw_record_flat_shape_and_blank_fields():
    record = RawEmployeeRecord.model_validate(
        {"email": " a@x.com ", "displayName": "A", "department": "", "title": "Engineer", "managerEmail": ""}
    )

    assert record.email == "a@x.com"
    assert record.department is None
    assert record.title == "Engineer"
    assert record.manager_email is None
