from __future__ import annotations

from datetime import UTC, datetime

import pytest

from pydevicehub.exceptions import MalformedRecordError
from pydevicehub.models.records import (
    CallLogRecord,
    ContactRecord,
    LocationRecord,
    SmsRecord,
    coerce_records,
)
from pydevicehub.state.events import Category


def test_contact_aliases_map_to_known_fields_and_extras_are_kept() -> None:
    record = ContactRecord.from_payload({"displayName": "Ann", "number": 31612345678, "starred": True})

    assert record.name == "Ann"
    assert record.phone == "31612345678"
    assert record.extra_fields == {"starred": True}
    assert record.to_dict() == {"name": "Ann", "phone": "31612345678", "starred": True}


def test_location_numeric_fields_keep_placeholders_as_sent() -> None:
    record = LocationRecord.from_payload({"lat": "52.37", "lng": 4.89, "accuracy": "--", "provider": "gps"})

    assert record.latitude == 52.37
    assert record.longitude == 4.89
    assert record.accuracy == "--"
    assert record.to_dict()["accuracy"] == "--"
    assert record.extra_fields == {"provider": "gps"}


def test_call_log_type_alias_and_duration_coercion() -> None:
    record = CallLogRecord.from_payload({"number": "112", "type": "missed", "duration": "42.0"})

    assert record.call_type == "missed"
    assert record.duration == 42


def test_timestamp_accepts_epoch_milliseconds_and_iso_strings() -> None:
    from_ms = SmsRecord.from_payload({"body": "hi", "timestamp": 1_770_928_447_000})
    from_iso = SmsRecord.from_payload({"body": "hi", "timestamp": "2026-01-01T10:00:00Z"})

    assert from_ms.timestamp == datetime.fromtimestamp(1_770_928_447, tz=UTC)
    assert from_iso.timestamp == datetime(2026, 1, 1, 10, 0, tzinfo=UTC)


def test_unparseable_timestamp_is_set_aside_for_the_server() -> None:
    record = SmsRecord.from_payload({"body": "hi", "timestamp": "yesterday"})

    assert record.timestamp is None
    assert "timestamp" not in record.to_dict()
    assert record.to_dict()["raw_timestamp"] == "yesterday"


def test_uncoercible_known_fields_keep_producer_values() -> None:
    contact = ContactRecord.from_payload({"name": "Ann", "phone": ["111", "222"]})
    sms = SmsRecord.from_payload({"body": "hi", "date": "yesterday"})
    call = CallLogRecord.from_payload({"number": "112", "duration": "00:01:23"})

    assert contact.to_dict()["phone"] == ["111", "222"]
    assert sms.to_dict()["date"] == "yesterday"
    assert call.duration == "00:01:23"
    assert call.to_dict()["duration"] == "00:01:23"


def test_empty_known_fields_are_omitted() -> None:
    record = ContactRecord.from_payload({"name": "", "phone": None})

    assert record.to_dict() == {}


def test_stored_record_is_detached_from_producer_payload() -> None:
    payload = {"body": "x", "meta": {"k": 1}}
    record = SmsRecord.from_payload(payload)

    payload["meta"]["k"] = 2
    payload["body"] = "changed"

    assert record.body == "x"
    assert record.extra_fields["meta"] == {"k": 1}


def test_coerce_records_accepts_single_object_or_list() -> None:
    single = coerce_records(Category.LOCATION, {"lat": 1, "lng": 2})
    many = coerce_records(Category.LOCATION, [{"lat": 1}, {"lat": 2}])

    assert len(single) == 1
    assert [record.latitude for record in many] == [1.0, 2.0]


def test_coerce_records_rejects_non_objects() -> None:
    with pytest.raises(MalformedRecordError):
        coerce_records(Category.SMS, "not a list")

    with pytest.raises(MalformedRecordError):
        coerce_records(Category.SMS, [{"body": "ok"}, 5])


def test_record_of_another_category_is_rejected() -> None:
    with pytest.raises(MalformedRecordError):
        coerce_records(Category.SMS, ContactRecord(name="Ann"))
