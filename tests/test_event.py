import uuid
from datetime import datetime, timedelta, timezone

import pytest

from knevent.errors import unwrap_all
from knevent.event import (
    APPLICATION_JSON,
    DEFAULT_TYPE,
    CantMarshalAsJsonError,
    CantSetFieldError,
    CloudEvent,
    FieldSpec,
    InvalidEventError,
    Spec,
    create_from_spec,
    default_source,
    new_default,
    new_id,
)


def _almost_now(moment):
    return abs(datetime.now(timezone.utc) - moment) < timedelta(seconds=5)


def test_create_from_spec():
    event_id = new_id()
    spec = Spec(
        type="org.example.kn.event.ping",
        id=event_id,
        source="/k8s/events/ping",
        fields=[
            FieldSpec(path="person.name", value="Chris"),
            FieldSpec(path="person.email", value="ksuszyns@example.com"),
            FieldSpec(path="ping", value=123),
            FieldSpec(path="active", value=True),
            FieldSpec(path="ref", value="321"),
        ],
    )
    actual = create_from_spec(spec)
    assert actual.type == "org.example.kn.event.ping"
    assert actual.id == event_id
    assert actual.source == "/k8s/events/ping"
    assert actual.data_object() == {
        "person": {"name": "Chris", "email": "ksuszyns@example.com"},
        "ping": 123.0,
        "ref": "321",
        "active": True,
    }
    assert _almost_now(actual.time)


def test_create_from_spec_with_invalid_field_spec():
    spec = Spec(
        fields=[
            FieldSpec(path="person.name", value="Chris Suszynski"),
            FieldSpec(path="person.name.first", value="Chris"),
        ]
    )
    with pytest.raises(CantSetFieldError) as info:
        create_from_spec(spec)
    assert (
        '"person.name.first" path in conflict with value "Chris Suszynski"'
        in str(info.value)
    )


def test_create_from_spec_unmarshallable_value():
    spec = Spec(type="t", id="1", source="s")
    spec.add_field("value", float("nan"))
    with pytest.raises(CantMarshalAsJsonError) as info:
        create_from_spec(spec)
    assert isinstance(unwrap_all(info.value)[1], ValueError)


def test_spec_add_field():
    spec = Spec()
    spec.add_field("a.b", 1)
    spec.add_field("c", "x")
    assert spec.fields == [FieldSpec("a.b", 1), FieldSpec("c", "x")]


def test_new_default():
    event = new_default()
    assert event.type == DEFAULT_TYPE
    assert event.source == default_source()
    assert event.datacontenttype == APPLICATION_JSON
    assert event.data_object() == {}
    assert uuid.UUID(event.id).version == 4
    assert _almost_now(event.time)


def test_default_source_names_plugin():
    assert default_source().startswith("kn-event/")


def test_new_id_is_unique():
    assert len({new_id() for _ in range(50)}) == 50


@pytest.mark.parametrize(
    "changes",
    [{"id": ""}, {"source": ""}, {"type": ""}, {"specversion": "2.0"}],
)
def test_validate_rejects_missing_attributes(changes):
    event = CloudEvent(id="1", source="s", type="t")
    for name, value in changes.items():
        setattr(event, name, value)
    with pytest.raises(InvalidEventError):
        event.validate()


def test_attribute_order_in_dict():
    event = new_default()
    assert list(event.to_dict()) == [
        "specversion",
        "id",
        "source",
        "type",
        "datacontenttype",
        "time",
        "data",
    ]


def test_time_formatting():
    event = CloudEvent(
        id="1",
        source="s",
        type="t",
        time=datetime(2020, 8, 24, 14, 1, 12, 601, tzinfo=timezone.utc),
    )
    assert event.to_dict()["time"] == "2020-08-24T14:01:12.000601Z"


def test_time_parsing_truncates_nanoseconds():
    event = CloudEvent.from_dict(
        {
            "specversion": "1.0",
            "id": "1",
            "source": "s",
            "type": "t",
            "time": "2020-08-24T14:01:12.000601161Z",
        }
    )
    assert event.time == datetime(2020, 8, 24, 14, 1, 12, 601, tzinfo=timezone.utc)


def test_time_parsing_with_offset():
    event = CloudEvent.from_dict(
        {
            "specversion": "1.0",
            "id": "1",
            "source": "s",
            "type": "t",
            "time": "2020-08-24T16:01:12+02:00",
        }
    )
    assert event.time == datetime(2020, 8, 24, 14, 1, 12, tzinfo=timezone.utc)


def test_json_round_trip():
    event = create_from_spec(
        Spec(type="t", id="42", source="/s", fields=[FieldSpec("a.b", "c")])
    )
    event.extensions["traceparent"] = "abc"
    assert CloudEvent.from_json(event.to_json()) == event


def test_indented_json_data():
    event = CloudEvent(id="1", source="s", type="t")
    event.set_data(APPLICATION_JSON, {"b": 1, "a": True})
    assert event.to_json(indent=2).endswith('"data": {\n    "a": true,\n    "b": 1\n  }\n}')


def test_text_data_round_trip():
    event = CloudEvent(id="1", source="s", type="t")
    event.set_data("text/plain", "hello")
    assert event.to_dict()["data"] == "hello"
    assert CloudEvent.from_json(event.to_json()).data == b"hello"


def test_binary_data_uses_base64():
    event = CloudEvent(id="1", source="s", type="t")
    event.set_data("application/octet-stream", b"\xff\x00")
    assert event.to_dict()["data_base64"] == "/wA="
    assert CloudEvent.from_json(event.to_json()).data == b"\xff\x00"


def test_from_json_rejects_bad_input():
    with pytest.raises(InvalidEventError):
        CloudEvent.from_json("not json")
    with pytest.raises(InvalidEventError):
        CloudEvent.from_json('{"id": "1"}')


def test_data_object_without_data():
    assert CloudEvent(id="1", source="s", type="t").data_object() is None