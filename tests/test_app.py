import logging
from datetime import datetime, timedelta, timezone

import pytest

from knevent.app import (
    App,
    CantBuildEventError,
    CantMarshalEventError,
    EventArgs,
    OutputMode,
    Params,
    PluginVersionOutput,
    UnsupportedOutputModeError,
)
from knevent.errors import unwrap_all
from knevent.event import (
    APPLICATION_JSON,
    DEFAULT_TYPE,
    PLUGIN_NAME,
    VERSION,
    CantSetFieldError,
    CloudEvent,
    default_source,
    new_default,
    new_id,
)
from knevent.sender import Binding, CantSendEventError
from knevent.target import SinkType, TargetArgs

EVENT_ID = "99e4f4f6-08ff-4bff-acf1-47f61ded68c9"


def _example_event():
    event = new_default()
    event.time = datetime(2020, 8, 24, 14, 1, 12, 601161, tzinfo=timezone.utc)
    event.id = EVENT_ID
    event.set_data(
        APPLICATION_JSON,
        {
            "person": {"name": "Chris", "email": "ksuszyns@example.com"},
            "ping": 123,
            "active": True,
            "ref": "321",
        },
    )
    return event


def test_present_with_human_readable():
    expected = f"""\u2601\ufe0f  cloudevents.Event
Validation: valid
Context Attributes,
  specversion: 1.0
  type: dev.knative.cli.plugin.event.generic
  source: {default_source()}
  id: {EVENT_ID}
  time: 2020-08-24T14:01:12.601161Z
  datacontenttype: application/json
Data,
  {{
    "active": true,
    "person": {{
      "email": "ksuszyns@example.com",
      "name": "Chris"
    }},
    "ping": 123,
    "ref": "321"
  }}"""
    assert App().present_with(_example_event(), OutputMode.HUMAN_READABLE) == expected


def test_present_with_json():
    expected = f"""{{
  "specversion": "1.0",
  "id": "{EVENT_ID}",
  "source": "{default_source()}",
  "type": "dev.knative.cli.plugin.event.generic",
  "datacontenttype": "application/json",
  "time": "2020-08-24T14:01:12.601161Z",
  "data": {{
    "active": true,
    "person": {{
      "email": "ksuszyns@example.com",
      "name": "Chris"
    }},
    "ping": 123,
    "ref": "321"
  }}
}}"""
    assert App().present_with(_example_event(), OutputMode.JSON) == expected


def test_present_with_yaml():
    expected = f"""data:
  active: true
  person:
    email: ksuszyns@example.com
    name: Chris
  ping: 123
  ref: "321"
datacontenttype: application/json
id: {EVENT_ID}
source: {default_source()}
specversion: "1.0"
time: "2020-08-24T14:01:12.601161Z"
type: dev.knative.cli.plugin.event.generic
"""
    assert App().present_with(_example_event(), OutputMode.YAML) == expected


def test_present_with_json_round_trips():
    event = _example_event()
    text = App().present_with(event, OutputMode.JSON)
    assert CloudEvent.from_json(text) == event


def test_present_with_unsupported_mode():
    with pytest.raises(UnsupportedOutputModeError, match="unsupported output mode"):
        App().present_with(_example_event(), "bogus")


def test_present_human_with_non_object_data():
    event = _example_event()
    event.set_data(APPLICATION_JSON, [1, 2])
    with pytest.raises(CantMarshalEventError):
        App().present_with(event, OutputMode.HUMAN_READABLE)


def test_present_human_without_data():
    event = _example_event()
    event.data = None
    with pytest.raises(CantMarshalEventError):
        App().present_with(event, OutputMode.HUMAN_READABLE)


def test_create_with_args():
    event_id = new_id()
    args = EventArgs(
        type="org.example.ping",
        id=event_id,
        source="/events/ping",
        fields=[
            "person.name=Chris",
            "person.email=ksuszyns@example.com",
            "ping=123",
            "active=true",
        ],
        raw_fields=["ref=321"],
    )
    actual = App().create_with_args(args)
    assert actual.type == "org.example.ping"
    assert actual.id == event_id
    assert actual.source == "/events/ping"
    assert actual.data_object() == {
        "person": {"name": "Chris", "email": "ksuszyns@example.com"},
        "ping": 123.0,
        "ref": "321",
        "active": True,
    }
    assert abs(datetime.now(timezone.utc) - actual.time) < timedelta(seconds=5)


def test_integral_numbers_are_written_without_fraction():
    actual = App().create_with_args(EventArgs(fields=["ping=123"]))
    assert actual.data == b'{"ping":123}'


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("true", True),
        ("false", False),
        ("True", "True"),
        ("1", 1),
        ("-42", -42),
        ("-0", "-0"),
        ("007", "007"),
        ("+5", "+5"),
        ("1.5", "1.5"),
        ("1.500000", 1.5),
        ("2.000000", 2),
        ("9223372036854775808", "9223372036854775808"),
        ("abc", "abc"),
        ("a=b", "a=b"),
    ],
)
def test_field_value_typing(raw, expected):
    actual = App().create_with_args(EventArgs(fields=[f"value={raw}"]))
    value = actual.data_object()["value"]
    assert value == expected
    assert type(value) is type(expected)


def test_raw_fields_stay_strings():
    actual = App().create_with_args(EventArgs(raw_fields=["count=10", "flag=true"]))
    assert actual.data_object() == {"count": "10", "flag": "true"}


def test_field_without_assignment():
    with pytest.raises(CantBuildEventError):
        App().create_with_args(EventArgs(fields=["nothing"]))


def test_conflicting_fields():
    args = EventArgs(fields=["person.name=Chris", "person.name.first=Chris"])
    with pytest.raises(CantBuildEventError) as info:
        App().create_with_args(args)
    assert any(isinstance(e, CantSetFieldError) for e in unwrap_all(info.value))


def test_event_args_defaults():
    args = EventArgs()
    assert args.type == DEFAULT_TYPE
    assert args.source == default_source()
    assert args.id and args.id != EventArgs().id


def test_plugin_version_output_defaults():
    output = PluginVersionOutput()
    assert (output.name, output.version) == (PLUGIN_NAME, VERSION)


class _RecordingSender:
    def __init__(self):
        self.sent = []

    def send(self, event):
        self.sent.append(event)


def _example_send_event():
    return CloudEvent(id="543", type="type", source="source")


@pytest.mark.parametrize("mode", list(OutputMode))
def test_send_in_cli(mode, caplog):
    caplog.set_level(logging.DEBUG, logger="knevent")
    sender = _RecordingSender()
    app = App(binding=Binding(create_sender=lambda cfg, target: sender))
    want = _example_send_event()
    app.send(want, TargetArgs(sink="https://example.org"), Params(output_mode=mode))
    assert len(sender.sent) == 1
    assert sender.sent[0].id == want.id
    messages = [r.getMessage() for r in caplog.records]
    assert messages.count("Event (ID: 543) have been sent.") == 1


def test_send_resolves_namespace_for_references():
    targets = []
    sender = _RecordingSender()

    class _Clients:
        def namespace(self):
            return "expected"

    def factory(cfg, target):
        targets.append(target)
        return sender

    app = App(binding=Binding(create_sender=factory, new_kube_clients=lambda cfg: _Clients()))
    event = _example_send_event()
    result = app.send(event, TargetArgs(sink="service:showcase"), Params())
    assert result is None
    assert [e.id for e in sender.sent] == ["543"]
    assert len(targets) == 1
    ref = targets[0].reference
    assert ref.type is SinkType.REFERENCE
    assert (ref.name, ref.namespace) == ("showcase", "expected")


def test_send_with_failing_sender_factory():
    def factory(cfg, target):
        raise ValueError("boom")

    app = App(binding=Binding(create_sender=factory))
    with pytest.raises(CantSendEventError, match="boom"):
        app.send(_example_send_event(), TargetArgs(sink="https://example.org"), Params())


def test_send_with_failing_delivery():
    class _Failing:
        def send(self, event):
            raise RuntimeError("refused")

    app = App(binding=Binding(create_sender=lambda cfg, target: _Failing()))
    with pytest.raises(CantSendEventError, match="refused"):
        app.send(_example_send_event(), TargetArgs(sink="https://example.org"), Params())