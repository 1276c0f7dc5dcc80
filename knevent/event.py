"""CloudEvents and their creation from a field specification."""

from __future__ import annotations

import base64
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from knevent.errors import KnEventError, wrap

PLUGIN_NAME = "kn-event"
VERSION = "0.1.0"
DEFAULT_TYPE = "dev.knative.cli.plugin.event.generic"
APPLICATION_JSON = "application/json"
SUPPORTED_SPEC_VERSIONS = ("1.0", "0.3")

_KNOWN_ATTRIBUTES = (
    "specversion",
    "id",
    "source",
    "type",
    "datacontenttype",
    "dataschema",
    "subject",
    "time",
    "data",
    "data_base64",
)
_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


class UnexpectedError(KnEventError):
    message = "unexpected"


class CantSetFieldError(KnEventError):
    message = "can't set field"


class CantMarshalAsJsonError(KnEventError):
    message = "can't marshal as JSON"


class InvalidEventError(KnEventError):
    message = "invalid event"


def _is_json(content_type: str | None) -> bool:
    if content_type is None:
        return True
    media = content_type.split(";", 1)[0].strip().lower()
    return media in ("application/json", "text/json") or media.endswith("+json")


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    return text + "Z"


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.match(text)
    if match is None:
        raise InvalidEventError(f"invalid event: bad time format: {text!r}")
    day, clock, fraction, offset = match.groups()
    micros = (fraction or "")[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        offset = "+00:00"
    parsed = datetime.fromisoformat(f"{day}T{clock}.{micros}{offset}")
    return parsed.astimezone(timezone.utc)


def _compact_json(obj: Any, sort_keys: bool) -> bytes:
    return json.dumps(
        obj,
        sort_keys=sort_keys,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


@dataclass
class CloudEvent:
    """A CloudEvent with its context attributes and raw data."""

    id: str = ""
    source: str = ""
    type: str = ""
    specversion: str = "1.0"
    time: datetime | None = None
    datacontenttype: str | None = None
    dataschema: str | None = None
    subject: str | None = None
    data: bytes | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    def set_data(self, content_type: str, obj: Any) -> None:
        """Set the data, encoding ``obj`` according to ``content_type``."""
        if isinstance(obj, (bytes, bytearray)):
            payload = bytes(obj)
        elif _is_json(content_type):
            payload = _compact_json(obj, sort_keys=True)
        elif isinstance(obj, str):
            payload = obj.encode("utf-8")
        else:
            raise TypeError(
                f"can't encode {type(obj).__name__} as {content_type}"
            )
        self.datacontenttype = content_type
        self.data = payload

    def data_object(self) -> Any:
        """Return the data decoded from JSON, or None when there is none."""
        if self.data is None:
            return None
        return json.loads(self.data)

    def validate(self) -> None:
        """Raise InvalidEventError if a required attribute is missing."""
        problems = []
        if self.specversion not in SUPPORTED_SPEC_VERSIONS:
            problems.append(f"specversion: unsupported {self.specversion!r}")
        if not self.id:
            problems.append("id: MUST be a non-empty string")
        if not self.source:
            problems.append("source: REQUIRED")
        if not self.type:
            problems.append("type: MUST be a non-empty string")
        if problems:
            raise InvalidEventError("invalid event: " + "; ".join(problems))

    def to_dict(self) -> dict[str, Any]:
        """Return the structured JSON representation as a dictionary."""
        out: dict[str, Any] = {
            "specversion": self.specversion,
            "id": self.id,
            "source": self.source,
            "type": self.type,
        }
        for name in ("datacontenttype", "dataschema", "subject"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.time is not None:
            out["time"] = _format_time(self.time)
        for name in sorted(self.extensions):
            out[name] = self.extensions[name]
        if self.data is not None:
            out.update(self._data_entry())
        return out

    def _data_entry(self) -> dict[str, Any]:
        assert self.data is not None
        if _is_json(self.datacontenttype):
            try:
                return {"data": json.loads(self.data)}
            except ValueError:
                pass
        else:
            try:
                return {"data": self.data.decode("utf-8")}
            except UnicodeDecodeError:
                pass
        return {"data_base64": base64.b64encode(self.data).decode("ascii")}

    def to_json(self, indent: int | None = None) -> str:
        """Serialise the event to JSON, compact unless ``indent`` is given."""
        separators = (",", ":") if indent is None else (",", ": ")
        return json.dumps(
            self.to_dict(), indent=indent, separators=separators, ensure_ascii=False
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CloudEvent:
        """Build an event from its structured JSON representation."""
        if not isinstance(data, Mapping):
            raise InvalidEventError("invalid event: expected a JSON object")
        specversion = data.get("specversion")
        if specversion not in SUPPORTED_SPEC_VERSIONS:
            raise InvalidEventError(
                f"invalid event: unsupported specversion {specversion!r}"
            )
        event = cls(
            id=str(data.get("id", "")),
            source=str(data.get("source", "")),
            type=str(data.get("type", "")),
            specversion=specversion,
            datacontenttype=data.get("datacontenttype"),
            dataschema=data.get("dataschema"),
            subject=data.get("subject"),
        )
        if data.get("time") is not None:
            event.time = _parse_time(str(data["time"]))
        if "data_base64" in data:
            try:
                event.data = base64.b64decode(data["data_base64"], validate=True)
            except ValueError as exc:
                raise wrap(exc, InvalidEventError) from exc
        elif "data" in data:
            value = data["data"]
            if isinstance(value, str) and not _is_json(event.datacontenttype):
                event.data = value.encode("utf-8")
            else:
                event.data = _compact_json(value, sort_keys=False)
        event.extensions = {
            key: value for key, value in data.items() if key not in _KNOWN_ATTRIBUTES
        }
        return event

    @classmethod
    def from_json(cls, text: str | bytes) -> CloudEvent:
        """Parse an event from its structured JSON text."""
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            raise wrap(exc, InvalidEventError) from exc
        return cls.from_dict(parsed)


@dataclass
class FieldSpec:
    """A data field given as a dotted path and its value."""

    path: str
    value: Any


@dataclass
class Spec:
    """Specification of an event to be created."""

    type: str = ""
    id: str = ""
    source: str = ""
    fields: list[FieldSpec] = field(default_factory=list)

    def add_field(self, path: str, value: Any) -> None:
        """Append a data field to the spec."""
        self.fields.append(FieldSpec(path=path, value=value))


def default_source() -> str:
    """Return the default source of an event."""
    return f"{PLUGIN_NAME}/{VERSION}"


def new_id() -> str:
    """Return a fresh random event ID."""
    return str(uuid.uuid4())


def new_default() -> CloudEvent:
    """Create a valid event with default attributes and empty JSON data."""
    event = CloudEvent(
        id=new_id(),
        source=default_source(),
        type=DEFAULT_TYPE,
        time=datetime.now(timezone.utc),
    )
    event.set_data(APPLICATION_JSON, {})
    event.validate()
    return event


def _go_repr(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return repr(value)


def _update_map(data: dict[str, Any], spec: FieldSpec) -> None:
    *parents, last = spec.path.split(".")
    current = data
    for name in parents:
        candidate = current.setdefault(name, {})
        if not isinstance(candidate, dict):
            raise CantSetFieldError(
                f"{CantSetFieldError.message}: {_go_repr(spec.path)} path in "
                f"conflict with value {_go_repr(candidate)}"
            )
        current = candidate
    current[last] = spec.value


def create_from_spec(spec: Spec) -> CloudEvent:
    """Create an event from ``spec``, building nested data from field paths."""
    event = new_default()
    event.id = spec.id
    event.source = spec.source
    event.type = spec.type
    data: dict[str, Any] = {}
    for field_spec in spec.fields:
        _update_map(data, field_spec)
    try:
        event.set_data(APPLICATION_JSON, data)
    except (TypeError, ValueError) as exc:
        raise wrap(exc, CantMarshalAsJsonError) from exc
    return event