"""Creating, presenting and sending events on behalf of the command line."""

from __future__ import annotations

import enum
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from knevent.binding import default_binding
from knevent.errors import KnEventError, wrap
from knevent.event import (
    DEFAULT_TYPE,
    PLUGIN_NAME,
    VERSION,
    CloudEvent,
    Spec,
    create_from_spec,
    default_source,
    new_id,
)
from knevent.sender import Binding, CantSendEventError
from knevent.target import TargetArgs, create_target

_INT_RE = re.compile(r"-?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_ZERO_TIME = "0001-01-01T00:00:00Z"
_STR_TAG = "tag:yaml.org,2002:str"
_HUMAN_TEMPLATE = """\u2601\ufe0f  cloudevents.Event
Validation: valid
Context Attributes,
  specversion: {specversion}
  type: {type}
  source: {source}
  id: {id}
  time: {time}
  datacontenttype: {datacontenttype}
Data,
  {data}"""


class UnsupportedOutputModeError(KnEventError):
    message = "unsupported output mode"


class InvalidFormatError(KnEventError):
    message = "invalid format"


class CantBuildEventError(KnEventError):
    message = "can't build event"


class CantMarshalEventError(KnEventError):
    message = "can't marshal event"


class OutputMode(enum.Enum):
    """Kind of output the commands produce."""

    HUMAN_READABLE = "human"
    JSON = "json"
    YAML = "yaml"


@dataclass
class EventArgs:
    """Arguments an event is created with."""

    type: str = DEFAULT_TYPE
    id: str = field(default_factory=new_id)
    source: str = field(default_factory=default_source)
    fields: list[str] = field(default_factory=list)
    raw_fields: list[str] = field(default_factory=list)


@dataclass
class Params:
    """General parameters shared by all commands."""

    output_mode: OutputMode = OutputMode.HUMAN_READABLE
    verbose: bool = False
    kubeconfig: str | None = None


@dataclass
class PluginVersionOutput:
    """Version information in a machine readable form."""

    name: str = PLUGIN_NAME
    version: str = VERSION
    image: str = ""


class _YamlDumper(yaml.SafeDumper):
    """Dumps strings that would read back as another type in double quotes."""


def _represent_str(dumper: _YamlDumper, data: str) -> yaml.ScalarNode:
    tag = dumper.resolve(yaml.ScalarNode, data, (True, False))
    style = '"' if tag != _STR_TAG else None
    return dumper.represent_scalar(_STR_TAG, data, style=style)


_YamlDumper.add_representer(str, _represent_str)


def _json_number(value: float) -> int | float:
    if value.is_integer() and abs(value) < 1e21:
        return int(value)
    return value


def _read_as_int(text: str) -> int | None:
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if str(value) != text or not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _read_as_number(text: str) -> int | float | None:
    as_int = _read_as_int(text)
    if as_int is not None:
        return _json_number(float(as_int))
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value) or f"{value:f}" != text:
        return None
    return _json_number(value)


def _parse_value(text: str) -> Any:
    if text in ("true", "false"):
        return text == "true"
    number = _read_as_number(text)
    if number is not None:
        return number
    return text


def _split_assignment(assignment: str) -> tuple[str, str]:
    path, sep, value = assignment.partition("=")
    if not sep:
        raise InvalidFormatError(
            f"{InvalidFormatError.message}: expected path=value, got {assignment!r}"
        )
    return path, value


def _present_human(event: CloudEvent) -> str:
    if event.data is None:
        raise CantMarshalEventError(f"{CantMarshalEventError.message}: no data")
    try:
        parsed = json.loads(event.data)
    except ValueError as exc:
        raise wrap(exc, CantMarshalEventError)
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise CantMarshalEventError(
            f"{CantMarshalEventError.message}: data is not a JSON object"
        )
    data = json.dumps(parsed, indent=2, sort_keys=True, ensure_ascii=False)
    return _HUMAN_TEMPLATE.format(
        specversion=event.specversion,
        type=event.type,
        source=event.source,
        id=event.id,
        time=event.to_dict().get("time", _ZERO_TIME),
        datacontenttype=event.datacontenttype or "",
        data=data.replace("\n", "\n  "),
    )


def _present_json(event: CloudEvent) -> str:
    try:
        return event.to_json(indent=2)
    except (TypeError, ValueError) as exc:
        raise wrap(exc, CantMarshalEventError)


def _present_yaml(event: CloudEvent) -> str:
    try:
        return yaml.dump(
            event.to_dict(),
            Dumper=_YamlDumper,
            sort_keys=True,
            default_flow_style=False,
            allow_unicode=True,
            width=2**31 - 1,
        )
    except (yaml.YAMLError, TypeError, ValueError) as exc:
        raise wrap(exc, CantMarshalEventError)


@dataclass
class App:
    """Creates, presents and sends events using injected dependencies."""

    binding: Binding = field(default_factory=default_binding)

    def create_with_args(self, args: EventArgs) -> CloudEvent:
        """Create an event; typed fields become booleans, numbers or strings."""
        spec = Spec(type=args.type, id=args.id, source=args.source)
        try:
            for assignment in args.fields:
                path, value = _split_assignment(assignment)
                spec.add_field(path, _parse_value(value))
            for assignment in args.raw_fields:
                path, value = _split_assignment(assignment)
                spec.add_field(path, value)
            return create_from_spec(spec)
        except KnEventError as exc:
            raise wrap(exc, CantBuildEventError)

    def present_with(self, event: CloudEvent, mode: OutputMode) -> str:
        """Render the event in the given output mode."""
        if mode is OutputMode.HUMAN_READABLE:
            return _present_human(event)
        if mode is OutputMode.JSON:
            return _present_json(event)
        if mode is OutputMode.YAML:
            return _present_yaml(event)
        raise UnsupportedOutputModeError(
            f"{UnsupportedOutputModeError.message}: {mode}"
        )

    def send(self, event: CloudEvent, target_args: TargetArgs, params: Params) -> None:
        """Send the event to the target described by ``target_args``."""
        cfg = params.kubeconfig
        target = create_target(target_args, lambda: self._namespace(cfg))
        try:
            sender = self.binding.new_sender(cfg, target)
        except Exception as exc:
            raise wrap(exc, CantSendEventError)
        try:
            sender.send(event)
        except Exception as exc:
            raise wrap(exc, CantSendEventError)

    def _namespace(self, cfg: Any) -> str:
        if self.binding.new_kube_clients is None:
            raise KnEventError(
                "can't resolve the namespace: no Kubernetes clients configured"
            )
        return self.binding.new_kube_clients(cfg).namespace()