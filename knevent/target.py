"""Event targets: parsing and validation of the ``--to`` sink argument."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit

from knevent.errors import KnEventError

_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")

# prefix -> (kind, api version)
_DEFAULT_MAPPINGS: dict[str, tuple[str, str]] = {
    "broker": ("Broker", "eventing.knative.dev/v1"),
    "channel": ("Channel", "messaging.knative.dev/v1"),
    "service": ("Service", "serving.knative.dev/v1"),
    "ksvc": ("Service", "serving.knative.dev/v1"),
}
_DEFAULT_PREFIX = "ksvc"


class SinkParseError(KnEventError):
    message = "can't parse sink"


class UseToFlagIsRequiredError(KnEventError):
    message = "use --to flag is required"


class InvalidURLFormatError(KnEventError):
    message = "invalid URL format"


class InvalidToFormatError(KnEventError):
    message = "--to flag has invalid format"


class SinkType(enum.Enum):
    """Kind of sink a reference points to."""

    URL = "url"
    REFERENCE = "reference"


@dataclass(frozen=True)
class Reference:
    """A sink: either a plain URL or a reference to a cluster resource."""

    type: SinkType
    url: str | None = None
    kind: str = ""
    api_version: str = ""
    name: str = ""
    namespace: str = ""

    def __str__(self) -> str:
        if self.type is SinkType.URL:
            return self.url or ""
        return f"{self.kind}:{self.api_version}:{self.name} (namespace: {self.namespace})"


@dataclass
class Target:
    """The endpoint an event should be sent to."""

    reference: Reference | None = None
    relative_uri: str = ""


@dataclass
class TargetArgs:
    """Command line arguments describing where to send an event."""

    sink: str = ""
    addressable_uri: str = ""


def parse_sink(sink: str, namespace: str) -> Reference:
    """Parse a sink given as a URL, ``prefix:name`` or ``kind:apiVersion:name``."""
    if _URL_RE.match(sink):
        return Reference(type=SinkType.URL, url=sink)
    parts = sink.split(":")
    if len(parts) == 1:
        kind, api_version = _DEFAULT_MAPPINGS[_DEFAULT_PREFIX]
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        try:
            kind, api_version = _DEFAULT_MAPPINGS[prefix.lower()]
        except KeyError:
            raise SinkParseError(
                f"{SinkParseError.message}: unknown sink prefix {prefix!r} in {sink!r}"
            ) from None
    elif len(parts) == 3:
        kind, api_version, name = parts
        if not kind or not api_version:
            raise SinkParseError(
                f"{SinkParseError.message}: kind and apiVersion are required in {sink!r}"
            )
    else:
        raise SinkParseError(f"{SinkParseError.message}: too many segments in {sink!r}")
    return Reference(
        type=SinkType.REFERENCE,
        kind=kind,
        api_version=api_version,
        name=name,
        namespace=namespace,
    )


def _is_valid_abs_url(uri: str) -> bool:
    try:
        parts = urlsplit(uri)
        host = parts.hostname
    except ValueError:
        return False
    return bool(parts.scheme) and bool(host)


def _request_uri_problem(uri: str) -> str | None:
    if _CONTROL_RE.search(uri):
        return "invalid control character in URL"
    if uri == "*" or uri.startswith("/"):
        return None
    if not _SCHEME_RE.match(uri):
        return "invalid URI for request"
    rest = uri.split(":", 1)[1]
    if rest.startswith("//"):
        authority = rest[2:].split("/", 1)[0]
        if " " in authority:
            return f"invalid character in host name: {authority!r}"
    return None


def _validate_addressable_uri(uri: str) -> None:
    if not uri:
        return
    problem = _request_uri_problem(uri)
    if problem is not None:
        raise InvalidURLFormatError(
            f"--addressable-uri {uri}: {InvalidURLFormatError.message}: {problem}"
        )


def validate_target(args: TargetArgs) -> Reference:
    """Validate the target arguments and return the parsed sink."""
    if not args.sink:
        raise UseToFlagIsRequiredError()
    try:
        ref = parse_sink(args.sink, "default")
    except SinkParseError as exc:
        raise InvalidToFormatError(
            f"{InvalidToFormatError.message}: {args.sink}"
        ) from exc
    if ref.type is SinkType.REFERENCE and not ref.name:
        raise InvalidToFormatError(f"{InvalidToFormatError.message}: {args.sink}")
    if ref.type is SinkType.URL and not _is_valid_abs_url(args.sink):
        raise InvalidURLFormatError(f"{InvalidURLFormatError.message}: {args.sink}")
    _validate_addressable_uri(args.addressable_uri)
    return ref


def create_target(args: TargetArgs, namespace_provider: Callable[[], str]) -> Target:
    """Build a target; the namespace is looked up only for cluster references."""
    try:
        ref = parse_sink(args.sink, "default")
    except SinkParseError:
        ref = None
    if ref is not None and ref.type is SinkType.URL:
        return Target(reference=ref, relative_uri=args.addressable_uri)
    namespace = namespace_provider()
    return Target(
        reference=parse_sink(args.sink, namespace),
        relative_uri=args.addressable_uri,
    )