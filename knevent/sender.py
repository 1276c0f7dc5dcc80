"""Sending events to targets."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Protocol
from urllib.parse import quote, urljoin

from knevent.errors import KnEventError, wrap
from knevent.event import CloudEvent
from knevent.target import Target

_log = logging.getLogger(__name__)

_HEADER_SAFE = "".join(chr(c) for c in range(0x20, 0x7F) if chr(c) not in '"%')
_BODY_ATTRIBUTES = ("data", "data_base64", "datacontenttype")


class CantSendEventError(KnEventError):
    message = "can't sent the event"


class Sender(Protocol):
    """Something that delivers an event to its configured target."""

    def send(self, event: CloudEvent) -> None:
        ...


def _header_value(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value)
    return quote(text, safe=_HEADER_SAFE)


@dataclass
class HttpSender:
    """Delivers events over HTTP in binary content mode."""

    url: str
    relative_uri: str = ""
    timeout: float = 30.0

    def _endpoint(self) -> str:
        if self.relative_uri:
            return urljoin(self.url, self.relative_uri)
        return self.url

    def send(self, event: CloudEvent) -> None:
        """POST the event; raise CantSendEventError unless answered with 2xx."""
        headers = {
            f"ce-{name}": _header_value(value)
            for name, value in event.to_dict().items()
            if name not in _BODY_ATTRIBUTES
        }
        if event.datacontenttype is not None:
            headers["Content-Type"] = event.datacontenttype
        request = urllib.request.Request(
            self._endpoint(),
            data=event.data or b"",
            headers=headers,
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                status = response.status
        except OSError as exc:
            raise wrap(exc, CantSendEventError)
        if not 200 <= status < 300:
            raise CantSendEventError(
                f"{CantSendEventError.message}: unexpected status {status}"
            )


@dataclass
class _SendLogic:
    delegate: Sender

    def send(self, event: CloudEvent) -> None:
        _log.debug("Sending the event", extra={"fields": {"event": event.to_json()}})
        try:
            self.delegate.send(event)
        except Exception as exc:
            raise wrap(exc, CantSendEventError)
        _log.info("Event (ID: %s) have been sent.", event.id)


@dataclass
class Binding:
    """Injectable dependencies for sending events.

    ``create_sender`` builds a sender for a configuration and a target.
    ``new_kube_clients`` takes a configuration and returns clients with a
    ``namespace()`` method; it is needed only for cluster references.
    """

    create_sender: Callable[[Any, Target], Sender]
    new_kube_clients: Callable[[Any], Any] | None = None

    def new_sender(self, cfg: Any, target: Target) -> Sender:
        """Create a sender that logs and wraps delivery failures."""
        return _SendLogic(self.create_sender(cfg, target))