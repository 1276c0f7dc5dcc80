"""In-cluster sender: sends an event described by environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlsplit

from knevent.binding import default_binding
from knevent.codec import decode
from knevent.errors import KnEventError, wrap
from knevent.event import CloudEvent
from knevent.sender import Binding, Sender
from knevent.target import Reference, SinkType, Target

_log = logging.getLogger(__name__)


class ConfigureIcsError(KnEventError):
    message = "can't configure in-cluster sender"


class IcsFailedError(KnEventError):
    message = "the in-cluster sender failure"


@dataclass
class IcsArgs:
    """Settings of the in-cluster sender, read from ``K_*`` variables."""

    sink: str = "localhost"
    ce_overrides: str = ""
    event: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> IcsArgs:
        """Read K_SINK, K_CEOVERRIDES and K_EVENT, keeping defaults for unset ones."""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            sink=env.get("K_SINK", defaults.sink),
            ce_overrides=env.get("K_CEOVERRIDES", defaults.ce_overrides),
            event=env.get("K_EVENT", defaults.event),
        )


@dataclass
class IcsApp:
    """Sends the encoded event from the environment to the configured sink."""

    binding: Binding = field(default_factory=default_binding)

    def send_from_env(
        self, cfg: Any = None, environ: Mapping[str, str] | None = None
    ) -> None:
        """Decode the event from the environment and send it to the sink."""
        sender, event = self._configure(cfg, environ)
        try:
            sender.send(event)
        except Exception as exc:
            raise wrap(exc, IcsFailedError)
        _log.info("Event sent", extra={"fields": {"ce-id": event.id}})

    def _configure(
        self, cfg: Any, environ: Mapping[str, str] | None
    ) -> tuple[Sender, CloudEvent]:
        args = IcsArgs.from_env(environ)
        try:
            urlsplit(args.sink).port
        except ValueError as exc:
            raise wrap(exc, ConfigureIcsError)
        target = Target(reference=Reference(type=SinkType.URL, url=args.sink or None))
        try:
            sender = self.binding.create_sender(cfg, target)
        except Exception as exc:
            raise wrap(exc, ConfigureIcsError)
        return sender, decode(args.event)