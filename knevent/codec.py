"""Compact text encoding of events: base64url(zlib(JSON))."""

from __future__ import annotations

import base64
import zlib

from knevent.errors import KnEventError, wrap
from knevent.event import CloudEvent


class EncodeError(KnEventError):
    message = "couldn't encode an event"


class DecodeError(KnEventError):
    message = "couldn't decode an event"


def encode(event: CloudEvent) -> str:
    """Encode ``event`` as unpadded URL-safe base64 of zlib-compressed JSON."""
    try:
        payload = event.to_json().encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise wrap(exc, EncodeError) from exc
    compressed = zlib.compress(payload)
    return base64.urlsafe_b64encode(compressed).decode("ascii").rstrip("=")


def decode(encoded: str) -> CloudEvent:
    """Decode an event produced by :func:`encode`."""
    try:
        raw = encoded.encode("ascii")
        raw += b"=" * (-len(raw) % 4)
        compressed = base64.b64decode(raw, altchars=b"-_", validate=True)
        payload = zlib.decompress(compressed)
        return CloudEvent.from_json(payload)
    except (ValueError, zlib.error, KnEventError) as exc:
        raise wrap(exc, DecodeError) from exc