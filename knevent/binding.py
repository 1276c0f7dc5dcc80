"""Wiring of the default dependencies."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

import yaml

from knevent.errors import KnEventError
from knevent.sender import Binding, CantSendEventError, HttpSender, Sender
from knevent.target import SinkType, Target

T = TypeVar("T")


def memoize(delegate: Callable[[Any], T]) -> Callable[[Any], T]:
    """Return a function computing ``delegate`` once and reusing the result.

    Failures are not remembered; the next call tries again.
    """
    result: list[T] = []

    def compute(cfg: Any) -> T:
        if not result:
            result.append(delegate(cfg))
        return result[0]

    return compute


def direct_sender_factory(cfg: Any, target: Target) -> Sender:
    """Create a sender delivering straight to a URL target."""
    ref = target.reference
    if ref is None or ref.type is not SinkType.URL or not ref.url:
        raise CantSendEventError(
            f"{CantSendEventError.message}: only URL targets can be sent to "
            f"directly, got {ref}"
        )
    return HttpSender(url=ref.url, relative_uri=target.relative_uri)


@dataclass(frozen=True)
class _KubeClients:
    current_namespace: str

    def namespace(self) -> str:
        return self.current_namespace


def _kubeconfig_path(cfg: Any) -> Path:
    if cfg:
        return Path(cfg)
    env = os.environ.get("KUBECONFIG", "")
    for entry in env.split(os.pathsep):
        if entry:
            return Path(entry)
    return Path.home() / ".kube" / "config"


def _load_kube_clients(cfg: Any) -> _KubeClients:
    path = _kubeconfig_path(cfg)
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise KnEventError(f"can't load kubeconfig {path}: {exc}") from exc
    if not isinstance(doc, dict):
        raise KnEventError(f"can't load kubeconfig {path}: not a mapping")
    current = doc.get("current-context")
    namespace = None
    for entry in doc.get("contexts") or []:
        if isinstance(entry, dict) and entry.get("name") == current:
            namespace = (entry.get("context") or {}).get("namespace")
    return _KubeClients(namespace or "default")


def default_binding() -> Binding:
    """Create the binding used by the command line programs."""
    return Binding(
        create_sender=direct_sender_factory,
        new_kube_clients=memoize(_load_kube_clients),
    )