"""Exceptions that carry the errors they wrap."""

from __future__ import annotations


class KnEventError(Exception):
    """Base class of every error raised by the package."""

    message = "kn event error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.message if message is None else message)


def _kind_of(wrapper: type[BaseException] | BaseException) -> type[BaseException]:
    return type(wrapper) if isinstance(wrapper, BaseException) else wrapper


def _matches(err: BaseException, kind: type[BaseException], seen: set[int]) -> bool:
    if id(err) in seen:
        return False
    seen.add(id(err))
    if isinstance(err, kind):
        return True
    return any(_matches(inner, kind, seen) for inner in unwrap_all(err))


def wrap(
    err: BaseException, wrapper: type[BaseException] | BaseException
) -> BaseException:
    """Wrap ``err`` with ``wrapper`` unless it already is of that kind.

    The result is an instance of the wrapper's class whose message is
    ``"<wrapper>: <err>"``; both errors are reachable with :func:`unwrap_all`.
    """
    kind = _kind_of(wrapper)
    if _matches(err, kind, set()):
        return err
    sentinel = wrapper if isinstance(wrapper, BaseException) else wrapper()
    wrapped = kind(f"{sentinel}: {err}")
    wrapped._wrapped = (sentinel, err)  # type: ignore[attr-defined]
    wrapped.__cause__ = err
    return wrapped


def unwrap_all(err: BaseException) -> list[BaseException]:
    """Return the errors directly wrapped by ``err``, possibly none."""
    pair = getattr(err, "_wrapped", None)
    if pair:
        return list(pair)
    if err.__cause__ is not None:
        return [err.__cause__]
    return []


def cause(err: BaseException) -> BaseException | None:
    """Return the second wrapped error of ``err``, the one that caused it."""
    errs = unwrap_all(err)
    if len(errs) < 2:
        return None
    return errs[1]