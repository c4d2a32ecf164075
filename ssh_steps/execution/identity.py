"""Run a block of work as the invoking identity."""

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from typing import Any, Protocol

_current_identity: ContextVar[Any] = ContextVar("ssh_steps_identity", default=None)


@contextmanager
def impersonate(identity: Any) -> Iterator[Any]:
    """Bind ``identity`` for the duration of the block.

    The previous identity is restored on every exit path, so nothing leaks
    into code running after the block.
    """
    token = _current_identity.set(identity)
    try:
        yield identity
    finally:
        _current_identity.reset(token)


def current_identity() -> Any:
    """Return the identity bound by the innermost ``impersonate`` block."""
    return _current_identity.get()


class IdentityRealm(Protocol):
    """Source of "run this block as identity X" semantics."""

    def impersonate(self, identity: Any) -> AbstractContextManager[Any]: ...


class ContextIdentityRealm:
    """Default realm backed by a context variable."""

    def impersonate(self, identity: Any) -> AbstractContextManager[Any]:
        return impersonate(identity)
