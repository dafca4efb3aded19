import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_cid() -> str | None:
    return correlation_id_var.get()


def set_cid(value: str | None) -> None:
    correlation_id_var.set(value)


@contextmanager
def bound_cid(value: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of the block, generating one if needed."""
    cid = value or get_cid() or str(uuid.uuid4())
    token = correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)
