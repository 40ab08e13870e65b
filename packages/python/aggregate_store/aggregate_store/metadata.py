"""Per-type storage metadata: document-type tag and expiration.

Both values are declared once on the aggregate class with decorators::

    @document_type("user")
    @expires_after(timedelta(days=1))
    class User(Aggregate):
        name: str

Declarations are read from the class itself and are not inherited, so a
subclass must declare its own tag to be stored in a tagged envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Callable, Optional, Type, TypeVar, Union

from .errors import ArgumentError
from .models import Aggregate

_TYPE_TAG_ATTR = "__aggregate_type_tag__"
_EXPIRATION_ATTR = "__aggregate_expiration__"

A = TypeVar("A", bound=Type[Aggregate])


@dataclass(frozen=True)
class TypeMetadata:
    """Storage metadata shared by every instance of an aggregate type."""

    type_tag: Optional[str] = None
    expiration_seconds: int = 0

    @property
    def tagged(self) -> bool:
        return self.type_tag is not None


NO_METADATA = TypeMetadata()


def _require_aggregate_class(cls: object, decorator: str) -> None:
    if not (isinstance(cls, type) and issubclass(cls, Aggregate)):
        raise ArgumentError(f"@{decorator} can only decorate Aggregate subclasses, got {cls!r}")


def document_type(tag: str) -> Callable[[A], A]:
    """Declare the document-type tag stored in the envelope of ``cls``."""

    if not isinstance(tag, str) or not tag.strip():
        raise ArgumentError(f"Document type tag must be a non-empty string, got {tag!r}")

    def decorate(cls: A) -> A:
        _require_aggregate_class(cls, "document_type")
        setattr(cls, _TYPE_TAG_ATTR, tag)
        return cls

    return decorate


def expires_after(duration: Union[int, timedelta]) -> Callable[[A], A]:
    """Declare how long documents of ``cls`` live in the store (0 = forever)."""

    if isinstance(duration, timedelta):
        seconds = int(duration.total_seconds())
    elif isinstance(duration, int) and not isinstance(duration, bool):
        seconds = duration
    else:
        raise ArgumentError(f"Expiration must be an int or timedelta, got {duration!r}")
    if seconds < 0:
        raise ArgumentError(f"Expiration must not be negative, got {seconds}")

    def decorate(cls: A) -> A:
        _require_aggregate_class(cls, "expires_after")
        setattr(cls, _EXPIRATION_ATTR, seconds)
        return cls

    return decorate


@lru_cache(maxsize=None)
def resolve_metadata(cls: Type[Aggregate]) -> TypeMetadata:
    """Return the declared metadata of ``cls``, defaulting to no tag and no expiration."""

    declared = vars(cls)
    type_tag = declared.get(_TYPE_TAG_ATTR)
    expiration = declared.get(_EXPIRATION_ATTR, 0)
    if type_tag is None and expiration == 0:
        return NO_METADATA
    return TypeMetadata(type_tag=type_tag, expiration_seconds=expiration)
