"""Envelope codec between aggregates and stored document bodies.

Tagged types are stored as ``{"type": <tag>, "content": {...fields}}``,
untagged types as the bare field map. The id never appears in either shape.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Type, TypeVar

from loguru import logger
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from .errors import ArgumentError, SerializationError
from .metadata import resolve_metadata
from .models import Aggregate

ID_KEY = "id"
TYPE_KEY = "type"
CONTENT_KEY = "content"

T = TypeVar("T", bound=Aggregate)


def to_field_map(aggregate: Aggregate) -> Dict[str, Any]:
    """Serialize ``aggregate`` to a JSON-compatible field map without its id."""

    try:
        fields = aggregate.model_dump(mode="json", by_alias=True, exclude={ID_KEY})
    except PydanticSerializationError as exc:
        raise SerializationError(
            f"Cannot serialize {type(aggregate).__name__} {aggregate.id!r}: {exc}"
        ) from exc
    fields.pop(ID_KEY, None)
    return fields


def encode(aggregate: Aggregate) -> Dict[str, Any]:
    fields = to_field_map(aggregate)
    metadata = resolve_metadata(type(aggregate))
    if metadata.tagged:
        return {TYPE_KEY: metadata.type_tag, CONTENT_KEY: fields}
    return fields


def _declares_envelope_keys(target: Type[Aggregate]) -> bool:
    names = set()
    for name, info in target.model_fields.items():
        names.add(name)
        if info.alias:
            names.add(info.alias)
    return TYPE_KEY in names or CONTENT_KEY in names


def _content_of(body: Any, target: Type[Aggregate], key: str) -> Mapping[str, Any]:
    if not isinstance(body, Mapping):
        raise SerializationError(
            f"Document {key!r} body is {type(body).__name__}, expected an object"
        )

    metadata = resolve_metadata(target)
    if not metadata.tagged:
        if TYPE_KEY in body and CONTENT_KEY in body and not _declares_envelope_keys(target):
            raise SerializationError(
                f"Document {key!r} is a tagged envelope but {target.__name__} declares no type"
            )
        return body

    stored_tag = body.get(TYPE_KEY)
    if stored_tag is not None and stored_tag != metadata.type_tag:
        logger.warning(
            f"Document {key!r} has type {stored_tag!r}, expected {metadata.type_tag!r}"
        )
        raise SerializationError(
            f"Document {key!r} is of type {stored_tag!r}, not {metadata.type_tag!r}"
        )
    content = body.get(CONTENT_KEY)
    if not isinstance(content, Mapping):
        raise SerializationError(
            f"Document {key!r} has no {CONTENT_KEY!r} object for tagged type {target.__name__}"
        )
    return content


def from_field_map(fields: Any, target: Type[T], key: str) -> T:
    """Validate a stored field map into ``target`` and attach ``key`` as its id."""

    if not isinstance(fields, Mapping):
        raise SerializationError(
            f"Document {key!r} content is {type(fields).__name__}, expected an object"
        )
    data = {name: value for name, value in fields.items() if name != ID_KEY}
    try:
        aggregate = target.model_validate(data)
    except (ValidationError, ArgumentError) as exc:
        raise SerializationError(
            f"Document {key!r} does not match {target.__name__}: {exc}"
        ) from exc
    aggregate.id = key
    return aggregate


def decode(body: Any, target: Type[T], key: str) -> T:
    """Build a ``target`` instance from a stored body, taking its id from ``key``."""

    return from_field_map(_content_of(body, target, key), target, key)
