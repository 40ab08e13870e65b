"""Build parameterized, type-filtered queries from field criteria.

Criteria map field names (relative to the envelope ``content``) to expected
values. ``None`` means "the field is stored as null"; ``MISSING`` means "the
field was never written". Values only ever travel through the parameter set,
so no criterion value is interpreted as query syntax.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union

from .codec import CONTENT_KEY, TYPE_KEY
from .errors import ArgumentError, ConfigurationError
from .metadata import resolve_metadata
from .models import Aggregate


class _Missing(Enum):
    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing.MISSING
"""Criterion value matching documents where the field is absent."""

Criteria = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]

_NON_IDENTIFIER = re.compile(r"\W")


class Operator(str, Enum):
    EQUALS = "="
    IS_MISSING = "IS MISSING"


@dataclass(frozen=True)
class Predicate:
    """One AND-joined condition on a dotted document path."""

    path: Tuple[str, ...]
    operator: Operator
    param: Optional[str] = None

    @property
    def field_path(self) -> str:
        return ".".join(self.path)

    def render(self) -> str:
        if self.operator is Operator.IS_MISSING:
            return f"{self.field_path} IS MISSING"
        return f"{self.field_path} = ${self.param}"


@dataclass(frozen=True)
class CriteriaQuery:
    """A compiled criteria query: structured predicates plus bound parameters."""

    collection: str
    type_tag: str
    predicates: Tuple[Predicate, ...]
    params: Mapping[str, Any]

    @property
    def statement(self) -> str:
        where = " AND ".join(predicate.render() for predicate in self.predicates)
        return f"SELECT META().id AS id, {CONTENT_KEY} FROM `{self.collection}` WHERE {where}"

    def value_of(self, predicate: Predicate) -> Any:
        if predicate.param is None:
            raise ArgumentError(f"Predicate on {predicate.field_path!r} binds no parameter")
        return self.params[predicate.param]


def _criteria_items(criteria: Optional[Criteria]) -> List[Tuple[str, Any]]:
    if criteria is None:
        return []
    if isinstance(criteria, Mapping):
        items = list(criteria.items())
    else:
        items = [tuple(item) for item in criteria]
    for item in items:
        if len(item) != 2:
            raise ArgumentError(f"Criterion must be a (field, value) pair, got {item!r}")
        field = item[0]
        if not isinstance(field, str) or not field:
            raise ArgumentError(f"Criterion field must be a non-empty string, got {field!r}")
    return items


def _param_name(field: str, taken: Mapping[str, Any]) -> str:
    base = _NON_IDENTIFIER.sub("_", field)
    if base[0].isdigit():
        base = f"_{base}"
    name = base
    suffix = 2
    while name in taken:
        name = f"{base}_{suffix}"
        suffix += 1
    return name


def build_criteria_query(
    target: Type[Aggregate],
    criteria: Optional[Criteria] = None,
    *,
    collection: str,
) -> CriteriaQuery:
    """Compile ``criteria`` into a query over documents tagged like ``target``.

    Raises:
        ConfigurationError: ``target`` declares no document type tag.
        ArgumentError: a criterion is not a ``(non-empty str, value)`` pair.
    """

    metadata = resolve_metadata(target)
    if not metadata.tagged:
        raise ConfigurationError(
            f"{target.__name__} declares no document type; criteria queries need one"
        )

    params: Dict[str, Any] = {TYPE_KEY: metadata.type_tag}
    predicates = [Predicate((TYPE_KEY,), Operator.EQUALS, TYPE_KEY)]

    for field, value in _criteria_items(criteria):
        path = (CONTENT_KEY, *field.split("."))
        if value is MISSING:
            predicates.append(Predicate(path, Operator.IS_MISSING))
            continue
        name = _param_name(field, params)
        params[name] = value
        predicates.append(Predicate(path, Operator.EQUALS, name))

    return CriteriaQuery(
        collection=collection,
        type_tag=metadata.type_tag,
        predicates=tuple(predicates),
        params=MappingProxyType(params),
    )
