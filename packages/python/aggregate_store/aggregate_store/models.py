"""Pydantic models shared by every aggregate persisted in the store."""

from __future__ import annotations

import functools
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ArgumentError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Aggregate(BaseModel):
    """
    Base class for entities persisted through ``AggregateManager``.

    - id: document key in the store, assigned by the caller before saving.
      It is stripped from the stored body and restored from the key on read.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None


def _epoch_second(value: datetime) -> int:
    if value.tzinfo is None:
        raise ArgumentError(f"Timestamp {value!r} has no timezone")
    return (value - _EPOCH) // timedelta(seconds=1)


@functools.total_ordering
class QueryableDateTime(BaseModel):
    """
    Immutable timestamp stored together with its epoch second.

    The redundant ``epochSecond`` lets range criteria run against a plain
    integer instead of a formatted date string. Both representations must
    describe the same second, otherwise construction fails.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    zoned_date_time: AwareDatetime = Field(alias="zonedDateTime")
    epoch_second: int = Field(alias="epochSecond")

    @field_validator("zoned_date_time", mode="before")
    @classmethod
    def strip_zone_region(cls, value: Any) -> Any:
        # zoned timestamps written as "2018-01-01T00:00:00Z[UTC]" carry a region suffix
        if isinstance(value, str) and value.endswith("]") and "[" in value:
            return value[: value.index("[")]
        return value

    @model_validator(mode="after")
    def check_epoch_second(self) -> "QueryableDateTime":
        if _epoch_second(self.zoned_date_time) != self.epoch_second:
            raise ArgumentError(
                f"Incompatible epoch {self.epoch_second} with dateTime {self.zoned_date_time.isoformat()}"
            )
        return self

    @classmethod
    def of(cls, value: datetime) -> "QueryableDateTime":
        return cls(zoned_date_time=value, epoch_second=_epoch_second(value))

    @classmethod
    def from_epoch_second(cls, epoch_second: int) -> "QueryableDateTime":
        value = datetime.fromtimestamp(epoch_second, tz=timezone.utc)
        return cls(zoned_date_time=value, epoch_second=epoch_second)

    @classmethod
    def now(cls) -> "QueryableDateTime":
        return cls.of(datetime.now(timezone.utc))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, QueryableDateTime):
            return NotImplemented
        return self.epoch_second < other.epoch_second

    def __str__(self) -> str:
        return (
            f"QueryableDateTime{{zonedDateTime={self.zoned_date_time.isoformat()}, "
            f"epochSecond={self.epoch_second}}}"
        )
