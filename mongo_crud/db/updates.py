"""Update specifications passed to RecordStore.apply.

A write is described by a query plus one of two update kinds:

- FieldAssignment: plain field -> value pairs, applied with `$set` (patch).
- OperatorUpdate: an arbitrary operator document such as
  `{"$unset": {...}, "$push": {...}}` (update).

Both render to a driver update document with the modification timestamp
merged into `$set`. Neither ever mutates the mapping it was built from.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TypeAlias

from pydantic import BaseModel

from mongo_crud.core.exceptions import ArgumentValidationError


def utc_now() -> datetime:
    """Current UTC time as BSON stores it: naive, millisecond precision."""
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond // 1000 * 1000, tzinfo=None)


def to_document(value: Mapping[str, Any] | BaseModel, *, exclude_unset: bool = False) -> dict[str, Any]:
    """Copy a mapping or dump a pydantic model into a plain dict."""
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_unset=exclude_unset)
    if isinstance(value, Mapping):
        return dict(value)
    raise ArgumentValidationError(
        "Expected a mapping or a pydantic model", context={"type": type(value).__name__}
    )


@dataclass(frozen=True)
class FieldAssignment:
    """Field-assignment-only update (patch semantics)."""

    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: Mapping[str, Any] | BaseModel, *, skip_none: bool = True) -> "FieldAssignment":
        """Build from caller data, omitting absent fields.

        Pydantic models drop fields that were never set. Mappings drop None
        values unless skip_none is False.
        """
        if isinstance(data, BaseModel):
            fields = to_document(data, exclude_unset=True)
        else:
            fields = {
                key: value
                for key, value in to_document(data).items()
                if not (skip_none and value is None)
            }
        for key in fields:
            if key.startswith("$"):
                raise ArgumentValidationError(
                    "Patch data cannot contain update operators", context={"field": key}
                )
        return cls(fields)

    def to_update(self, modification_field: str, now: datetime) -> dict[str, Any]:
        return {"$set": {**self.fields, modification_field: now}}


@dataclass(frozen=True)
class OperatorUpdate:
    """Arbitrary operator document (update semantics)."""

    operators: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, update: Mapping[str, Any]) -> "OperatorUpdate":
        if not isinstance(update, Mapping):
            raise ArgumentValidationError(
                "Update must be a mapping of operators", context={"type": type(update).__name__}
            )
        for key in update:
            if not key.startswith("$"):
                raise ArgumentValidationError(
                    "Update keys must be update operators", context={"field": key}
                )
        return cls(dict(update))

    def to_update(self, modification_field: str, now: datetime) -> dict[str, Any]:
        document = dict(self.operators)
        document["$set"] = {**document.get("$set", {}), modification_field: now}
        return document


UpdateSpec: TypeAlias = FieldAssignment | OperatorUpdate


@dataclass(frozen=True)
class Mutation:
    """A query paired with the update to apply to the first matching record."""

    query: dict[str, Any]
    spec: UpdateSpec
