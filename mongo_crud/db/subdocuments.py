"""Query rewriting for mutations of embedded arrays.

A subdocument lives inside an array field of its parent record. To touch a
single element with one update call the element predicate is expressed as
dotted paths rooted at the array field (`likes.name`) and the assignments
target the positional element the predicate matched (`likes.$.name`).
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from mongo_crud.core.exceptions import ArgumentValidationError
from mongo_crud.db.identifiers import new_id, normalize_id
from mongo_crud.db.updates import FieldAssignment, Mutation, OperatorUpdate, to_document


def _prefix_keys(prefix: str, mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key if key.startswith(prefix) else f"{prefix}{key}": value
        for key, value in mapping.items()
    }


def prefix_query_keys(array_field: str, query: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite element predicate keys to `<array_field>.<key>`.

    Keys already rooted at the array field are kept, so the rewrite is
    idempotent. The input mapping is not modified.
    """
    return _prefix_keys(f"{array_field}.", query)


def positional_assignments(array_field: str, data: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite assignment keys to `<array_field>.$.<key>`.

    Keys already in positional form are kept. The input mapping is not
    modified.
    """
    return _prefix_keys(f"{array_field}.$.", data)


def _require(**arguments: Any) -> None:
    for name, value in arguments.items():
        if value is None or (isinstance(value, str) and not value):
            raise ArgumentValidationError(f"The '{name}' parameter is required")


def push_mutation(id_: Any, array_field: str, value: Any) -> Mutation:
    """Append `value` to the array, giving structured values a fresh `_id`."""
    _require(id_=id_, array_field=array_field, value=value)
    if isinstance(value, (Mapping, BaseModel)):
        value = {**to_document(value), "_id": new_id()}
    return Mutation(
        {"_id": normalize_id(id_)},
        OperatorUpdate({"$push": {array_field: value}}),
    )


def patch_mutation(
    id_: Any,
    array_field: str,
    query: Mapping[str, Any],
    data: Mapping[str, Any] | BaseModel,
    *,
    skip_none: bool = True,
) -> Mutation:
    """Merge `data` into the first array element matching `query`."""
    _require(id_=id_, array_field=array_field, query=query, data=data)
    element = FieldAssignment.from_data(data, skip_none=skip_none)
    parent_query = prefix_query_keys(array_field, query)
    parent_query["_id"] = normalize_id(id_)
    return Mutation(
        parent_query,
        FieldAssignment(positional_assignments(array_field, element.fields)),
    )


def pull_mutation(id_: Any, array_field: str, query: Any) -> Mutation:
    """Remove every array element matching `query`."""
    _require(id_=id_, array_field=array_field, query=query)
    return Mutation(
        {"_id": normalize_id(id_)},
        OperatorUpdate({"$pull": {array_field: query}}),
    )


def element_id_query(element_id: Any) -> dict[str, Any]:
    """Predicate selecting an array element by its identifier."""
    _require(element_id=element_id)
    return {"_id": normalize_id(element_id)}


def project_element(element: Any, projection: Mapping[str, Any] | None) -> Any:
    """Apply a top-level inclusion or exclusion projection to an element.

    `_id` is kept unless explicitly excluded. Primitive elements are
    returned as they are.
    """
    if not projection or not isinstance(element, Mapping):
        return element
    include_id = bool(projection.get("_id", 1))
    fields = {key: bool(flag) for key, flag in projection.items() if key != "_id"}
    if any(fields.values()) or (not fields and include_id):
        projected = {key: element[key] for key, flag in fields.items() if flag and key in element}
    else:
        projected = {key: value for key, value in element.items() if fields.get(key, True)}
    if include_id and "_id" in element:
        projected["_id"] = element["_id"]
    else:
        projected.pop("_id", None)
    return projected
