"""Record identifier helpers."""

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId

from mongo_crud.core.exceptions import ArgumentValidationError


def normalize_id(value: Any) -> ObjectId:
    """Return `value` as an ObjectId.

    ObjectIds pass through untouched; 24-character hex strings and 12-byte
    values are converted. Normalizing is idempotent, so callers may pass
    either form.

    Raises:
        ArgumentValidationError: value is None or not a valid encoding.
    """
    if isinstance(value, ObjectId):
        return value
    if value is None or not isinstance(value, (str, bytes)):
        raise ArgumentValidationError(
            "Invalid record identifier", context={"id": repr(value)}
        )
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as e:
        raise ArgumentValidationError(
            "Invalid record identifier", context={"id": repr(value)}
        ) from e


def new_id() -> ObjectId:
    """Generate a fresh identifier for a pushed subdocument."""
    return ObjectId()
