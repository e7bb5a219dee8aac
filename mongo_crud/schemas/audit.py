"""Audit entry schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditOperation(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    REMOVE = "REMOVE"


class AuditEntry(BaseModel):
    """One persisted record of a write.

    CREATE entries carry `new` only, REMOVE entries `old` only, UPDATE
    entries both. Absent images are left out of the stored document.
    """

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)

    id: Any = Field(default=None, alias="_id")
    collection: str
    operation: AuditOperation
    old: dict[str, Any] | None = None
    new: dict[str, Any] | None = None
    user: Any
    timestamp: datetime

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, by_alias=True)
