"""Repository layer: collection access for records and their audit trail."""

from mongo_crud.db.repositories.audit import AuditLogStore
from mongo_crud.db.repositories.base import CollectionRepository, Record, RecordStore

__all__ = [
    "CollectionRepository",
    "Record",
    "RecordStore",
    "AuditLogStore",
]
