"""Audit log store."""

import logging
from typing import Any

from mongo_crud.db.repositories.base import CollectionRepository
from mongo_crud.schemas.audit import AuditEntry

logger = logging.getLogger(__name__)


class AuditLogStore(CollectionRepository):
    """Append-only access to an audit collection.

    Entries are inserted once and never modified or deleted here.
    """

    async def record(self, entry: AuditEntry) -> AuditEntry:
        """Persist an audit entry and return it with its assigned id."""
        self.verify_connection()
        result = await self.collection.insert_one(entry.to_document())
        logger.debug(
            f"Audit {entry.operation} on {entry.collection} by {entry.user} ({result.inserted_id})"
        )
        return entry.model_copy(update={"id": result.inserted_id})

    async def history(self, collection: str, record_id: Any, limit: int | None = None) -> list[AuditEntry]:
        """Audit entries touching one record, oldest first."""
        self.verify_connection()
        query = {
            "collection": collection,
            "$or": [{"old._id": record_id}, {"new._id": record_id}],
        }
        cursor = self.collection.find(query, sort=[("timestamp", 1), ("_id", 1)], limit=limit or 0)
        documents = await cursor.to_list(length=None)
        return [AuditEntry.model_validate(document) for document in documents]
