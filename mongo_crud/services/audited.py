"""Record store decorator that writes an audit trail for every write."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from mongo_crud.config import Settings, get_settings
from mongo_crud.core.exceptions import ArgumentValidationError
from mongo_crud.core.logging import bound_actor
from mongo_crud.db.identifiers import normalize_id
from mongo_crud.db.repositories.audit import AuditLogStore
from mongo_crud.db.repositories.base import Record, RecordStore, Sort
from mongo_crud.db.subdocuments import (
    element_id_query,
    patch_mutation,
    project_element,
    pull_mutation,
    push_mutation,
)
from mongo_crud.db.updates import FieldAssignment, OperatorUpdate, UpdateSpec, utc_now
from mongo_crud.schemas.audit import AuditEntry, AuditOperation

logger = logging.getLogger(__name__)


class AuditedRecordStore:
    """Wraps a RecordStore and records before/after images of every write.

    Reads are delegated unchanged. Writes run strictly in sequence:

    1. Pre-image lookup (updates and subdocument mutations only).
    2. The wrapped mutation.
    3. The audit insert.

    Nothing spans the three steps, so a concurrent writer between 1 and 2
    leaves a stale `old` image in the audit entry. Updates against a record
    that does not exist are skipped without writing an entry.

    The pre-image lookup honours a forwarded `sort`, and the mutation is
    then pinned to that record's `_id`, so `old` and `new` always describe
    the same record. A forwarded `projection` never reaches the driver:
    audit images are full records, and the projection is applied to the
    top-level fields of the value handed back to the caller.

    Audit-write failures follow settings.audit_failure_policy: "raise"
    propagates the driver error after the data mutation has been kept,
    "log" logs it and returns the mutation result.
    """

    def __init__(
        self,
        store: RecordStore,
        audit_collection_name: str | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.store = store
        self.audit_collection_name = audit_collection_name or settings.audit_collection_name
        self.anonymous_actor = settings.audit_anonymous_actor
        self.failure_policy = settings.audit_failure_policy
        self.audits = AuditLogStore(store.connection, store.database_name, self.audit_collection_name)

    @property
    def collection_name(self) -> str:
        return self.store.collection_name

    def verify_connection(self) -> None:
        self.store.verify_connection()
        self.audits.verify_connection()

    @contextmanager
    def _acting_as(self, actor: Any) -> Iterator[Any]:
        actor = self.anonymous_actor if actor is None else actor
        with bound_actor(actor):
            yield actor

    async def _audit(
        self,
        operation: AuditOperation,
        actor: Any,
        *,
        old: Record | None = None,
        new: Record | None = None,
    ) -> None:
        entry = AuditEntry(
            collection=self.collection_name,
            operation=operation,
            old=old,
            new=new,
            user=actor,
            timestamp=utc_now(),
        )
        try:
            await self.audits.record(entry)
        except PyMongoError:
            logger.error(
                f"Failed to write {operation.value} audit for {self.collection_name}",
                exc_info=True,
            )
            if self.failure_policy == "log":
                return
            raise

    async def _audited_apply(
        self,
        query: Mapping[str, Any] | None,
        spec: UpdateSpec,
        actor: Any,
        options: dict[str, Any],
    ) -> Record | None:
        if query is None:
            raise ArgumentValidationError("The 'query' parameter is required")
        return_document = options.pop("return_document", ReturnDocument.AFTER)
        projection = options.pop("projection", None)
        sort = options.pop("sort", None)
        with self._acting_as(actor) as actor:
            # Same record the driver would pick for this query and sort
            matches = await self.store.list(query, limit=1, sort=sort)
            if not matches:
                logger.debug(f"Nothing to update in {self.collection_name} for {query}, skipping audit")
                return None
            old = matches[0]
            pinned = {**query, "_id": old["_id"]}
            new = await self.store.apply(pinned, spec, return_document=ReturnDocument.AFTER, **options)
            if new is None:
                logger.debug(f"Record {old['_id']} in {self.collection_name} changed before update, skipping audit")
                return None
            await self._audit(AuditOperation.UPDATE, actor, old=old, new=new)
        return project_element(old if return_document == ReturnDocument.BEFORE else new, projection)

    # --- Retrieval ---

    async def list(
        self,
        query: Mapping[str, Any] | None = None,
        limit: int | None = None,
        skip: int | None = None,
        sort: Sort | None = None,
        projection: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        return await self.store.list(query, limit, skip, sort, projection)

    async def count(self, query: Mapping[str, Any] | None = None) -> int:
        return await self.store.count(query)

    async def exists(self, query: Mapping[str, Any] | None = None) -> bool:
        return await self.store.exists(query)

    async def get(self, query: Mapping[str, Any], projection: Mapping[str, Any] | None = None) -> Record | None:
        return await self.store.get(query, projection)

    async def get_by_id(self, id_: Any, projection: Mapping[str, Any] | None = None) -> Record | None:
        return await self.store.get_by_id(id_, projection)

    async def list_subdocuments(
        self, id_: Any, array_field: str, alias: str = "item", condition: Any = None
    ) -> list[Any] | None:
        return await self.store.list_subdocuments(id_, array_field, alias, condition)

    async def get_subdocument(
        self,
        id_: Any,
        array_field: str,
        query: Mapping[str, Any],
        projection: Mapping[str, Any] | None = None,
    ) -> Any | None:
        return await self.store.get_subdocument(id_, array_field, query, projection)

    async def history(self, id_: Any, limit: int | None = None) -> list[AuditEntry]:
        """Audit entries recorded for one record of this collection, oldest first."""
        self.verify_connection()
        return await self.audits.history(self.collection_name, normalize_id(id_), limit)

    # --- Audited writes ---

    async def create(self, document: Mapping[str, Any] | BaseModel, *, actor: Any = None) -> Record:
        self.verify_connection()
        with self._acting_as(actor) as actor:
            record = await self.store.create(document)
            await self._audit(AuditOperation.CREATE, actor, new=record)
        return record

    async def update(
        self, query: Mapping[str, Any], update: Mapping[str, Any], *, actor: Any = None, **options: Any
    ) -> Record | None:
        self.verify_connection()
        return await self._audited_apply(query, OperatorUpdate.from_data(update), actor, options)

    async def update_by_id(
        self, id_: Any, update: Mapping[str, Any], *, actor: Any = None, **options: Any
    ) -> Record | None:
        self.verify_connection()
        return await self.update({"_id": normalize_id(id_)}, update, actor=actor, **options)

    async def patch(
        self,
        query: Mapping[str, Any],
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        actor: Any = None,
        **options: Any,
    ) -> Record | None:
        self.verify_connection()
        spec = FieldAssignment.from_data(data, skip_none=skip_none)
        return await self._audited_apply(query, spec, actor, options)

    async def patch_by_id(
        self,
        id_: Any,
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        actor: Any = None,
        **options: Any,
    ) -> Record | None:
        self.verify_connection()
        return await self.patch({"_id": normalize_id(id_)}, data, skip_none=skip_none, actor=actor, **options)

    async def remove(self, query: Mapping[str, Any], *, actor: Any = None, **options: Any) -> Record | None:
        self.verify_connection()
        projection = options.pop("projection", None)
        with self._acting_as(actor) as actor:
            record = await self.store.remove(query, **options)
            if record is None:
                return None
            await self._audit(AuditOperation.REMOVE, actor, old=record)
        return project_element(record, projection)

    async def remove_by_id(self, id_: Any, *, actor: Any = None, **options: Any) -> Record | None:
        self.verify_connection()
        return await self.remove({"_id": normalize_id(id_)}, actor=actor, **options)

    # --- Audited subdocument writes (recorded as UPDATE) ---

    async def add_subdocument(
        self, id_: Any, array_field: str, value: Any, *, actor: Any = None, **options: Any
    ) -> Record | None:
        self.verify_connection()
        mutation = push_mutation(id_, array_field, value)
        return await self._audited_apply(mutation.query, mutation.spec, actor, options)

    async def patch_subdocument(
        self,
        id_: Any,
        array_field: str,
        query: Mapping[str, Any],
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        actor: Any = None,
        **options: Any,
    ) -> Record | None:
        self.verify_connection()
        mutation = patch_mutation(id_, array_field, query, data, skip_none=skip_none)
        return await self._audited_apply(mutation.query, mutation.spec, actor, options)

    async def patch_subdocument_by_id(
        self,
        id_: Any,
        array_field: str,
        element_id: Any,
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        actor: Any = None,
        **options: Any,
    ) -> Record | None:
        self.verify_connection()
        return await self.patch_subdocument(
            id_,
            array_field,
            element_id_query(element_id),
            data,
            skip_none=skip_none,
            actor=actor,
            **options,
        )

    async def remove_subdocument(
        self, id_: Any, array_field: str, query: Any, *, actor: Any = None, **options: Any
    ) -> Record | None:
        self.verify_connection()
        mutation = pull_mutation(id_, array_field, query)
        return await self._audited_apply(mutation.query, mutation.spec, actor, options)

    async def remove_subdocument_by_id(
        self, id_: Any, array_field: str, element_id: Any, *, actor: Any = None, **options: Any
    ) -> Record | None:
        self.verify_connection()
        return await self.remove_subdocument(
            id_, array_field, element_id_query(element_id), actor=actor, **options
        )
