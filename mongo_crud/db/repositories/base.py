"""Generic record store for a single MongoDB collection."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, TypeAlias

from pydantic import BaseModel
from pymongo import ReturnDocument

from mongo_crud.config import Settings, get_settings
from mongo_crud.core.exceptions import ArgumentValidationError, NotConnectedError
from mongo_crud.db.identifiers import normalize_id
from mongo_crud.db.subdocuments import (
    element_id_query,
    patch_mutation,
    project_element,
    pull_mutation,
    push_mutation,
)
from mongo_crud.db.updates import FieldAssignment, OperatorUpdate, UpdateSpec, to_document, utc_now

logger = logging.getLogger(__name__)

Record: TypeAlias = dict[str, Any]
Sort: TypeAlias = Mapping[str, int] | Sequence[tuple[str, int]]


def _sort_pairs(sort: Sort) -> list[tuple[str, int]]:
    if isinstance(sort, Mapping):
        return list(sort.items())
    return [tuple(pair) for pair in sort]


def _require_query(query: Mapping[str, Any] | None) -> dict[str, Any]:
    if query is None:
        raise ArgumentValidationError("The 'query' parameter is required")
    return dict(query)


class CollectionRepository:
    """Lazy access to one named collection through a shared connection."""

    def __init__(self, connection: Any, database_name: str, collection_name: str) -> None:
        for name, value in (("database_name", database_name), ("collection_name", collection_name)):
            if not isinstance(value, str) or not value:
                raise ArgumentValidationError(f"{name} MUST be a non-empty string")
        self.connection = connection
        self.database_name = database_name
        self.collection_name = collection_name
        self._collection: Any = None

    @property
    def collection(self) -> Any:
        """The driver collection. Only valid after verify_connection()."""
        return self._collection

    def verify_connection(self) -> None:
        """Raise NotConnectedError unless the connection is live.

        Resolves the collection handle on the first successful check.
        """
        if not self.connection.is_connected:
            raise NotConnectedError("This client is not connected, it cannot perform operations")
        if self._collection is None:
            self._collection = self.connection.collection(self.database_name, self.collection_name)


class RecordStore(CollectionRepository):
    """Uniform CRUD and subdocument operations over one collection.

    Absence is not an error: lookups and writes against a missing record
    return None. Driver errors propagate unchanged. Every write funnels
    through apply(), which stamps the modification date and returns the
    post-update record unless the caller asks otherwise.
    """

    def __init__(
        self,
        connection: Any,
        database_name: str,
        collection_name: str,
        *,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(connection, database_name, collection_name)
        settings = settings or get_settings()
        self.creation_date_field = settings.creation_date_field
        self.modification_date_field = settings.modification_date_field

    # --- Retrieval ---

    async def list(
        self,
        query: Mapping[str, Any] | None = None,
        limit: int | None = None,
        skip: int | None = None,
        sort: Sort | None = None,
        projection: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        """List records matching query, paginated by skip/limit."""
        self.verify_connection()
        kwargs: dict[str, Any] = {}
        if projection is not None:
            kwargs["projection"] = dict(projection)
        if skip:
            kwargs["skip"] = skip
        if limit:
            kwargs["limit"] = limit
        if sort:
            kwargs["sort"] = _sort_pairs(sort)
        cursor = self.collection.find(dict(query or {}), **kwargs)
        return await cursor.to_list(length=None)

    async def count(self, query: Mapping[str, Any] | None = None) -> int:
        """Count records matching query."""
        self.verify_connection()
        return await self.collection.count_documents(dict(query or {}))

    async def exists(self, query: Mapping[str, Any] | None = None) -> bool:
        """Check whether any record matches query. An empty query is refused."""
        self.verify_connection()
        if not query:
            raise ArgumentValidationError("The 'query' parameter is required")
        return await self.collection.find_one(dict(query), projection={"_id": 1}) is not None

    async def get(self, query: Mapping[str, Any], projection: Mapping[str, Any] | None = None) -> Record | None:
        """Get the first record matching query."""
        self.verify_connection()
        return await self.collection.find_one(dict(query or {}), projection=projection)

    async def get_by_id(self, id_: Any, projection: Mapping[str, Any] | None = None) -> Record | None:
        """Get record by identifier."""
        self.verify_connection()
        return await self.get({"_id": normalize_id(id_)}, projection)

    # --- Persistence ---

    async def create(self, document: Mapping[str, Any] | BaseModel) -> Record:
        """Insert a copy of document stamped with its creation date."""
        self.verify_connection()
        record = to_document(document)
        record[self.creation_date_field] = utc_now()
        result = await self.collection.insert_one(record)
        record["_id"] = result.inserted_id
        logger.debug(f"Created record {record['_id']} in {self.collection_name}")
        return record

    async def apply(self, query: Mapping[str, Any], spec: UpdateSpec, **options: Any) -> Record | None:
        """Apply an update spec to the first record matching query.

        Options are forwarded to find_one_and_update; pass
        return_document=ReturnDocument.BEFORE to get the pre-image instead.
        """
        self.verify_connection()
        query = _require_query(query)
        update = spec.to_update(self.modification_date_field, utc_now())
        options.setdefault("return_document", ReturnDocument.AFTER)
        record = await self.collection.find_one_and_update(query, update, **options)
        if record is None:
            logger.debug(f"No record in {self.collection_name} matched {query}")
        return record

    async def update(self, query: Mapping[str, Any], update: Mapping[str, Any], **options: Any) -> Record | None:
        """Apply update operators ($set, $unset, $push, ...) to one record."""
        self.verify_connection()
        return await self.apply(query, OperatorUpdate.from_data(update), **options)

    async def update_by_id(self, id_: Any, update: Mapping[str, Any], **options: Any) -> Record | None:
        self.verify_connection()
        return await self.update({"_id": normalize_id(id_)}, update, **options)

    async def patch(
        self,
        query: Mapping[str, Any],
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        **options: Any,
    ) -> Record | None:
        """Set only the given fields of one record."""
        self.verify_connection()
        return await self.apply(query, FieldAssignment.from_data(data, skip_none=skip_none), **options)

    async def patch_by_id(
        self,
        id_: Any,
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        **options: Any,
    ) -> Record | None:
        self.verify_connection()
        return await self.patch({"_id": normalize_id(id_)}, data, skip_none=skip_none, **options)

    async def remove(self, query: Mapping[str, Any], **options: Any) -> Record | None:
        """Delete one record and return its pre-deletion snapshot."""
        self.verify_connection()
        record = await self.collection.find_one_and_delete(_require_query(query), **options)
        if record is not None:
            logger.debug(f"Removed record {record.get('_id')} from {self.collection_name}")
        return record

    async def remove_by_id(self, id_: Any, **options: Any) -> Record | None:
        self.verify_connection()
        return await self.remove({"_id": normalize_id(id_)}, **options)

    # --- Subdocuments ---

    async def list_subdocuments(
        self,
        id_: Any,
        array_field: str,
        alias: str = "item",
        condition: Any = None,
    ) -> list[Any] | None:
        """List elements of array_field, optionally filtered per element.

        condition is an aggregation expression referencing the element as
        `$$<alias>`, e.g. `{"$eq": ["$$item.name", "games"]}`.
        """
        self.verify_connection()
        if not array_field:
            raise ArgumentValidationError("The 'array_field' parameter is required")
        _id = normalize_id(id_)
        if condition is None:
            parent = await self.collection.find_one({"_id": _id}, projection={array_field: 1})
        else:
            pipeline = [
                {"$match": {"_id": _id}},
                {
                    "$project": {
                        array_field: {
                            "$filter": {
                                "input": f"${array_field}",
                                "as": alias,
                                "cond": condition,
                            }
                        }
                    }
                },
            ]
            results = await self.collection.aggregate(pipeline).to_list(length=1)
            parent = results[0] if results else None
        if parent is None:
            return None
        return parent.get(array_field)

    async def get_subdocument(
        self,
        id_: Any,
        array_field: str,
        query: Mapping[str, Any],
        projection: Mapping[str, Any] | None = None,
    ) -> Any | None:
        """Get the first element of array_field matching query."""
        self.verify_connection()
        if not array_field or not query:
            raise ArgumentValidationError("The 'array_field' and 'query' parameters are required")
        match = {"$elemMatch": dict(query)}
        parent = await self.collection.find_one(
            {"_id": normalize_id(id_), array_field: match},
            projection={array_field: match},
        )
        if not parent or not parent.get(array_field):
            return None
        return project_element(parent[array_field][0], projection)

    async def add_subdocument(self, id_: Any, array_field: str, value: Any, **options: Any) -> Record | None:
        """Append value to array_field. Structured values get a fresh `_id`."""
        self.verify_connection()
        mutation = push_mutation(id_, array_field, value)
        return await self.apply(mutation.query, mutation.spec, **options)

    async def patch_subdocument(
        self,
        id_: Any,
        array_field: str,
        query: Mapping[str, Any],
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        **options: Any,
    ) -> Record | None:
        """Merge data into the first element of array_field matching query."""
        self.verify_connection()
        mutation = patch_mutation(id_, array_field, query, data, skip_none=skip_none)
        return await self.apply(mutation.query, mutation.spec, **options)

    async def patch_subdocument_by_id(
        self,
        id_: Any,
        array_field: str,
        element_id: Any,
        data: Mapping[str, Any] | BaseModel,
        *,
        skip_none: bool = True,
        **options: Any,
    ) -> Record | None:
        self.verify_connection()
        return await self.patch_subdocument(
            id_, array_field, element_id_query(element_id), data, skip_none=skip_none, **options
        )

    async def remove_subdocument(self, id_: Any, array_field: str, query: Any, **options: Any) -> Record | None:
        """Pull every element of array_field matching query."""
        self.verify_connection()
        mutation = pull_mutation(id_, array_field, query)
        return await self.apply(mutation.query, mutation.spec, **options)

    async def remove_subdocument_by_id(
        self, id_: Any, array_field: str, element_id: Any, **options: Any
    ) -> Record | None:
        self.verify_connection()
        return await self.remove_subdocument(id_, array_field, element_id_query(element_id), **options)
