from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from .errors import DependencyError
from .utils.logging import log_db_error

SortSpec = Sequence[Tuple[str, int]]


def resolve_id(record_id: Any) -> Any:
    """Map a string id onto an ObjectId when it parses as one."""
    if record_id is None or isinstance(record_id, ObjectId):
        return record_id
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return record_id


class MongoStore:
    """Flat-record store over a single motor collection.

    Every driver failure is logged and re-raised as ``DependencyError`` so the
    lifecycle layer never sees raw ``PyMongoError``s.
    """

    def __init__(self, collection: AsyncIOMotorCollection, name: str | None = None) -> None:
        self.collection = collection
        self.name = name or collection.name

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as exc:
            log_db_error(f"{self.name}.{operation}", exc)
            raise DependencyError(f"The {self.name} store is unavailable. Try again shortly.") from exc

    async def create(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        with self._guard("create"):
            result = await self.collection.insert_one(dict(document))
            return await self.collection.find_one({"_id": result.inserted_id})

    async def restore(self, document: Mapping[str, Any]) -> None:
        """Re-insert a previously removed record under its original id."""
        with self._guard("restore"):
            await self.collection.insert_one(dict(document))

    async def find_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        with self._guard("find_by_id"):
            return await self.collection.find_one({"_id": resolve_id(record_id)})

    async def find_one(self, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with self._guard("find_one"):
            return await self.collection.find_one(dict(filter))

    async def find_many(
        self,
        filter: Mapping[str, Any] | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        with self._guard("find_many"):
            cursor = self.collection.find(dict(filter or {}))
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return [doc async for doc in cursor]

    async def count(self, filter: Mapping[str, Any] | None = None) -> int:
        with self._guard("count"):
            return await self.collection.count_documents(dict(filter or {}))

    async def distinct(self, key: str, filter: Mapping[str, Any] | None = None) -> List[Any]:
        with self._guard("distinct"):
            return await self.collection.distinct(key, dict(filter or {}))

    async def update_by_id(
        self,
        record_id: Any,
        patch: Mapping[str, Any],
        condition: Mapping[str, Any] | None = None,
    ) -> Optional[Dict[str, Any]]:
        """Apply ``patch`` and return the updated record, or None when nothing matched."""
        query = {**dict(condition or {}), "_id": resolve_id(record_id)}
        return await self.update_one(query, patch)

    async def update_one(self, filter: Mapping[str, Any], patch: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with self._guard("update_one"):
            return await self.collection.find_one_and_update(
                dict(filter),
                {"$set": dict(patch)},
                return_document=ReturnDocument.AFTER,
            )

    async def upsert_one(
        self,
        filter: Mapping[str, Any],
        patch: Mapping[str, Any],
        on_insert: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        update: Dict[str, Any] = {"$set": dict(patch)}
        if on_insert:
            update["$setOnInsert"] = dict(on_insert)
        with self._guard("upsert_one"):
            return await self.collection.find_one_and_update(
                dict(filter),
                update,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )

    async def delete_by_id(self, record_id: Any) -> bool:
        with self._guard("delete_by_id"):
            result = await self.collection.delete_one({"_id": resolve_id(record_id)})
            return result.deleted_count > 0

    async def delete_many(self, filter: Mapping[str, Any]) -> int:
        with self._guard("delete_many"):
            result = await self.collection.delete_many(dict(filter))
            return result.deleted_count

    async def claim_by_id(self, record_id: Any, expected_status: str) -> Optional[Dict[str, Any]]:
        """Delete the record if it still has ``expected_status`` and return it.

        This is a single server-side operation, so of several concurrent
        callers exactly one receives the record and the rest receive None.
        """
        with self._guard("claim_by_id"):
            return await self.collection.find_one_and_delete(
                {"_id": resolve_id(record_id), "status": expected_status}
            )

    async def ensure_index(self, keys: SortSpec, unique: bool = False) -> None:
        with self._guard("ensure_index"):
            await self.collection.create_index(list(keys), unique=unique)
