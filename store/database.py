"""
MongoDB database utilities for async operations.
Handles connection, indexing, id allocation and CRUD operations for records.
"""

from typing import Any, Dict, List, Optional, Type

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from utilities.logger import get_logger

from .models import utcnow

logger = get_logger(__name__)


class DuplicateRecordError(Exception):
    """A write collided with a unique index."""

    def __init__(self, field: str):
        super().__init__(f"duplicate value for {field}")
        self.field = field


def _duplicate_field(exc: DuplicateKeyError) -> str:
    key_value = (exc.details or {}).get("keyValue") or {}
    return next(iter(key_value), "base")


class ResourceRepository:
    """
    Reads and writes one collection of records.

    Queries are anything exposing ``to_mongo()``, ``skip``, ``limit`` and
    ``sort_field``; the repository renders the filter on every call and
    never keeps it.
    """

    def __init__(self, manager: "MongoDBManager", collection_name: str, record_model: Type[BaseModel]):
        self.manager = manager
        self.collection_name = collection_name
        self.record_model = record_model

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.manager.database[self.collection_name]

    def _to_record(self, document: Dict[str, Any]) -> BaseModel:
        document = dict(document)
        document.pop('_id', None)
        return self.record_model(**document)

    async def count(self, query) -> int:
        """Count records matching the query's filters, ignoring pagination."""
        return await self.collection.count_documents(query.to_mongo())

    async def fetch(self, query) -> List[BaseModel]:
        """Return the page of records selected by the query."""
        cursor = self.collection.find(query.to_mongo()).sort(query.sort_field, 1).skip(query.skip)
        if query.limit:
            cursor = cursor.limit(query.limit)
        documents = await cursor.to_list(length=query.limit)
        return [self._to_record(document) for document in documents]

    async def find_by_id(self, record_id: int) -> Optional[BaseModel]:
        document = await self.collection.find_one({"id": record_id})
        if document:
            return self._to_record(document)
        return None

    async def insert(self, attrs: Dict[str, Any]) -> BaseModel:
        """
        Insert a new record with a freshly allocated id.

        Args:
            attrs: Validated record attributes

        Returns:
            The stored record

        Raises:
            DuplicateRecordError: If a unique index rejects the document
        """
        now = utcnow()
        document = dict(attrs)
        document["id"] = await self.manager.next_id(self.collection_name)
        document["created_at"] = now
        document["updated_at"] = now

        try:
            await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.warning("Duplicate record rejected", collection=self.collection_name, field=field)
            raise DuplicateRecordError(field)

        logger.info("Record created", collection=self.collection_name, record_id=document["id"])
        return self._to_record(document)

    async def update(self, record_id: int, changes: Dict[str, Any]) -> bool:
        """
        Apply attribute changes to an existing record.

        Args:
            record_id: Record identifier
            changes: Validated attributes to set

        Returns:
            True if a record matched the id

        Raises:
            DuplicateRecordError: If a unique index rejects the change
        """
        update = dict(changes)
        update["updated_at"] = utcnow()

        try:
            result = await self.collection.update_one({"id": record_id}, {"$set": update})
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.warning("Duplicate record rejected", collection=self.collection_name, field=field)
            raise DuplicateRecordError(field)

        logger.info("Record updated", collection=self.collection_name, record_id=record_id,
                    fields=sorted(changes))
        return result.matched_count > 0


class MongoDBManager:
    """
    Async MongoDB manager for the API's collections.
    Handles connection, indexing and id allocation.
    """

    def __init__(self, connection_url: str, database_name: str, counters_collection: str = "counters"):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            counters_collection: Collection holding id sequences
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.counters_collection = counters_collection
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.repositories: Dict[str, ResourceRepository] = {}

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def register(self, collection_name: str, record_model: Type[BaseModel]) -> ResourceRepository:
        """Return the repository for a collection, creating it on first use."""
        if collection_name not in self.repositories:
            self.repositories[collection_name] = ResourceRepository(self, collection_name, record_model)
        return self.repositories[collection_name]

    async def create_indexes(self, books_collection: str, users_collection: str) -> None:
        """
        Create indexes for id lookups, uniqueness and the list filters.
        """
        try:
            books = self.database[books_collection]
            await books.create_index("id", unique=True)
            await books.create_index("created_at")
            await books.create_index("author_id")
            await books.create_index("catalog_id")
            await books.create_index("user_id")
            await books.create_index([("group_id", 1), ("created_at", 1)])

            users = self.database[users_collection]
            await users.create_index("id", unique=True)
            await users.create_index("email", unique=True)
            await users.create_index("created_at")

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def next_id(self, sequence: str) -> int:
        """Atomically allocate the next integer id for a collection."""
        counter = await self.database[self.counters_collection].find_one_and_update(
            {"_id": sequence},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {"status": "healthy"}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
