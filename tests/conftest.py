"""
Pytest configuration and shared fixtures.
"""

import copy
from datetime import datetime, timedelta
from types import SimpleNamespace

import bson
import pytest
from pymongo.errors import DuplicateKeyError

from api.resources import BOOKS, USERS
from store.database import MongoDBManager
from store.models import BookRecord, UserRecord

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def _matches(document, mongo_filter):
    for field, condition in mongo_filter.items():
        if field == "$and":
            if not all(_matches(document, clause) for clause in condition):
                return False
            continue
        value = document.get(field)
        if isinstance(condition, dict) and any(key.startswith("$") for key in condition):
            if value is None:
                return False
            if "$gte" in condition and not value >= condition["$gte"]:
                return False
            if "$lte" in condition and not value <= condition["$lte"]:
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    """Chainable stand-in for a motor cursor."""

    def __init__(self, documents):
        self.documents = documents
        self._skip = 0
        self._limit = 0

    def sort(self, key, direction=1):
        self.documents = sorted(self.documents, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, count):
        bson.encode({"skip": count})
        self._skip = count
        return self

    def limit(self, count):
        self._limit = count
        return self

    async def to_list(self, length=None):
        selected = self.documents[self._skip:]
        if self._limit:
            selected = selected[:self._limit]
        return [copy.deepcopy(d) for d in selected]


class FakeCollection:
    """
    In-memory collection implementing the motor calls the API makes.

    Filters and skips are BSON-encoded like the driver does, so values
    the server would refuse fail here too.
    """

    def __init__(self, name):
        self.name = name
        self.documents = []
        self.unique_fields = set()
        self._object_ids = 0

    def _check_unique(self, document, ignore=None):
        for field in self.unique_fields:
            if field not in document:
                continue
            for existing in self.documents:
                if existing is not ignore and existing.get(field) == document[field]:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name}",
                        code=11000,
                        details={"keyValue": {field: document[field]}},
                    )

    async def create_index(self, keys, unique=False, **kwargs):
        if unique and isinstance(keys, str):
            self.unique_fields.add(keys)
        return keys

    async def insert_one(self, document):
        self._check_unique(document)
        self._object_ids += 1
        document["_id"] = self._object_ids
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one(self, mongo_filter):
        bson.encode(mongo_filter)
        for document in self.documents:
            if _matches(document, mongo_filter):
                return copy.deepcopy(document)
        return None

    def find(self, mongo_filter):
        bson.encode(mongo_filter)
        return FakeCursor([d for d in self.documents if _matches(d, mongo_filter)])

    async def count_documents(self, mongo_filter):
        bson.encode(mongo_filter)
        return len([d for d in self.documents if _matches(d, mongo_filter)])

    async def update_one(self, mongo_filter, update):
        bson.encode(mongo_filter)
        for document in self.documents:
            if _matches(document, mongo_filter):
                changes = update.get("$set", {})
                self._check_unique(changes, ignore=document)
                document.update(copy.deepcopy(changes))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, mongo_filter, update, upsert=False, return_document=None):
        document = next((d for d in self.documents if _matches(d, mongo_filter)), None)
        if document is None:
            if not upsert:
                return None
            document = dict(mongo_filter)
            self.documents.append(document)
        for field, amount in update.get("$inc", {}).items():
            document[field] = document.get(field, 0) + amount
        return copy.deepcopy(document)


class FakeDatabase:
    """Dictionary of FakeCollections addressed like a motor database."""

    def __init__(self):
        self.collections = {}
        self.ping_error = None

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def command(self, name):
        if self.ping_error:
            raise self.ping_error
        return {"ok": 1.0}


def make_book(record_id, created_at=None, **overrides):
    document = {
        "id": record_id,
        "name": f"Book {record_id}",
        "original_name": f"Livro {record_id}",
        "catalog_id": 1,
        "author_id": 10,
        "group_id": None,
        "user_id": 100,
        "created_at": created_at or BASE_TIME + timedelta(days=record_id),
        "updated_at": created_at or BASE_TIME + timedelta(days=record_id),
    }
    document.update(overrides)
    return document


def make_user(record_id, created_at=None, **overrides):
    document = {
        "id": record_id,
        "name": f"User {record_id}",
        "email": f"user{record_id}@example.com",
        "group_id": None,
        "created_at": created_at or BASE_TIME + timedelta(days=record_id),
        "updated_at": created_at or BASE_TIME + timedelta(days=record_id),
    }
    document.update(overrides)
    return document


def seed(database, collection_name, documents):
    """Store documents directly and move the id sequence past them."""
    collection = database[collection_name]
    for document in documents:
        collection.documents.append(copy.deepcopy(document))
    counters = database["counters"].documents
    highest = max((d["id"] for d in collection.documents), default=0)
    counters[:] = [c for c in counters if c["_id"] != collection_name]
    counters.append({"_id": collection_name, "seq": highest})


@pytest.fixture
def fake_database():
    """Create an in-memory database with the API's unique indexes."""
    database = FakeDatabase()
    database[BOOKS.collection].unique_fields.add("id")
    database[USERS.collection].unique_fields.update({"id", "email"})
    return database


@pytest.fixture
def db_manager(fake_database):
    """Create a MongoDB manager bound to the in-memory database."""
    manager = MongoDBManager("mongodb://localhost:27017", "bookshelf_test")
    manager.database = fake_database
    return manager


@pytest.fixture
def book_repository(db_manager):
    return db_manager.register(BOOKS.collection, BookRecord)


@pytest.fixture
def user_repository(db_manager):
    return db_manager.register(USERS.collection, UserRecord)


@pytest.fixture
def five_books(fake_database):
    """Seed five books created on consecutive days."""
    books = [make_book(i) for i in range(1, 6)]
    seed(fake_database, BOOKS.collection, books)
    return books
