from typing import Any

import pytest
from bson import ObjectId

from odmi.driver_context import use_driver
from odmi.drivers import BaseDriver
from odmi.mapping.documents import deep_copy_document


class CountingCursor:
    """Forward cursor over a list of documents that counts reads and closes and can fail part way through."""
    def __init__(self, documents: list[dict], *, fail_after: int | None = None, error: Exception | None = None):
        self._documents = iter(documents)
        self.fail_after = fail_after
        self.error = error
        self.reads = 0
        self.closes = 0

    def __iter__(self):
        return self

    def __next__(self) -> dict:
        if self.fail_after is not None and self.reads >= self.fail_after:
            raise self.error

        document = next(self._documents)
        self.reads += 1
        return document

    def close(self):
        self.closes += 1


class InMemoryDriver(BaseDriver):
    def __init__(self):
        self.collections: dict[tuple[str | None, str], list[dict]] = {}
        self.cursors: list[CountingCursor] = []
        self.calls: list[tuple[Any, ...]] = []
        self.disconnected = False

    @classmethod
    def connect(cls, settings=None) -> "InMemoryDriver":
        return cls()

    def disconnect(self):
        self.disconnected = True

    def collection(self, collection: str, database: str | None = None) -> list[dict]:
        return self.collections.setdefault((database, collection), [])

    def find(self, collection, filter_document, *, database=None, max_time=None) -> CountingCursor:
        self.calls.append(("find", collection, filter_document, database, max_time))
        cursor = CountingCursor(
            [
                deep_copy_document(document)
                for document in self.collection(collection, database)
                if _matches(document, filter_document)
            ]
        )
        self.cursors.append(cursor)
        return cursor

    def insert_one(self, collection, document, *, database=None):
        self.calls.append(("insert_one", collection, deep_copy_document(document), database))
        stored = deep_copy_document(document)
        stored.setdefault("_id", ObjectId())
        self.collection(collection, database).append(stored)
        return stored["_id"]

    def update_one(self, collection, filter_document, update_document, *, database=None):
        self.calls.append(("update_one", collection, filter_document, deep_copy_document(update_document), database))
        for document in self.collection(collection, database):
            if _matches(document, filter_document):
                document.update(deep_copy_document(update_document.get("$set", {})))
                for key in update_document.get("$unset", {}):
                    document.pop(key, None)

                return


def _matches(document: dict, filter_document: dict) -> bool:
    for key, expected in filter_document.items():
        match expected:
            case {"$in": values}:
                if document.get(key) not in values:
                    return False

            case _:
                if document.get(key) != expected:
                    return False

    return True


@pytest.fixture
def counting_cursor() -> type[CountingCursor]:
    return CountingCursor


@pytest.fixture
def memory_driver() -> InMemoryDriver:
    return InMemoryDriver()


@pytest.fixture
def driver(memory_driver):
    with use_driver(memory_driver):
        yield memory_driver
