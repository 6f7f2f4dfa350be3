from typing import Protocol, runtime_checkable

from pymongo.database import Database


@runtime_checkable
class MongoDBConnection(Protocol):
    """The parts of `pymongo.MongoClient` the driver uses, so tests can substitute a client."""
    def get_database(self, name: str | None = None) -> Database:
        ...

    def close(self):
        ...
