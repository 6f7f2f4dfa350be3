"""Drivers are the interface between odmi and a document database. odmi needs very little from them: find documents
matching a filter and return a forward cursor, insert one document, and update one document. Connection pooling,
authentication, server selection and the wire protocol are the driver's business.

Drivers should let exceptions bubble up to the caller. Timeouts must be raised as `odmi.errors.OperationTimedOut` so
callers can tell a slow query from an empty one, and other failures should be replaced with the exceptions in
`odmi.drivers.exceptions`."""
from abc import ABC, abstractmethod
from typing import Any, Iterator, Protocol, runtime_checkable

import odmi.driver_context
from odmi.mapping.documents import Document


@runtime_checkable
class ForwardCursor(Protocol):
    """A forward-only cursor over raw documents.

    `__next__` raises `StopIteration` once the cursor is exhausted and raises the driver's error if a read fails.
    `close()` releases the server side cursor. pymongo's `Cursor` satisfies this protocol.
    """
    def __iter__(self) -> Iterator[Document]:
        ...

    def __next__(self) -> Document:
        ...

    def close(self) -> None:
        ...


class BaseDriver(ABC):
    # ---------------------------------------- #
    # Connection Management                    #
    # ---------------------------------------- #
    @classmethod
    @abstractmethod
    def connect(cls, settings: Any = None) -> "BaseDriver":
        """Connects to the database."""
        ...

    @abstractmethod
    def disconnect(self):
        """Disconnects from the database."""
        ...

    # ---------------------------------------- #
    # Query Execution                          #
    # ---------------------------------------- #
    @abstractmethod
    def find(
        self,
        collection: str,
        filter_document: Document,
        *,
        database: str | None = None,
        max_time: float | None = None,
    ) -> ForwardCursor:
        """Returns a forward cursor over the documents matching the filter. `max_time` is the number of seconds the
        server may spend on the query."""
        ...

    @abstractmethod
    def insert_one(self, collection: str, document: Document, *, database: str | None = None) -> Any:
        """Inserts a document and returns its identity, generated by the database when the document has no `_id`."""
        ...

    @abstractmethod
    def update_one(
        self,
        collection: str,
        filter_document: Document,
        update_document: Document,
        *,
        database: str | None = None,
    ):
        """Applies an update document to the first document matching the filter."""
        ...

    # ---------------------------------------- #
    # Context Management                       #
    # ---------------------------------------- #
    def __enter__(self):
        self.__active_driver_reset_token = odmi.driver_context.active_driver.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            odmi.driver_context.active_driver.reset(self.__active_driver_reset_token)
        except ValueError:
            pass

        self.disconnect()
