from typing import TYPE_CHECKING

from pymongo.cursor import Cursor

from odmi.mapping.documents import Document

if TYPE_CHECKING:
    from odmi.ext.drivers.mongodb.driver import MongoDBDriver


class MongoDBCursor:
    """Forward cursor over a pymongo `Cursor` that raises odmi errors instead of pymongo errors."""
    def __init__(self, cursor: Cursor, driver: "MongoDBDriver"):
        self._cursor = cursor
        self._driver = driver

    def __iter__(self) -> "MongoDBCursor":
        return self

    def __next__(self) -> Document:
        with self._driver.translate_errors("find"):
            return next(self._cursor)

    def close(self):
        self._cursor.close()
