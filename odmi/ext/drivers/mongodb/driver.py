import logging
import os
from dataclasses import dataclass, field
from typing import Any

import pymongo
import pymongo.errors
from pymongo.database import Database

from odmi.drivers import BaseDriver
from odmi.drivers.exceptions import DriverConnectFailed, DriverOperationError
from odmi.errors import OperationTimedOut
from odmi.ext.drivers.mongodb.connection_protocol import MongoDBConnection
from odmi.ext.drivers.mongodb.cursor import MongoDBCursor
from odmi.mapping.documents import Document


logger = logging.getLogger(__name__)


@dataclass
class MongoDBSettings:
    """Configuration settings for MongoDB connections.

    Attributes:
        host: Hostname or IP address of the MongoDB server (default: "localhost")
        port: Port number the MongoDB server is listening on (default: 27017)
        database_name: Database used when a model type does not name one (default: "odmi")
        username: Optional username for authentication
        password: Optional password for authentication
        authSource: Authentication database name (default: "admin")
        timeout: Server selection timeout in milliseconds (default: 20000)
        uri: Optional connection string, used instead of host and port when given
        app_name: Optional application name reported to the server
        connection_options: Additional keyword arguments passed to `pymongo.MongoClient`.
            Example: {"tlsAllowInvalidCertificates": True}
    """
    host: str = "localhost"
    port: int = 27017
    database_name: str = "odmi"
    username: str | None = None
    password: str | None = None
    authSource: str | None = "admin"
    timeout: int = 20000
    uri: str | None = None
    app_name: str | None = None
    connection_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls, prefix: str = "ODMI_", environ: "dict[str, str] | None" = None) -> "MongoDBSettings":
        """Reads settings from `{prefix}HOST`, `{prefix}PORT`, `{prefix}DATABASE`, `{prefix}USERNAME`,
        `{prefix}PASSWORD`, `{prefix}AUTH_SOURCE`, `{prefix}TIMEOUT`, `{prefix}URI` and `{prefix}APP_NAME`. Unset
        variables keep their defaults."""
        environ = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default: Any, convert=str) -> Any:
            value = environ.get(f"{prefix}{name}")
            return default if value is None or value == "" else convert(value)

        return cls(
            host=get("HOST", defaults.host),
            port=get("PORT", defaults.port, int),
            database_name=get("DATABASE", defaults.database_name),
            username=get("USERNAME", defaults.username),
            password=get("PASSWORD", defaults.password),
            authSource=get("AUTH_SOURCE", defaults.authSource),
            timeout=get("TIMEOUT", defaults.timeout, int),
            uri=get("URI", defaults.uri),
            app_name=get("APP_NAME", defaults.app_name),
        )


class MongoDBDriver(BaseDriver):
    """MongoDB driver built on pymongo.

    pymongo errors are translated at this boundary: timeouts become `OperationTimedOut` and every other failure becomes
    `DriverOperationError`, with the original error chained.

    Attributes:
        client: The underlying pymongo client
        database_name: The database used when a model type does not name one
    """
    def __init__(self, client: MongoDBConnection, database_name: str):
        super().__init__()
        self.client = client
        self.database_name = database_name

    def __repr__(self):
        return f"<{type(self).__name__} database={self.database_name!r}>"

    @classmethod
    def connect(cls, settings: MongoDBSettings | None = None) -> "MongoDBDriver":
        """Creates a client from the settings. pymongo connects lazily, so an unreachable server is only reported by the
        first operation.

        Raises:
            DriverConnectFailed: The client could not be created from the settings.
        """
        _settings = settings or MongoDBSettings()
        options = {
            "serverSelectionTimeoutMS": _settings.timeout,
            "username": _settings.username,
            "password": _settings.password,
            "appname": _settings.app_name,
        }
        if _settings.username:
            options["authSource"] = _settings.authSource

        try:
            if _settings.uri:
                client = pymongo.MongoClient(_settings.uri, **options, **_settings.connection_options)
            else:
                client = pymongo.MongoClient(
                    host=_settings.host,
                    port=_settings.port,
                    **options,
                    **_settings.connection_options,
                )

        except (pymongo.errors.PyMongoError, TypeError, ValueError) as error:
            raise DriverConnectFailed(f"Failed to initialize MongoDB client: {error}", driver=cls) from error

        logger.debug("Created MongoDB client for database %r", _settings.database_name)
        return cls(client, _settings.database_name)

    def disconnect(self):
        self.client.close()

    def get_database(self, database: str | None = None) -> Database:
        return self.client.get_database(database or self.database_name)

    def find(
        self,
        collection: str,
        filter_document: Document,
        *,
        database: str | None = None,
        max_time: float | None = None,
    ) -> MongoDBCursor:
        with self.translate_errors("find"):
            cursor = self.get_database(database)[collection].find(filter_document)
            if max_time is not None:
                cursor = cursor.max_time_ms(max(int(max_time * 1000), 1))

        return MongoDBCursor(cursor, self)

    def insert_one(self, collection: str, document: Document, *, database: str | None = None) -> Any:
        with self.translate_errors("insert_one"):
            return self.get_database(database)[collection].insert_one(document).inserted_id

    def update_one(
        self,
        collection: str,
        filter_document: Document,
        update_document: Document,
        *,
        database: str | None = None,
    ):
        with self.translate_errors("update_one"):
            self.get_database(database)[collection].update_one(filter_document, update_document)

    def translate_errors(self, method_name: str) -> "_TranslateErrors":
        return _TranslateErrors(self, method_name)


class _TranslateErrors:
    """Replaces pymongo errors raised inside the block with odmi errors."""
    def __init__(self, driver: MongoDBDriver, method_name: str):
        self.driver = driver
        self.method_name = method_name

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not isinstance(exc_val, pymongo.errors.PyMongoError):
            return False

        if exc_val.timeout:
            raise OperationTimedOut(self.method_name, str(exc_val)) from exc_val

        raise DriverOperationError(
            f"MongoDB {self.method_name} failed: {exc_val}", driver=self.driver
        ) from exc_val
