import os
from dataclasses import dataclass
from typing import Annotated

import pymongo.errors
import pytest
from bson import ObjectId

from odmi.driver_context import use_driver
from odmi.drivers import DriverConnectFailed, DriverOperationError
from odmi.errors import OperationTimedOut
from odmi.ext.drivers.mongodb import MongoDBDriver, MongoDBSettings
from odmi.ext.drivers.mongodb.cursor import MongoDBCursor
from odmi.models import ModelRegistry, odmi_model
from odmi.models.field_metadata import StoreAs


skip_without_mongodb = pytest.mark.skipif(
    not os.environ.get("ODMI_TEST_MONGODB"),
    reason="Set ODMI_TEST_MONGODB=1 and the ODMI_* connection variables to run against a MongoDB server.",
)

test_models = ModelRegistry()


@odmi_model(registry=test_models, collection_name="test_models")
@dataclass
class TestModel:
    __test__ = False

    name: Annotated[str, StoreAs("username")] = ""
    id: ObjectId | None = None


class FakeCursor:
    def __init__(self, documents=(), error: Exception | None = None):
        self._documents = iter(documents)
        self.error = error
        self.max_time_ms_value = None
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self.error:
            raise self.error

        return next(self._documents)

    def max_time_ms(self, value: int) -> "FakeCursor":
        self.max_time_ms_value = value
        return self

    def close(self):
        self.closed = True


class FakeCollection:
    def __init__(self, cursor: FakeCursor, error: Exception | None = None):
        self.cursor = cursor
        self.error = error
        self.filters = []

    def find(self, filter_document):
        self.filters.append(filter_document)
        return self.cursor

    def insert_one(self, document):
        raise self.error

    def update_one(self, filter_document, update_document):
        raise self.error


class FakeClient:
    def __init__(self, collection: FakeCollection):
        self.collection = collection
        self.databases = []
        self.closed = False

    def get_database(self, name=None):
        self.databases.append(name)
        return {"test_models": self.collection}

    def close(self):
        self.closed = True


def fake_driver(cursor=None, error=None) -> tuple[MongoDBDriver, FakeClient]:
    client = FakeClient(FakeCollection(cursor or FakeCursor(), error))
    return MongoDBDriver(client, "tests"), client


def test_settings_from_env():
    settings = MongoDBSettings.from_env(
        environ={
            "ODMI_HOST": "db.internal",
            "ODMI_PORT": "27018",
            "ODMI_DATABASE": "shelter",
            "ODMI_TIMEOUT": "250",
            "ODMI_USERNAME": "",
        }
    )
    assert settings.host == "db.internal"
    assert settings.port == 27018
    assert settings.database_name == "shelter"
    assert settings.timeout == 250
    assert settings.username is None
    assert settings.authSource == "admin"


def test_settings_prefix():
    settings = MongoDBSettings.from_env(prefix="APP_MONGO_", environ={"APP_MONGO_URI": "mongodb://example:27017"})
    assert settings.uri == "mongodb://example:27017"
    assert settings.host == "localhost"


def test_connect_is_lazy():
    driver = MongoDBDriver.connect(MongoDBSettings(host="127.0.0.1", database_name="tests", timeout=100))
    try:
        assert driver.database_name == "tests"
        assert driver.get_database().name == "tests"
    finally:
        driver.disconnect()


def test_connect_failure():
    with pytest.raises(DriverConnectFailed):
        MongoDBDriver.connect(MongoDBSettings(port="not a port"))


def test_find_uses_the_default_database_and_max_time():
    driver, client = fake_driver(FakeCursor([{"_id": 1}]))
    cursor = driver.find("test_models", {"_id": 1}, max_time=1.5)
    assert isinstance(cursor, MongoDBCursor)
    assert list(cursor) == [{"_id": 1}]
    assert client.databases == ["tests"]
    assert client.collection.cursor.max_time_ms_value == 1500

    driver.find("test_models", {}, database="archive")
    assert client.databases == ["tests", "archive"]


def test_cursor_close():
    driver, client = fake_driver()
    driver.find("test_models", {}).close()
    assert client.collection.cursor.closed


@pytest.mark.parametrize(
    "error, expected",
    [
        (pymongo.errors.ExecutionTimeout("operation exceeded time limit", 50), OperationTimedOut),
        (pymongo.errors.NetworkTimeout("timed out"), OperationTimedOut),
        (pymongo.errors.OperationFailure("unknown operator: $bad", 2), DriverOperationError),
        (pymongo.errors.AutoReconnect("connection closed"), DriverOperationError),
    ],
)
def test_cursor_errors_are_translated(error, expected):
    driver, _ = fake_driver(FakeCursor(error=error))
    cursor = driver.find("test_models", {})
    with pytest.raises(expected) as raised:
        next(cursor)

    assert raised.value.__cause__ is error


def test_write_errors_are_translated():
    driver, _ = fake_driver(error=pymongo.errors.DuplicateKeyError("E11000 duplicate key", 11000))
    with pytest.raises(DriverOperationError):
        driver.insert_one("test_models", {"_id": 1})

    with pytest.raises(DriverOperationError):
        driver.update_one("test_models", {"_id": 1}, {"$set": {"username": "x"}})


def test_timeout_surfaces_through_results():
    driver, _ = fake_driver(FakeCursor(error=pymongo.errors.ExecutionTimeout("operation exceeded time limit", 50)))
    result = TestModel.find(driver=driver)
    with pytest.raises(OperationTimedOut):
        result.count()


def test_disconnect_closes_the_client():
    driver, client = fake_driver()
    with driver:
        pass

    assert client.closed


@pytest.fixture
def mongo_driver():
    settings = MongoDBSettings.from_env()
    settings.database_name = "odmi_tests"
    with MongoDBDriver.connect(settings) as driver:
        try:
            driver.get_database().drop_collection("test_models")
        except pymongo.errors.ServerSelectionTimeoutError as exc:
            raise RuntimeError(f"Could not connect to MongoDB. Is it running? {settings}") from exc

        with use_driver(driver):
            yield driver


@skip_without_mongodb
def test_mongo_driver(mongo_driver):
    model = TestModel(name="dummy")
    model.save()
    assert isinstance(model.id, ObjectId)

    stored = mongo_driver.get_database()["test_models"].find_one({"_id": model.id})
    assert stored == {"_id": model.id, "username": "dummy"}

    model.name = "Dummy"
    model.save()
    assert TestModel.find(model.id).one().name == "Dummy"


@skip_without_mongodb
def test_mongo_streaming(mongo_driver):
    for name in ("a", "b", "c"):
        TestModel(name=name).save()

    names = [model.name for model in TestModel.find().streaming()]
    assert sorted(names) == ["a", "b", "c"]

    with TestModel.find() as result:
        assert result.count() == 3
        assert result.at(1).name in names
