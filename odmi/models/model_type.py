"""
Model Types

A `ModelType` is the registered description of a model: its record class, the names it is stored under, and the default
document captured from the example instance at registration. It builds new and loaded records and runs queries.

`with_model_name`, `with_collection_name` and `with_database_name` return re-scoped copies, so one record class can be
read from and saved to several collections. Records built by a copy remember it.
"""
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TYPE_CHECKING, TypeVar

from odmi.database.context import QueryContext
from odmi.database.cursor import Result
from odmi.drivers.exceptions import NoActiveDriver
from odmi.driver_context import get_active_driver
from odmi.errors import ConfigurationError
from odmi.mapping.documents import Document, deep_copy_document
from odmi.models.changes import ChangeTracker
from odmi.models.fields import FieldDescriptor, to_snake_case

if TYPE_CHECKING:
    from odmi.drivers import BaseDriver
    from odmi.mapping.mapper import Mapper
    from odmi.models.collections import ModelRegistry


M = TypeVar("M")

TRACKER_ATTRIBUTE = "__odmi_tracker__"

logger = logging.getLogger(__name__)


def pluralize(name: str) -> str:
    if name.endswith(("s", "x", "z", "ch", "sh")):
        return f"{name}es"

    if name.endswith("y") and name[-2:-1] not in ("a", "e", "i", "o", "u", ""):
        return f"{name[:-1]}ies"

    return f"{name}s"


def collection_name_for(model_name: str) -> str:
    """The default collection name of a model, its snake case name pluralized. `PetOwner` is stored in `pet_owners`."""
    return pluralize(to_snake_case(model_name))


@dataclass(frozen=True, eq=False)
class ModelType(Generic[M]):
    model: type[M]
    model_name: str
    collection_name: str
    registry: "ModelRegistry"
    database_name: str | None = None
    defaults: Document | None = None

    @property
    def mapper(self) -> "Mapper":
        return self.registry.mapper

    @property
    def identity_field(self) -> FieldDescriptor:
        for field in self.mapper.descriptors(self.model):
            if field.identity:
                return field

        raise ConfigurationError(f"{self.model_name} has no identity field, declare an `id` field or flag one with Key")

    def with_model_name(self, model_name: str) -> "ModelType[M]":
        return dataclasses.replace(self, model_name=model_name)

    def with_collection_name(self, collection_name: str) -> "ModelType[M]":
        return dataclasses.replace(self, collection_name=collection_name)

    def with_database_name(self, database_name: str | None) -> "ModelType[M]":
        return dataclasses.replace(self, database_name=database_name)

    def default_document(self) -> Document | None:
        """A copy of the document captured from the registration example."""
        return deep_copy_document(self.defaults)

    def new(self) -> M:
        """A new record seeded from the default document. It is not persisted."""
        record = self._build(None)
        logger.debug("Created new %s", self.model_name)
        return record

    def hydrate(self, document: Document) -> M:
        """A record seeded from the default document and then overwritten by a loaded document."""
        return self._build(document)

    def attach(self, record: M, *, persisted: bool = False) -> ChangeTracker:
        """Gives a record a change tracker bound to this model type and snapshots its current state."""
        tracker = ChangeTracker(model_type=self, persisted=persisted)
        vars(record)[TRACKER_ATTRIBUTE] = tracker
        tracker.refresh(self.mapper.to_document(record))
        return tracker

    # ---------------------------------------- #
    # Queries                                  #
    # ---------------------------------------- #
    def find(self, *ids: Any, driver: "BaseDriver | None" = None, context: QueryContext | None = None) -> Result[M]:
        """Finds records by identity. No identities finds every record in the collection."""
        return self.find_where(self._identity_filter(ids), driver=driver, context=context)

    def find_where(
        self,
        filter_document: Document,
        *,
        driver: "BaseDriver | None" = None,
        context: QueryContext | None = None,
    ) -> Result[M]:
        driver = self.get_driver(driver)
        context = context or QueryContext.background()
        context.check("find")
        logger.debug("Finding %s in %s with %r", self.model_name, self.collection_name, filter_document)
        cursor = driver.find(
            self.collection_name,
            filter_document,
            database=self.database_name,
            max_time=context.remaining(),
        )
        return Result(self, cursor, context=context)

    def find_by_timeout(
        self,
        timeout: float,
        *ids: Any,
        driver: "BaseDriver | None" = None,
        context: QueryContext | None = None,
    ) -> Result[M]:
        """Finds records by identity, failing with `OperationTimedOut` once `timeout` seconds have passed."""
        return self.find(*ids, driver=driver, context=QueryContext.with_timeout(timeout).merged(context))

    def find_by_deadline(
        self,
        deadline: datetime | float,
        *ids: Any,
        driver: "BaseDriver | None" = None,
        context: QueryContext | None = None,
    ) -> Result[M]:
        """Finds records by identity, failing with `OperationTimedOut` once the deadline has passed."""
        return self.find(*ids, driver=driver, context=QueryContext.with_deadline(deadline).merged(context))

    def get_driver(self, driver: "BaseDriver | None" = None) -> "BaseDriver":
        if driver := driver or get_active_driver():
            return driver

        raise NoActiveDriver(f"No driver was given for {self.model_name} and no driver is active")

    def _build(self, document: Document | None) -> M:
        record = self.mapper.new_instance(self.model)
        if self.defaults:
            self.mapper.apply_document(record, self.default_document())

        if document:
            self.mapper.apply_document(record, document)

        self.attach(record, persisted=document is not None)
        return record

    def _identity_filter(self, ids: tuple[Any, ...]) -> Document:
        field = self.identity_field
        values = [self.mapper.encode_value(value, field.type_info, field.key) for value in ids]
        match values:
            case []:
                return {}

            case [value]:
                return {field.key: value}

            case _:
                return {field.key: {"$in": values}}

    def __repr__(self):
        return f"<{type(self).__name__} {self.model_name}: {self.database_name or '<default>'}.{self.collection_name}>"
