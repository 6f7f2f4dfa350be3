"""
This module defines the `DocumentModel` base that gives records their persistence methods, and the `odmi_model`
decorator and `register` function that turn a dataclass or attrs class into a registered model.

Both create a generated subclass of the record class mixed with `DocumentModel`, register it, and capture the default
document from an example instance. Records of the generated class track their changes against a snapshot of the last
state known to be stored.

Example:
    ```python
    @odmi_model
    @dataclass
    class Pet:
        id: ObjectId | None = None
        name: str = "spot"
        adoption_date: datetime | None = None
        notes: Annotated[str, Omit] = ""

    pet = Pet.new()
    pet.name = "rex"
    pet.save()
    assert not pet.is_changed()
    ```
"""
import logging
from typing import Any, Callable, Self, Type, TypeVar, overload

from bson import ObjectId

import odmi.models.collections
from odmi.contextual_method import contextual_method
from odmi.database.context import QueryContext
from odmi.database.cursor import Result
from odmi.database.results import DBFailure, DBResult, DBSuccess
from odmi.errors import ConfigurationError, DocumentFieldNotFound, ValueConversionError
from odmi.mapping.documents import Document, find_invalid_values
from odmi.models.changes import ChangeTracker, build_update_document
from odmi.models.fields import FieldDescriptor, is_record_type
from odmi.models.model_type import ModelType, TRACKER_ATTRIBUTE, collection_name_for
from odmi.models.timestamps import touch_timestamps


T = TypeVar("T")

METADATA_DUNDER_NAME = "__odmi__"

logger = logging.getLogger(__name__)


class DocumentModel:
    __odmi__: ModelType

    @contextual_method
    def get_model_type(self) -> ModelType:
        """The model type the record was built by, which may be a re-scoped copy of the registered one."""
        return self._tracker.model_type or type(self).__odmi__

    @get_model_type.classmethod
    def get_model_type(cls) -> ModelType:
        return cls.__odmi__

    @contextual_method
    def get_driver(self, driver: "odmi.drivers.BaseDriver | None" = None) -> "odmi.drivers.BaseDriver":
        return self.get_model_type().get_driver(driver)

    @get_driver.classmethod
    def get_driver(cls, driver: "odmi.drivers.BaseDriver | None" = None) -> "odmi.drivers.BaseDriver":
        return cls.__odmi__.get_driver(driver)

    # ---------------------------------------- #
    # Construction & Queries                   #
    # ---------------------------------------- #
    @classmethod
    def new(cls) -> Self:
        return cls.__odmi__.new()

    @classmethod
    def find(cls, *ids: Any, driver: "odmi.drivers.BaseDriver | None" = None, context: QueryContext | None = None) -> Result[Self]:
        return cls.__odmi__.find(*ids, driver=driver, context=context)

    @classmethod
    def find_where(
        cls,
        filter_document: Document,
        *,
        driver: "odmi.drivers.BaseDriver | None" = None,
        context: QueryContext | None = None,
    ) -> Result[Self]:
        return cls.__odmi__.find_where(filter_document, driver=driver, context=context)

    @classmethod
    def find_by_timeout(cls, timeout: float, *ids: Any, driver: "odmi.drivers.BaseDriver | None" = None) -> Result[Self]:
        return cls.__odmi__.find_by_timeout(timeout, *ids, driver=driver)

    @classmethod
    def find_by_deadline(cls, deadline, *ids: Any, driver: "odmi.drivers.BaseDriver | None" = None) -> Result[Self]:
        return cls.__odmi__.find_by_deadline(deadline, *ids, driver=driver)

    # ---------------------------------------- #
    # Documents & Change Tracking              #
    # ---------------------------------------- #
    def to_document(self) -> Document | None:
        return self.get_model_type().mapper.to_document(self)

    def to_update_document(self) -> Document | None:
        """The update that would bring the stored document in line with the record, `None` when nothing changed."""
        document = self.to_document()
        return build_update_document(self._tracker.diff(document), document)

    def get_id(self) -> Any:
        return getattr(self, self.get_model_type().identity_field.name)

    def is_persisted(self) -> bool:
        return self._tracker.persisted

    def is_changed(self) -> bool:
        return self.changes() is not None

    def changes(self) -> Document | None:
        return self._tracker.diff(self.to_document())

    def was(self, key: str) -> tuple[Any, bool]:
        """The stored value of a document key and whether it has changed since.

        When the key has not changed the current value is returned instead, so the first element is never a stale value
        presented as a previous one.
        """
        return self._tracker.was(key, self.to_document())

    # ---------------------------------------- #
    # Generic Field Access                     #
    # ---------------------------------------- #
    def get_field(self, path: str) -> DBResult[Any]:
        """Reads a field by its document key. Embedded record fields are reached with dotted paths."""
        match self._locate_field(path):
            case DBSuccess((owner, field)):
                return DBResult.DBSuccess(getattr(owner, field.name))

            case failure:
                return failure

    def set_field(self, path: str, value: Any) -> DBResult[Any]:
        """Assigns a field by its document key, returning the assigned value."""
        match self._locate_field(path):
            case DBSuccess((owner, field)):
                setattr(owner, field.name, value)
                return DBResult.DBSuccess(value)

            case failure:
                return failure

    def _locate_field(self, path: str) -> "DBResult[tuple[Any, FieldDescriptor]]":
        mapper = self.get_model_type().mapper
        owner = self
        *parents, key = path.split(".")
        for segment in parents:
            located = _find_field(mapper, owner, segment)
            if located is None:
                return DBFailure(DocumentFieldNotFound(path, self.get_model_type().model_name))

            parent, field = located
            owner = getattr(parent, field.name)
            if owner is None or not is_record_type(type(owner)):
                return DBFailure(DocumentFieldNotFound(path, self.get_model_type().model_name))

        if located := _find_field(mapper, owner, key):
            return DBSuccess(located)

        return DBFailure(DocumentFieldNotFound(path, self.get_model_type().model_name))

    # ---------------------------------------- #
    # Persistence                              #
    # ---------------------------------------- #
    def save(self, driver: "odmi.drivers.BaseDriver | None" = None) -> Self:
        """Inserts a new record or updates the changed keys of a persisted one, then snapshots the saved state.

        A new record with a zero `ObjectId` identity has it removed before insert so the database generates one, which
        is written back to the identity field. Any other identity type must be assigned before the first save. Records
        carrying `TimestampCreated`/`TimestampUpdated` fields are stamped before they are written.

        Raises:
            ConfigurationError: A new record has a zero identity the database cannot generate.
            ValueConversionError: The mapped document holds a value the database cannot store.
        """
        model_type = self.get_model_type()
        driver = model_type.get_driver(driver)
        mapper = model_type.mapper
        tracker = self._tracker
        identity = model_type.identity_field
        if tracker.persisted:
            if not tracker.diff(self.to_document()):
                logger.debug("%s %r has no changes to save", model_type.model_name, self.get_id())
                return self

        elif (generate_id := mapper.is_zero_value(getattr(self, identity.name), identity.type_info)) and (
            identity.type_info.python_type is not ObjectId
        ):
            raise ConfigurationError(
                f"{model_type.model_name} has no {identity.name} and the database can only generate ObjectId "
                f"identities, assign one before saving"
            )

        touch_timestamps(self, mapper, inserting=not tracker.persisted)
        document = self.to_document() or {}
        if invalid := find_invalid_values(document):
            raise ValueConversionError(f"{model_type.model_name} holds values that cannot be stored: {', '.join(invalid)}")

        if tracker.persisted:
            update = build_update_document(tracker.diff(document), document)
            logger.debug("Updating %s %r with %r", model_type.model_name, self.get_id(), update)
            driver.update_one(
                model_type.collection_name,
                {identity.key: document.get(identity.key)},
                update,
                database=model_type.database_name,
            )
        else:
            if generate_id:
                document.pop(identity.key, None)

            inserted_id = driver.insert_one(model_type.collection_name, document, database=model_type.database_name)
            setattr(self, identity.name, mapper.decode_value(inserted_id, identity.type_info, identity.key))
            logger.debug("Inserted %s %r", model_type.model_name, inserted_id)

        tracker.persisted = True
        tracker.refresh(self.to_document())
        return self

    def reload(self, driver: "odmi.drivers.BaseDriver | None" = None) -> Self:
        """Replaces the record's fields with the stored document.

        Raises:
            ResultNotFound: No document is stored with the record's identity.
        """
        model_type = self.get_model_type()
        stored = model_type.find(self.get_id(), driver=driver).one()
        for field in model_type.mapper.descriptors(model_type.model):
            if not field.excluded:
                setattr(self, field.name, getattr(stored, field.name))

        model_type.attach(self, persisted=True)
        return self

    @property
    def _tracker(self) -> ChangeTracker:
        if (tracker := vars(self).get(TRACKER_ATTRIBUTE)) is None:
            tracker = vars(self)[TRACKER_ATTRIBUTE] = ChangeTracker(model_type=type(self).__odmi__)

        return tracker


def _find_field(mapper: "odmi.mapping.mapper.Mapper", owner: Any, key: str) -> tuple[Any, FieldDescriptor] | None:
    """Finds the field stored under a key, searching inlined records since their keys live at the owner's level."""
    for field in mapper.descriptors(type(owner)):
        if field.excluded:
            continue

        if field.inline:
            nested = getattr(owner, field.name)
            if nested is not None and (located := _find_field(mapper, nested, key)):
                return located

            continue

        if field.key == key:
            return owner, field

    return None


@overload
def odmi_model(
    *,
    name: str | None = None,
    collection_name: str | None = None,
    database_name: str | None = None,
    registry: "odmi.models.collections.ModelRegistry | None" = None,
) -> Callable[[Type[T]], Type[T]]:
    ...


@overload
def odmi_model(model_type: Type[T]) -> Type[T]:
    ...


def odmi_model(
    model_type: Type[T] | None = None,
    *,
    name: str | None = None,
    collection_name: str | None = None,
    database_name: str | None = None,
    registry: "odmi.models.collections.ModelRegistry | None" = None,
) -> Type[T] | Callable[[Type[T]], Type[T]]:
    """Turns a dataclass or attrs class into a registered model. The default document is captured from an instance built
    with the class's own field defaults."""
    def wrap_model(c: Type[T]) -> Type[T]:
        _registry = registry or odmi.models.collections.get_global_registry()
        return _register_model(
            _create_model(c),
            _registry.mapper.new_instance(c),
            name=name,
            collection_name=collection_name,
            database_name=database_name,
            registry=_registry,
        ).model

    return wrap_model if model_type is None else wrap_model(model_type)


def register(
    example: T,
    *,
    name: str | None = None,
    collection_name: str | None = None,
    database_name: str | None = None,
    registry: "odmi.models.collections.ModelRegistry | None" = None,
) -> ModelType[T]:
    """Registers the class of an example instance as a model, capturing the example's values as the defaults.

    The example is mapped once, here. Later changes to it do not affect the defaults. Records are built as instances of a
    generated subclass, available as `ModelType.model`.
    """
    return _register_model(
        _create_model(type(example)),
        example,
        name=name,
        collection_name=collection_name,
        database_name=database_name,
        registry=registry or odmi.models.collections.get_global_registry(),
    )


def _create_model(c: Type[T]) -> Type[DocumentModel]:
    if not is_record_type(c):
        raise ConfigurationError(f"{c!r} must be a dataclass or attrs class to be used as a model")

    return type.__new__(
        type(c),
        f"OdmiModel_{c.__name__}",
        (c, DocumentModel),
        {
            "__module__": c.__module__,
            "__qualname__": c.__qualname__,
            "__doc__": c.__doc__,
        },
    )


def _register_model(
    model: Type[DocumentModel],
    example: Any,
    *,
    name: str | None,
    collection_name: str | None,
    database_name: str | None,
    registry: "odmi.models.collections.ModelRegistry",
) -> ModelType:
    model_name = name or model.__qualname__.rpartition(".")[2]
    if not any(field.identity for field in registry.descriptors_for(model)):
        raise ConfigurationError(
            f"{model_name} has no identity field, declare an `id` field or flag one with Key"
        )

    model_type = ModelType(
        model=model,
        model_name=model_name,
        collection_name=collection_name or collection_name_for(model_name),
        registry=registry,
        database_name=database_name,
        defaults=registry.mapper.to_document(example),
    )
    registry.add(model_type)
    setattr(model, METADATA_DUNDER_NAME, model_type)
    return model_type
