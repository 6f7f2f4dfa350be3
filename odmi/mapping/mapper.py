"""
Mapping Engine

Converts records to documents and applies documents back onto records. The mapper never inspects record classes
itself; it asks the model registry for each type's field descriptor table.

Record to document:

- Excluded fields are skipped.
- Inlined records are mapped recursively and their keys merged into the parent. An inlined field holding `None`
  contributes nothing.
- Embedded records are mapped to nested documents. An embedded record with no mappable keys becomes `{}`.
- Lists and mappings are mapped element by element.
- Zero values are written as-is unless the field is `OmitEmpty` (left out) or `NullEmpty` (written as `None`).
- A record that produces no keys maps to `None` rather than `{}`.

Document to record is a partial apply: keys missing from the document leave the field untouched, so a record seeded
from defaults keeps them where the loaded document is silent. Nested records, both inlined and embedded, are built on a
fresh zero-valued instance and only assigned when at least one of their own fields was found.
"""
from collections.abc import Mapping
from typing import Any, TYPE_CHECKING, TypeVar

from odmi.errors import ConfigurationError, ValueConversionError
from odmi.mapping.documents import Document
from odmi.mapping.values import from_document_value, to_document_value, zero_scalar
from odmi.models.fields import FieldDescriptor, TypeInfo, TypeKind, is_record_type

if TYPE_CHECKING:
    from odmi.models.collections import ModelRegistry


R = TypeVar("R")


class Mapper:
    def __init__(self, registry: "ModelRegistry"):
        self._registry = registry

    def descriptors(self, record_type: type) -> tuple[FieldDescriptor, ...]:
        return self._registry.descriptors_for(record_type)

    # ---------------------------------------- #
    # Record -> Document                       #
    # ---------------------------------------- #
    def to_document(self, record: Any) -> Document | None:
        """Maps a record to a document, returning `None` when the record has no mappable keys.

        Raises:
            ConfigurationError: The record is not an instance of a record type or holds a value that cannot be stored.
        """
        record_type = type(record)
        if not is_record_type(record_type):
            raise ConfigurationError(f"Cannot map {record_type.__name__} to a document, it is not a record type")

        document = {}
        for field in self.descriptors(record_type):
            if field.excluded:
                continue

            value = getattr(record, field.name)
            if field.inline:
                if value is not None:
                    document.update(self.to_document(value) or {})

                continue

            if self.is_zero_value(value, field.type_info):
                if field.omit_empty:
                    continue

                if field.null_empty:
                    document[field.key] = None
                    continue

            document[field.key] = self.encode_value(value, field.type_info, field.key)

        return document or None

    def encode_value(self, value: Any, type_info: TypeInfo, path: str) -> Any:
        if value is None:
            return None

        try:
            match type_info.kind:
                case TypeKind.RECORD:
                    return self.to_document(value) or {}

                case TypeKind.LIST:
                    items = [
                        self.encode_value(item, type_info.element, f"{path}[{index}]")
                        for index, item in enumerate(value)
                    ]
                    return _sorted_elements(items) if type_info.python_type in (set, frozenset) else items

                case TypeKind.MAPPING:
                    return {
                        key: self.encode_value(item, type_info.element, f"{path}.{key}")
                        for key, item in value.items()
                    }

                case TypeKind.ANY:
                    return self._encode_any(value, path)

                case _:
                    return to_document_value(value)

        except ValueConversionError as error:
            error.add_note(f" - While mapping field {path!r}")
            raise

    def _encode_any(self, value: Any, path: str) -> Any:
        match value:
            case dict():
                return {key: self._encode_any(item, f"{path}.{key}") for key, item in value.items()}

            case list() | tuple():
                return [self._encode_any(item, f"{path}[{index}]") for index, item in enumerate(value)]

            case set() | frozenset():
                return _sorted_elements([self._encode_any(item, f"{path}[{index}]") for index, item in enumerate(value)])

            case _ if is_record_type(type(value)):
                return self.to_document(value) or {}

            case _:
                return to_document_value(value)

    # ---------------------------------------- #
    # Document -> Record                       #
    # ---------------------------------------- #
    def apply_document(self, record: Any, document: Mapping[str, Any]) -> bool:
        """Applies the keys present in a document onto a record.

        Returns:
            Whether any field was assigned.

        Raises:
            ConfigurationError: The target is not a record, or a stored value has a shape the declared field type
                cannot hold.
        """
        record_type = type(record)
        if not is_record_type(record_type):
            raise ConfigurationError(f"Cannot apply a document to {record_type.__name__}, it is not a record type")

        found = False
        for field in self.descriptors(record_type):
            if field.excluded:
                continue

            if field.inline:
                nested = self.new_instance(field.type_info.python_type)
                if self.apply_document(nested, document):
                    setattr(record, field.name, nested)
                    found = True

                continue

            if field.key not in document:
                continue

            value = document[field.key]
            if field.type_info.kind is TypeKind.RECORD and value is not None:
                nested = self.new_instance(field.type_info.python_type)
                if not self.apply_document(nested, self._expect_document(value, field.type_info, field.key)):
                    continue

                setattr(record, field.name, nested)
            else:
                setattr(record, field.name, self.decode_value(value, field.type_info, field.key))

            found = True

        return found

    def decode_value(self, value: Any, type_info: TypeInfo, path: str) -> Any:
        """Converts a stored value into the declared field type. Stored nulls become the type's zero state unless the
        type is nullable."""
        if value is None:
            return None if type_info.nullable else self.zero_value(type_info)

        match type_info.kind:
            case TypeKind.ANY:
                return value

            case TypeKind.RECORD:
                nested = self.new_instance(type_info.python_type)
                self.apply_document(nested, self._expect_document(value, type_info, path))
                return nested

            case TypeKind.LIST:
                if not isinstance(value, list):
                    raise ConfigurationError(
                        f"Field {path!r} is declared as a collection but the document holds {type(value).__name__}"
                    )

                items = [
                    self.decode_value(item, type_info.element, f"{path}[{index}]")
                    for index, item in enumerate(value)
                ]
                return items if type_info.python_type is list else type_info.python_type(items)

            case TypeKind.MAPPING:
                return {
                    key: self.decode_value(item, type_info.element, f"{path}.{key}")
                    for key, item in self._expect_document(value, type_info, path).items()
                }

            case _:
                try:
                    return from_document_value(type_info.python_type, value)
                except ValueConversionError as error:
                    error.add_note(f" - While reading field {path!r}")
                    raise

    # ---------------------------------------- #
    # Construction & Zero Values               #
    # ---------------------------------------- #
    def new_instance(self, record_type: type[R]) -> R:
        """Builds an instance through the record's constructor, passing zero values for required fields."""
        kwargs = {
            field.init_name: None if field.excluded else self.zero_value(field.type_info)
            for field in self.descriptors(record_type)
            if field.required and field.init_name
        }
        return record_type(**kwargs)

    def to_record(self, record_type: type[R], document: Mapping[str, Any]) -> R:
        record = self.new_instance(record_type)
        self.apply_document(record, document)
        return record

    def zero_value(self, type_info: TypeInfo) -> Any:
        if type_info.nullable:
            return None

        match type_info.kind:
            case TypeKind.RECORD:
                return self.new_instance(type_info.python_type)

            case TypeKind.LIST:
                return type_info.python_type()

            case TypeKind.MAPPING:
                return {}

            case TypeKind.ANY:
                return None

            case _:
                return zero_scalar(type_info.python_type)

    def is_zero_value(self, value: Any, type_info: TypeInfo) -> bool:
        if value is None:
            return True

        match type_info.kind:
            case TypeKind.LIST | TypeKind.MAPPING:
                return len(value) == 0

            case TypeKind.RECORD:
                return value == self.new_instance(type_info.python_type)

            case TypeKind.ANY:
                return False

            case _:
                return type(value) is type(zero := zero_scalar(type_info.python_type)) and value == zero

    @staticmethod
    def _expect_document(value: Any, type_info: TypeInfo, path: str) -> Mapping[str, Any]:
        if not isinstance(value, Mapping):
            raise ConfigurationError(
                f"Field {path!r} is declared as {getattr(type_info.python_type, '__name__', type_info.python_type)} "
                f"but the document holds {type(value).__name__}"
            )

        return value


def _sorted_elements(items: list[Any]) -> list[Any]:
    """Orders the encoded elements of a set so equal sets always produce equal documents."""
    try:
        return sorted(items)
    except TypeError:
        return sorted(items, key=lambda item: (type(item).__name__, repr(item)))
