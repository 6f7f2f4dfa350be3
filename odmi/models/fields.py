"""
Field Resolver

Builds the per-type field descriptor tables that the mapper consults. A table is resolved once per record type, when
the model is registered or the first time a nested record type is mapped, and cached by the model registry.

Document keys default to a snake case transliteration of the attribute name. `StoreAs` overrides the key, `Omit`
excludes the field, and `Inline` promotes a nested record's fields into the parent document. A field named `id` or
flagged with `Key` is stored as `_id` and is the record's identity.
"""
import dataclasses
import re
from dataclasses import dataclass
from enum import Enum, auto
from types import NoneType, UnionType
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin
from collections.abc import Mapping, Sequence, Set

import attrs
import tramp.annotations

from odmi.errors import ConfigurationError
from odmi.mapping.values import is_supported_scalar
from odmi.models.field_metadata import AggregateMetadata, FieldMetadata, Inline, Key, NullEmpty, Omit, OmitEmpty, StoreAs


IDENTITY_KEY = "_id"

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_LETTER_DIGIT_BOUNDARY = re.compile(r"([A-Za-z])(\d)")
_DIGIT_LETTER_BOUNDARY = re.compile(r"(\d)([A-Za-z])")


class TypeKind(Enum):
    ANY = auto()
    SCALAR = auto()
    RECORD = auto()
    LIST = auto()
    MAPPING = auto()


@dataclass(frozen=True)
class TypeInfo:
    """What the mapper needs to know about a declared field type.

    Attributes:
        kind: How the mapper walks values of the type
        python_type: The scalar type, record type, or collection container
        nullable: Whether `None` is a valid value
        element: The element type of a list or the value type of a mapping
    """
    kind: TypeKind
    python_type: Any = Any
    nullable: bool = False
    element: "TypeInfo | None" = None


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    key: str
    type_info: TypeInfo
    metadata: FieldMetadata
    excluded: bool = False
    inline: bool = False
    omit_empty: bool = False
    null_empty: bool = False
    init_name: str | None = None
    required: bool = False

    @property
    def identity(self) -> bool:
        return self.key == IDENTITY_KEY and not self.excluded

    @property
    def nullable(self) -> bool:
        return self.type_info.nullable


ANY_TYPE = TypeInfo(TypeKind.ANY, nullable=True)


def to_snake_case(name: str) -> str:
    """Lowercase, underscore separated form of an attribute name.

    Names that are already lowercase are returned unchanged, so `address2` stays `address2` while `Float64Field`
    becomes `float_64_field`.
    """
    if name == name.lower():
        return name

    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    name = _LETTER_DIGIT_BOUNDARY.sub(r"\1_\2", name)
    name = _DIGIT_LETTER_BOUNDARY.sub(r"\1_\2", name)
    return re.sub(r"_+", "_", name).lower()


def is_record_type(record_type: Any) -> bool:
    return isinstance(record_type, type) and (dataclasses.is_dataclass(record_type) or attrs.has(record_type))


def resolve_type(annotation: Any) -> TypeInfo:
    """Classifies a field annotation for the mapper.

    Raises:
        ConfigurationError: The annotation is a type the mapper cannot store.
    """
    annotation = _strip_annotated(annotation)
    if annotation is Any or annotation is object:
        return ANY_TYPE

    origin = get_origin(annotation)
    if origin is Union or origin is UnionType:
        members = [arg for arg in get_args(annotation) if arg is not NoneType]
        if len(members) != 1:
            raise ConfigurationError(f"Union field types are not supported: {annotation!r}")

        resolved = resolve_type(members[0])
        return dataclasses.replace(resolved, nullable=True)

    if annotation in (list, tuple, set, frozenset):
        return TypeInfo(TypeKind.LIST, annotation, element=ANY_TYPE)

    if annotation is dict:
        return TypeInfo(TypeKind.MAPPING, dict, element=ANY_TYPE)

    if origin is tuple:
        args = get_args(annotation)
        if len(args) != 2 or args[1] is not Ellipsis:
            raise ConfigurationError(f"Only homogeneous tuples (tuple[X, ...]) can be stored: {annotation!r}")

        return TypeInfo(TypeKind.LIST, tuple, element=_resolve_element(args[0], annotation))

    if isinstance(origin, type) and issubclass(origin, Mapping):
        key_type, value_type = get_args(annotation) or (str, Any)
        if key_type is not str:
            raise ConfigurationError(f"Mapping fields must have string keys: {annotation!r}")

        return TypeInfo(TypeKind.MAPPING, dict, element=_resolve_element(value_type, annotation))

    if isinstance(origin, type) and issubclass(origin, (Sequence, Set)) and not issubclass(origin, (str, bytes)):
        container = origin if origin in (list, set, frozenset) else list
        element, = get_args(annotation) or (Any,)
        return TypeInfo(TypeKind.LIST, container, element=_resolve_element(element, annotation))

    if is_record_type(annotation):
        return TypeInfo(TypeKind.RECORD, annotation)

    if is_supported_scalar(annotation):
        return TypeInfo(TypeKind.SCALAR, annotation)

    raise ConfigurationError(f"Cannot map fields of type {annotation!r} to documents")


def resolve_fields(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Builds the ordered descriptor table for a record type.

    Raises:
        ConfigurationError: The record type is not a dataclass or attrs class, or a field's declarations conflict.
    """
    if not is_record_type(record_type):
        raise ConfigurationError(f"{record_type!r} is not a dataclass or attrs class and cannot be mapped")

    annotations = _get_annotations(record_type)
    return tuple(
        _resolve_field(record_type, name, _evaluate(record_type, annotations.get(name, Any)), init_name, required)
        for name, init_name, required in _declared_fields(record_type)
    )


def _get_annotations(record_type: type) -> dict[str, Any]:
    annotations = {}
    for base in reversed(record_type.__mro__):
        if base is not object:
            annotations |= tramp.annotations.get_annotations(base, tramp.annotations.Format.FORWARDREF)

    return annotations


def _evaluate(record_type: type, annotation: Any) -> Any:
    if not isinstance(annotation, tramp.annotations.ForwardRef):
        return annotation

    try:
        return annotation.evaluate()
    except NameError as error:
        raise ConfigurationError(f"Could not resolve the annotations of {record_type.__name__}: {error}") from error


def _resolve_field(record_type: type, name: str, annotation: Any, init_name: str | None, required: bool) -> FieldDescriptor:
    metadata = _get_metadata(annotation)
    store_as = metadata.get("store_as")
    excluded = metadata.matches(Omit)
    inline = metadata.matches(Inline)
    type_info = ANY_TYPE if excluded else resolve_type(annotation)

    if inline and store_as:
        raise ConfigurationError(f"{record_type.__name__}.{name} cannot be both inlined and stored as {store_as!r}")

    if inline and not excluded and type_info.kind is not TypeKind.RECORD:
        raise ConfigurationError(
            f"{record_type.__name__}.{name} is marked Inline but {annotation!r} is not a record type"
        )

    if store_as:
        key = store_as
    elif metadata.matches(Key) or name in {"id", IDENTITY_KEY}:
        key = IDENTITY_KEY
    else:
        key = to_snake_case(name)

    return FieldDescriptor(
        name=name,
        key=key,
        type_info=type_info,
        metadata=metadata,
        excluded=excluded,
        inline=inline,
        omit_empty=metadata.matches(OmitEmpty),
        null_empty=metadata.matches(NullEmpty),
        init_name=init_name,
        required=required,
    )


def _declared_fields(record_type: type):
    if attrs.has(record_type):
        for attribute in attrs.fields(record_type):
            init_name = (getattr(attribute, "alias", None) or attribute.name.lstrip("_")) if attribute.init else None
            yield attribute.name, init_name, attribute.default is attrs.NOTHING
        return

    for field in dataclasses.fields(record_type):
        required = field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING
        yield field.name, field.name if field.init else None, required


def _get_metadata(annotation: Any) -> AggregateMetadata:
    metadata = AggregateMetadata()
    while get_origin(annotation) is Annotated:
        annotation, *args = get_args(annotation)
        for arg in args:
            match arg:
                case FieldMetadata():
                    metadata |= arg

    return metadata


def _strip_annotated(annotation: Any) -> Any:
    while get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]

    if get_origin(annotation) is ClassVar:
        raise ConfigurationError("ClassVar annotations cannot be mapped")

    return annotation


def _resolve_element(element: Any, annotation: Any) -> TypeInfo:
    try:
        return resolve_type(element)
    except ConfigurationError as error:
        error.add_note(f" - Element type of {annotation!r}")
        raise
