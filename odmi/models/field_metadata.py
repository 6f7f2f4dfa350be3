"""
Field Metadata Types for Describing How Record Fields Map to Documents

Field metadata is attached to record fields with `typing.Annotated`. The field resolver reads it when a record type is
registered to decide each field's document key and how the mapper treats it:

- `StoreAs("name")` stores the field under an explicit document key
- `Omit` leaves the field out of documents entirely
- `Inline` promotes a nested record's fields into the parent document
- `OmitEmpty` leaves the key out when the field holds its zero value
- `NullEmpty` writes `None` when the field holds its zero value
- `Key` marks the identity field, which is stored as `_id`

Metadata instances can be combined with `|`.

Example:
    ```python
    from dataclasses import dataclass
    from typing import Annotated
    from bson import ObjectId
    from odmi import odmi_model, Key, Inline, OmitEmpty, StoreAs

    @dataclass
    class Address:
        street: str = ""
        city: str = ""

    @odmi_model
    @dataclass
    class Customer:
        id: Annotated[ObjectId | None, Key] = None
        name: Annotated[str, StoreAs("full_name")] = ""
        nickname: Annotated[str, OmitEmpty] = ""
        address: Annotated[Address, Inline] = None
    ```
"""


from collections import ChainMap
from itertools import zip_longest
from typing import Any, MutableMapping, Type, TypeVar, cast

from tramp.optionals import Optional, Some, Nothing


T = TypeVar("T")


class FieldMetadata:
    """
    Base type for all field metadata types.

    Each instance carries a mapping of metadata values. Combining two instances with `|` produces an
    `AggregateMetadata` that answers lookups from both.

    Attributes:
        metadata: A mapping containing the metadata key-value pairs
    """

    metadata: MutableMapping[str, Any]

    def __contains__(self, key: str) -> bool:
        return key in self.metadata

    def __eq__(self, other: "FieldMetadata | Any") -> bool:
        if not isinstance(other, FieldMetadata):
            return NotImplemented

        return dict(self.metadata) == dict(other.metadata)

    def __hash__(self):
        return hash(tuple(self.metadata.items()))

    def __or__(self, other: "FieldMetadata") -> "FieldMetadata":
        if not isinstance(other, FieldMetadata):
            return NotImplemented

        return AggregateMetadata(self, other)

    def __repr__(self):
        return f"{type(self).__name__}({', '.join(f'{k}={v}' for k, v in self.metadata.items())})"

    def get(self, key: str, default: T = None) -> T:
        """
        Retrieve a value from the metadata.

        Args:
            key: The metadata key to retrieve
            default: Value to return if the key doesn't exist

        Returns:
            The value associated with the key, or the default if not found
        """
        return self.metadata.get(key, default)

    def matches(self, check_for: "FieldMetadata | Type[FieldMetadata]") -> bool:
        """
        Check if this metadata matches a metadata type or is equal to a metadata instance.

        Args:
            check_for: A FieldMetadata instance or class to check against

        Returns:
            True if this metadata matches the check_for criteria, False otherwise
        """
        match check_for:
            case type() as metadata_type if issubclass(metadata_type, FieldMetadata):
                return isinstance(self, metadata_type)

            case FieldMetadata() as metadata:
                return self == metadata

            case _:
                return False


class AggregateMetadata(FieldMetadata):
    """
    Combines multiple field metadata instances into one.

    Lookups search the aggregated instances in the order they were added, so the first `StoreAs` wins when more than
    one is given.

    Attributes:
        metadata: A ChainMap over the metadata of every aggregated instance
    """

    metadata: ChainMap[str, Any]

    def __init__(self, *fields: "FieldMetadata") -> None:
        self._fields = []
        self.metadata = ChainMap({})

        for field in fields:
            self._add_field(field)

    def __eq__(self, other: "AggregateMetadata | Any") -> bool:
        if not isinstance(other, AggregateMetadata):
            return NotImplemented

        return all(a == b for a, b in zip_longest(self._fields, other._fields))

    def __or__(self, other: "FieldMetadata") -> "FieldMetadata":
        if not isinstance(other, FieldMetadata):
            return NotImplemented

        self._add_field(other)
        return self

    def __hash__(self):
        return hash(tuple(self.metadata.items()))

    def __iter__(self):
        return iter(self._fields)

    def _add_field(self, field: "FieldMetadata") -> None:
        if isinstance(field, AggregateMetadata):
            for nested in field:
                self._add_field(nested)

            return

        self._fields.append(field)
        self.metadata.maps.append(field.metadata)

    def matches(self, metadata: "FieldMetadata | Type[FieldMetadata]") -> bool:
        """Check if any of the aggregated metadata instances match a type or instance."""
        return any(f.matches(metadata) for f in self._fields)


class MetadataFlag(FieldMetadata):
    """
    A field metadata type that acts as a flag.

    Flags carry a single boolean value and are created once with `create_metadata_flag`. They should be treated as
    singletons: `Key`, `Omit`, `Inline`, `OmitEmpty` and `NullEmpty` are all flags.
    """


class StoreAs(FieldMetadata):
    """
    Field metadata type for setting an explicit document key.

    Example:
        ```python
        @odmi_model
        @dataclass
        class User:
            # Stored as "user_name" in documents
            name: Annotated[str, StoreAs("user_name")] = ""
        ```

    Attributes:
        store_as: The document key to use
    """

    def __init__(self, store_as: str):
        self.metadata = {"store_as": store_as}


def create_metadata_type(
    name: str, metadata_type: "Optional[Type[FieldMetadata]]" = Nothing(), /, **kwargs
) -> Type[FieldMetadata]:
    """
    Helper function for creating a simple field metadata type.

    The new type carries the keyword arguments as its preloaded metadata, so it needs no arguments to instantiate.

    Args:
        name: The name for the new metadata type
        metadata_type: Optional base class for the new type
        **kwargs: Default metadata values to include in the type

    Returns:
        A new FieldMetadata subclass with the specified properties
    """
    return cast(
        Type[FieldMetadata],
        type(name, (metadata_type.value_or(FieldMetadata),), {"metadata": kwargs}),
    )


def create_metadata_flag(name: str) -> FieldMetadata:
    """
    Helper function for creating field metadata flag instances.

    Args:
        name: The name for the flag

    Returns:
        A singleton instance of the created flag metadata
    """
    return create_metadata_type(name, Some(MetadataFlag), **{f"__flag_{name}": True})()


Key = create_metadata_flag("Key")
"""
Marks the identity field. Its document key is `_id` unless `StoreAs` gives another.

Example:
    ```python
    id: Annotated[ObjectId | None, Key] = None
    ```
"""
Omit = create_metadata_flag("Omit")
"""Excludes a field from documents. The field is never written and never read back."""
Inline = create_metadata_flag("Inline")
"""Promotes a nested record's fields into the parent document instead of nesting them under a key."""
OmitEmpty = create_metadata_flag("OmitEmpty")
"""Leaves the field's key out of the document while it holds its zero value or `None`."""
NullEmpty = create_metadata_flag("NullEmpty")
"""Writes `None` to the document while the field holds its zero value."""
