"""
Model Registry

The registry indexes registered models by name and by record type and holds the field descriptor table of every record
type the mapper touches. A process wide registry is available from `get_global_registry()`; tests and applications that
want isolation can construct their own and pass it to `odmi_model`.
"""
import logging
from typing import Iterator, TYPE_CHECKING

import odmi.mapping.mapper
from odmi.errors import DuplicateModelError
from odmi.models.fields import FieldDescriptor, TypeInfo, TypeKind, resolve_fields

if TYPE_CHECKING:
    from odmi.models.model_type import ModelType


logger = logging.getLogger(__name__)

_global_registry = None


class ModelRegistry:
    """Registered models and the descriptor tables of the record types they use.

    Registration happens at import time; afterwards the registry is only read.

    Attributes:
        models (dict[str, ModelType]): Registered model types by model name.
        mapper (Mapper): The mapper that reads descriptor tables from this registry.
    """
    def __init__(self):
        self.models: "dict[str, ModelType]" = {}
        self._by_type: "dict[type, ModelType]" = {}
        self._descriptors: dict[type, tuple[FieldDescriptor, ...]] = {}
        self.mapper = odmi.mapping.mapper.Mapper(self)

    def add(self, model_type: "ModelType"):
        """Adds a model type, resolving the descriptor tables of every record type it reaches.

        Raises:
            DuplicateModelError: A model with the same name is already registered.
            ConfigurationError: A reachable record type has conflicting field declarations.
        """
        if model_type.model_name in self.models:
            raise DuplicateModelError(f"A model named {model_type.model_name!r} is already registered in {self!r}")

        self.descriptors_for(model_type.model)
        self.models[model_type.model_name] = model_type
        self._by_type[model_type.model] = model_type
        logger.info(
            "Registered model %s (collection %r)", model_type.model_name, model_type.collection_name
        )

    def get(self, model_name: str) -> "ModelType | None":
        return self.models.get(model_name)

    def get_for_type(self, record_type: type) -> "ModelType | None":
        return self._by_type.get(record_type)

    def descriptors_for(self, record_type: type) -> tuple[FieldDescriptor, ...]:
        """The cached descriptor table for a record type, resolved on first use along with nested record types."""
        if record_type not in self._descriptors:
            self._descriptors[record_type] = resolve_fields(record_type)
            try:
                for field in self._descriptors[record_type]:
                    self._resolve_nested(field.type_info)
            except Exception:
                del self._descriptors[record_type]
                raise

        return self._descriptors[record_type]

    def _resolve_nested(self, type_info: TypeInfo | None):
        match type_info:
            case TypeInfo(kind=TypeKind.RECORD, python_type=record_type):
                self.descriptors_for(record_type)

            case TypeInfo(kind=TypeKind.LIST | TypeKind.MAPPING, element=element):
                self._resolve_nested(element)

    def __contains__(self, model_name: str) -> bool:
        return model_name in self.models

    def __iter__(self) -> "Iterator[ModelType]":
        return iter(self.models.values())

    def __len__(self) -> int:
        return len(self.models)

    def __repr__(self):
        return f"<{type(self).__name__}: contains {len(self.models)} model{'' if len(self.models) == 1 else 's'}>"


def get_global_registry() -> ModelRegistry:
    """Retrieves the process wide `ModelRegistry`, creating it on first use."""
    global _global_registry
    if _global_registry is None:
        _global_registry = ModelRegistry()

    return _global_registry
