from odmi.models.models import DocumentModel, odmi_model, register
from odmi.models.model_type import ModelType
from odmi.models.collections import ModelRegistry, get_global_registry
from odmi.models.timestamps import TimestampCreated, Timestamps, TimestampUpdated


__all__ = [
    "DocumentModel",
    "ModelRegistry",
    "ModelType",
    "TimestampCreated",
    "Timestamps",
    "TimestampUpdated",
    "get_global_registry",
    "odmi_model",
    "register",
]
