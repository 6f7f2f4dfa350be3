"""Helpers for working with raw documents: copying, strict comparison, and validation."""
from typing import Any

from odmi.mapping.values import DOCUMENT_SAFE_TYPES


Document = dict[str, Any]


def deep_copy_document(document: Document | None) -> Document | None:
    """Copies the nested dicts and lists of a document. Leaf values are immutable and shared."""
    if document is None:
        return None

    return _copy_value(document)


def deep_equal(a: Any, b: Any) -> bool:
    """Type strict deep equality, so `1`, `1.0`, `True` and `Int64(1)` are all different values."""
    if type(a) is not type(b):
        return False

    if isinstance(a, dict):
        return a.keys() == b.keys() and all(deep_equal(value, b[key]) for key, value in a.items())

    if isinstance(a, list):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))

    return a == b


def find_invalid_values(document: Document, path: str = "") -> list[str]:
    """Lists the paths of every value in a document that cannot be stored.

    Paths are written as `.address.city(set)` or `.tags[2](Decimal)` with the offending type in parentheses.
    """
    invalid = []
    for key, value in document.items():
        invalid.extend(_find_invalid(value, f"{path}.{key}"))

    return invalid


def _find_invalid(value: Any, path: str) -> list[str]:
    match value:
        case None:
            return []

        case dict():
            return find_invalid_values(value, path)

        case list():
            return [
                invalid
                for index, item in enumerate(value)
                for invalid in _find_invalid(item, f"{path}[{index}]")
            ]

        case _ if isinstance(value, DOCUMENT_SAFE_TYPES):
            return []

        case _:
            return [f"{path}({type(value).__name__})"]


def _copy_value(value: Any) -> Any:
    match value:
        case dict():
            return {key: _copy_value(item) for key, item in value.items()}

        case list():
            return [_copy_value(item) for item in value]

        case _:
            return value
