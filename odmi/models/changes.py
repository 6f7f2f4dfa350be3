"""
Change Tracking

Every model instance owns a `ChangeTracker` that holds the document it last matched in the store. The snapshot is
replaced whole after the record is built from a loaded or default document and after a successful save. Diffs are
computed against a fresh mapping of the record each time they are requested.
"""
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from odmi.mapping.documents import Document, deep_copy_document, deep_equal

if TYPE_CHECKING:
    from odmi.models.model_type import ModelType


def document_diff(snapshot: Document | None, current: Document | None) -> Document | None:
    """Keys whose values differ between two documents.

    Keys missing from the current document are reported as `None`. Returns `None` when nothing differs.
    """
    snapshot = snapshot or {}
    current = current or {}
    diff = {}
    for key, previous in snapshot.items():
        if key not in current:
            diff[key] = None

        elif not deep_equal(previous, current[key]):
            diff[key] = current[key]

    for key, value in current.items():
        if key not in snapshot:
            diff[key] = value

    return diff or None


def build_update_document(diff: Document | None, current: Document | None) -> Document | None:
    """Turns a diff into an update document.

    Keys still present in the current mapping are `$set`, including keys explicitly cleared to `None`. Keys that no
    longer appear in the mapping at all are `$unset`.
    """
    if not diff:
        return None

    current = current or {}
    update = {}
    if set_values := {key: value for key, value in diff.items() if key in current}:
        update["$set"] = set_values

    if unset_values := {key: "" for key in diff if key not in current}:
        update["$unset"] = unset_values

    return update


@dataclass
class ChangeTracker:
    model_type: "ModelType | None" = None
    snapshot: Document | None = None
    persisted: bool = False

    def refresh(self, document: Document | None):
        self.snapshot = deep_copy_document(document)

    def diff(self, current: Document | None) -> Document | None:
        return document_diff(self.snapshot, current)

    def was(self, key: str, current: Document | None) -> tuple[Any, bool]:
        """The snapshot value of a key when it has changed, otherwise its current value."""
        if (diff := self.diff(current)) and key in diff:
            return (self.snapshot or {}).get(key), True

        return (current or {}).get(key), False
