"""odmi, an object document mapper.

odmi maps dataclasses and attrs classes to documents stored in a document database and back. It provides:

-   **Declarative field mapping**: document keys default to the snake case name of each field and can be changed with
    `typing.Annotated` metadata (`StoreAs`, `Omit`, `Inline`, `OmitEmpty`, `NullEmpty`, `Key`).
-   **Change tracking**: records remember the document they were loaded or saved as, report what changed, and save only
    the changed keys.
-   **Lazy query results**: a `Result` can be read by index with a lookback buffer or streamed in a single pass, and its
    cursor is always released exactly once.
-   **Driver-based architecture**: a small synchronous driver contract, with a bundled MongoDB driver built on pymongo.

Note:
This `__init__.py` file uses a custom `__getattr__` to lazily load submodules and commonly used symbols.
"""
import importlib
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from odmi.drivers import BaseDriver
    from odmi.driver_context import active_driver, use_driver
    from odmi.models import DocumentModel, ModelRegistry, ModelType, Timestamps, odmi_model, register
    from odmi.models.field_metadata import Inline, Key, NullEmpty, Omit, OmitEmpty, StoreAs
    from odmi.database import DBResult, QueryContext, Result

__lookup = {
    "BaseDriver": "odmi.drivers",
    "active_driver": "odmi.driver_context",
    "use_driver": "odmi.driver_context",
    "DocumentModel": "odmi.models",
    "ModelRegistry": "odmi.models",
    "ModelType": "odmi.models",
    "odmi_model": "odmi.models",
    "register": "odmi.models",
    "Timestamps": "odmi.models",
    "Inline": "odmi.models.field_metadata",
    "Key": "odmi.models.field_metadata",
    "NullEmpty": "odmi.models.field_metadata",
    "Omit": "odmi.models.field_metadata",
    "OmitEmpty": "odmi.models.field_metadata",
    "StoreAs": "odmi.models.field_metadata",
    "DBResult": "odmi.database",
    "QueryContext": "odmi.database",
    "Result": "odmi.database",
}

__all__ = list(__lookup.keys())

__modules = set()

for _path in Path(__file__).parent.iterdir():
    if _path.name.startswith("_"):
        continue

    if not _path.is_dir() and _path.suffix != ".py":
        continue

    __modules.add(_path.stem)


def __getattr__(name):
    """Lazily loads the symbols listed in `__lookup` and any submodule of the package.

    Raises:
        ImportError: A listed symbol could not be imported from its module.
        AttributeError: The name is neither a listed symbol nor a submodule.
    """
    if name in __lookup:
        try:
            module = importlib.import_module(__lookup[name])
        except Exception as e:
            raise ImportError(f"Failed to import {name} from {__lookup[name]}: {e}") from e

        return getattr(module, name)

    if name in __modules:
        return importlib.import_module(f"odmi.{name}")

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
