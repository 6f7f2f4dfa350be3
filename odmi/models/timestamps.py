"""
Record timestamps.

`TimestampCreated`, `TimestampUpdated` and `Timestamps` add `created_at`/`updated_at` fields to a record. They can be
mixed into a dataclass model, or embedded as an `Inline` field so the keys sit at the top level of the document. Either
way `DocumentModel.save()` stamps them: `created_at` when a record is first inserted and `updated_at` on every write.

Example:
    ```python
    @odmi_model
    @dataclass
    class Pet(Timestamps):
        id: ObjectId | None = None
        name: str = ""


    @odmi_model
    @attrs.define
    class Owner:
        email: Annotated[str, Key] = ""
        stamps: Annotated[Timestamps, Inline] = attrs.Factory(Timestamps)
    ```
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, TYPE_CHECKING

if TYPE_CHECKING:
    from odmi.mapping.mapper import Mapper


@dataclass(kw_only=True)
class TimestampCreated:
    created_at: datetime | None = None


@dataclass(kw_only=True)
class TimestampUpdated:
    updated_at: datetime | None = None


@dataclass(kw_only=True)
class Timestamps(TimestampCreated, TimestampUpdated):
    pass


def utc_now() -> datetime:
    """The current UTC time truncated to the millisecond precision documents store."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def touch_timestamps(record: Any, mapper: "Mapper", *, inserting: bool, now: datetime | None = None) -> None:
    """Stamps the timestamp fields of a record and of the records inlined into it.

    `created_at` is only set while inserting and only when it is empty, so an explicit creation time is kept.
    """
    now = now or utc_now()
    for stamped in _stamped_records(record, mapper):
        if inserting and isinstance(stamped, TimestampCreated) and stamped.created_at is None:
            stamped.created_at = now

        if isinstance(stamped, TimestampUpdated):
            stamped.updated_at = now


def _stamped_records(record: Any, mapper: "Mapper") -> Iterator[Any]:
    yield record
    for field in mapper.descriptors(type(record)):
        if field.inline and not field.excluded and (nested := getattr(record, field.name)) is not None:
            yield from _stamped_records(nested, mapper)
