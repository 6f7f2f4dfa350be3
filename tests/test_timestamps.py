from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated

import attrs
import pytest
from bson import ObjectId

import odmi.models.timestamps
from odmi.models import ModelRegistry, odmi_model
from odmi.models.field_metadata import Inline, Key
from odmi.models.timestamps import TimestampCreated, Timestamps, TimestampUpdated, touch_timestamps, utc_now


registry = ModelRegistry()

CREATED = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
UPDATED = datetime(2024, 3, 2, 18, 0, tzinfo=timezone.utc)


@odmi_model(registry=registry)
@dataclass
class Note(Timestamps):
    id: ObjectId | None = None
    text: str = ""


@odmi_model(registry=registry)
@attrs.define
class Ledger:
    code: Annotated[str, Key] = ""
    balance: int = 0
    stamps: Annotated[Timestamps, Inline] = attrs.Factory(Timestamps)


@odmi_model(registry=registry)
@dataclass
class Draft(TimestampCreated):
    id: ObjectId | None = None


@pytest.fixture
def clock(monkeypatch):
    times = iter([CREATED, UPDATED])
    monkeypatch.setattr(odmi.models.timestamps, "utc_now", lambda: next(times))


def test_timestamps_are_record_fields():
    assert Note(text="hi").to_document() == {"_id": None, "updated_at": None, "created_at": None, "text": "hi"}


def test_utc_now_has_millisecond_precision():
    now = utc_now()
    assert now.tzinfo is timezone.utc
    assert now.microsecond % 1000 == 0


def test_insert_stamps_both_fields(driver, clock):
    note = Note(text="hello").save()
    assert note.created_at == CREATED
    assert note.updated_at == CREATED
    assert driver.collection("notes")[0]["created_at"] == CREATED


def test_update_only_stamps_updated_at(driver, clock):
    note = Note(text="hello").save()
    note.text = "hello again"
    note.save()

    assert note.created_at == CREATED
    assert note.updated_at == UPDATED
    _, _, _, update, _ = driver.calls[-1]
    assert update == {"$set": {"text": "hello again", "updated_at": UPDATED}}


def test_unchanged_records_are_not_restamped(driver, clock):
    note = Note(text="hello").save()
    note.save()

    assert note.updated_at == CREATED
    assert len(driver.calls) == 1


def test_inlined_timestamps(driver, clock):
    ledger = Ledger(code="L-1", balance=10).save()
    assert driver.collection("ledgers")[0] == {
        "_id": "L-1",
        "balance": 10,
        "updated_at": CREATED,
        "created_at": CREATED,
    }

    ledger.balance = 20
    ledger.save()
    assert ledger.stamps == Timestamps(created_at=CREATED, updated_at=UPDATED)


def test_explicit_creation_time_is_kept():
    draft = Draft(created_at=UPDATED)
    touch_timestamps(draft, registry.mapper, inserting=True, now=CREATED)
    assert draft.created_at == UPDATED

    fresh = Draft()
    touch_timestamps(fresh, registry.mapper, inserting=False, now=CREATED)
    assert fresh.created_at is None


def test_updated_only_mixin():
    @dataclass
    class Edited(TimestampUpdated):
        text: str = ""

    edited = Edited()
    touch_timestamps(edited, registry.mapper, inserting=True, now=CREATED)
    assert edited.updated_at == CREATED
    assert not hasattr(edited, "created_at")
