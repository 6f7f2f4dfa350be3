from dataclasses import dataclass, field
from typing import Annotated

import pytest
from bson import ObjectId
from bson.int64 import Int64

from odmi.models import ModelRegistry, odmi_model
from odmi.models.changes import ChangeTracker, build_update_document, document_diff
from odmi.models.field_metadata import OmitEmpty


registry = ModelRegistry()


@odmi_model(registry=registry)
@dataclass
class Profile:
    id: ObjectId | None = None
    name: str = ""
    score: float = 0.0
    nickname: Annotated[str, OmitEmpty] = ""
    tags: list[str] = field(default_factory=list)
    team: str | None = None
    labels: set[str] = field(default_factory=set)


@pytest.mark.parametrize(
    "snapshot, current, expected",
    [
        ({"a": 1}, {"a": 1}, None),
        (None, None, None),
        ({"a": 1}, {"a": 2}, {"a": 2}),
        ({"a": 1}, {}, {"a": None}),
        ({}, {"b": [1]}, {"b": [1]}),
        ({"a": 1}, {"a": 1.0}, {"a": 1.0}),
        ({"a": 1}, {"a": Int64(1)}, {"a": Int64(1)}),
        ({"a": {"b": [1, 2]}}, {"a": {"b": [1, 2]}}, None),
        ({"a": {"b": [1, 2]}}, {"a": {"b": [2, 1]}}, {"a": {"b": [2, 1]}}),
    ],
)
def test_document_diff(snapshot, current, expected):
    assert document_diff(snapshot, current) == expected


def test_update_document_sets_and_unsets():
    current = {"name": "rex", "owner": None}
    diff = {"name": "rex", "owner": None, "nickname": None}
    assert build_update_document(diff, current) == {
        "$set": {"name": "rex", "owner": None},
        "$unset": {"nickname": ""},
    }
    assert build_update_document(None, current) is None


def test_tracker_snapshot_is_a_copy():
    document = {"tags": ["a"]}
    tracker = ChangeTracker()
    tracker.refresh(document)
    document["tags"].append("b")
    assert tracker.diff(document) == {"tags": ["a", "b"]}


def test_new_records_have_no_changes():
    profile = Profile.new()
    assert not profile.is_changed()
    assert profile.changes() is None
    assert profile.to_update_document() is None


def test_changes_are_minimal():
    profile = Profile.new()
    profile.name = "Ada"
    profile.tags.append("math")
    assert profile.changes() == {"name": "Ada", "tags": ["math"]}


def test_changes_are_type_strict():
    profile = Profile.new()
    profile.score = 0
    assert profile.changes() == {"score": 0}

    profile.score = 0.0
    assert not profile.is_changed()


def test_was_reports_previous_values():
    profile = Profile.new()
    assert profile.was("name") == ("", False)

    profile.name = "Ada"
    assert profile.was("name") == ("", True)


def test_cleared_omit_empty_field_is_unset(driver):
    profile = Profile.new()
    profile.nickname = "countess"
    profile.save()
    assert not profile.is_changed()

    profile.nickname = ""
    assert profile.changes() == {"nickname": None}
    assert profile.was("nickname") == ("countess", True)
    assert profile.to_update_document() == {"$unset": {"nickname": ""}}

    profile.save()
    _, collection, filter_document, update, _ = driver.calls[-1]
    assert collection == "profiles"
    assert filter_document == {"_id": profile.id}
    assert update == {"$unset": {"nickname": ""}}
    assert "nickname" not in driver.collection("profiles")[0]


def test_reverting_a_field_clears_its_change(driver):
    profile = Profile.new()
    profile.name = "Ada"
    profile.save()

    profile.name = "Grace"
    assert profile.changes() == {"name": "Grace"}

    profile.name = "Ada"
    assert profile.changes() is None
    assert profile.was("name") == ("Ada", False)


def test_cleared_nullable_field_is_set_to_null(driver):
    profile = Profile.new()
    profile.team = "analytics"
    profile.save()

    profile.team = None
    assert profile.changes() == {"team": None}
    assert profile.was("team") == ("analytics", True)
    assert profile.to_update_document() == {"$set": {"team": None}}

    profile.save()
    _, _, _, update, _ = driver.calls[-1]
    assert update == {"$set": {"team": None}}
    assert driver.collection("profiles")[0]["team"] is None


def test_reordered_sets_are_unchanged(driver):
    labels = [f"label-{index}" for index in range(200)]
    profile = Profile.new()
    profile.labels = set(labels)
    profile.save()

    profile.labels = set(reversed(labels))
    assert not profile.is_changed()
    assert profile.changes() is None

    profile.labels.add("label-new")
    assert profile.changes() == {"labels": sorted(labels + ["label-new"])}
