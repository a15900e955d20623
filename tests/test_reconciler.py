import itertools

import pytest

from application.reconciler import (
    build_plan_details_delta,
    build_task_details_delta,
    reconcile,
    seeded_key_source,
)
from core.details import ChecklistItem, CollectionUpdate, OperationMode, ReferenceItem
from core.errors import ValidationError


def _counter_keys(prefix="new"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def test_replace_tombstones_before_new_items():
    current = {"k1": {"title": "old"}, "k2": {"title": "older"}}

    delta = reconcile(current, [ChecklistItem("fresh")], OperationMode.REPLACE, _counter_keys())

    assert list(delta) == ["k1", "k2", "new-1"]
    assert delta["k1"] is None and delta["k2"] is None
    assert delta["new-1"]["title"] == "fresh"


def test_replace_keeps_item_declared_under_existing_key():
    current = {"k1": {"title": "old"}, "k2": {"title": "older"}}

    delta = reconcile(current, [ChecklistItem("renamed", key="k1")], OperationMode.REPLACE)

    assert delta["k1"]["title"] == "renamed"
    assert delta["k2"] is None


def test_append_never_tombstones():
    current = {"k1": {"title": "old"}}

    delta = reconcile(current, [ChecklistItem("a"), ChecklistItem("b")], OperationMode.APPEND, _counter_keys())

    assert delta == {
        "new-1": ChecklistItem("a").to_entry(),
        "new-2": ChecklistItem("b").to_entry(),
    }
    assert None not in delta.values()


def test_generated_keys_are_distinct():
    items = [ChecklistItem(f"item {i}") for i in range(8)]

    delta = reconcile({}, items, OperationMode.APPEND)

    assert len(delta) == 8


def test_reference_items_use_encoded_url_keys():
    delta = reconcile(None, [ReferenceItem("https://x.test/a.pdf", "A")], "append")

    assert list(delta) == ["https%3A//x%2Etest/a%2Epdf"]
    assert delta["https%3A//x%2Etest/a%2Epdf"]["alias"] == "A"


def test_seeded_key_source_is_deterministic():
    first, second = seeded_key_source(7), seeded_key_source(7)

    assert [first() for _ in range(3)] == [second() for _ in range(3)]


def test_task_details_delta_combines_sections():
    current = {"checklist": {"old": {"title": "x"}}, "references": {}}
    checklist = CollectionUpdate([ChecklistItem("new")], OperationMode.REPLACE)
    references = CollectionUpdate([ReferenceItem("https://x.test/r")], OperationMode.APPEND)

    body = build_task_details_delta(current, "notes", references, checklist, _counter_keys())

    assert body["description"] == "notes"
    assert body["checklist"] == {"old": None, "new-1": ChecklistItem("new").to_entry()}
    assert list(body["references"]) == ["https%3A//x%2Etest/r"]


def test_task_details_delta_omits_empty_sections():
    assert build_task_details_delta({}, None, CollectionUpdate([], OperationMode.REPLACE), None) == {}
    assert build_task_details_delta({"checklist": {}}, "", None, CollectionUpdate()) == {}


def test_plan_details_delta():
    body = build_plan_details_delta(
        {"category1": "Red", "category2": "", "category3": None},
        '{"user-1": true, "user-2": false}',
    )

    assert body == {
        "categoryDescriptions": {"category1": "Red", "category2": None, "category3": None},
        "sharedWith": {"user-1": True, "user-2": False},
    }
    assert build_plan_details_delta({"category4": None}, None) == {"categoryDescriptions": {"category4": None}}
    assert build_plan_details_delta({}, None) == {}
    assert build_plan_details_delta(None, {"u": True}) == {"sharedWith": {"u": True}}


@pytest.mark.parametrize("shared_with", ["{broken", "[1]"])
def test_plan_details_delta_rejects_bad_shared_with(shared_with):
    with pytest.raises(ValidationError):
        build_plan_details_delta(None, shared_with)
