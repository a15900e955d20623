import pytest

from core.codec import CHECKLIST_ODATA_TYPE, REFERENCE_ODATA_TYPE, encode_reference_key
from core.details import (
    ChecklistItem,
    OperationMode,
    ReferenceItem,
    parse_checklist_items,
    parse_reference_items,
)
from core.errors import ValidationError
from core.locator import Locator, resolve_locator


def test_manual_checklist_items():
    update = parse_checklist_items([{"title": "Draft"}, {"title": "Review", "isChecked": True, "id": "k1"}])

    assert update.mode is OperationMode.APPEND
    assert update.items == [ChecklistItem("Draft"), ChecklistItem("Review", True, "k1")]
    assert update.items[1].entry_key() == "k1"
    assert update.items[0].entry_key() is None
    assert update.items[1].to_entry() == {"@odata.type": CHECKLIST_ODATA_TYPE, "title": "Review", "isChecked": True}


def test_manual_checklist_requires_title():
    with pytest.raises(ValidationError):
        parse_checklist_items([{"isChecked": True}])


def test_json_checklist_skips_untitled_entries():
    update = parse_checklist_items('[{"title": "One"}, {"isChecked": true}, {"title": "Two", "is_checked": 1}]')

    assert [item.title for item in update.items] == ["One", "Two"]
    assert update.items[1].is_checked is True


@pytest.mark.parametrize("raw", ["{not json", '{"title": "x"}', "[1, 2]"])
def test_json_checklist_must_be_array_of_objects(raw):
    with pytest.raises(ValidationError) as exc:
        parse_checklist_items(raw)
    assert "Invalid JSON in Checklist (JSON) field" in str(exc.value)


def test_wrapped_input_carries_operation_mode():
    update = parse_checklist_items({"mode": "json", "json": '[{"title": "A"}]', "operationMode": "replace"})
    assert update.mode is OperationMode.REPLACE
    assert update.items == [ChecklistItem("A")]

    manual = parse_reference_items({"items": [{"url": "https://x.test/a"}], "operation_mode": "append"})
    assert manual.mode is OperationMode.APPEND


def test_manual_items_grouped_by_item_key():
    checklist = parse_checklist_items({"mode": "manual", "items": {"item": [{"title": "Step", "isChecked": True}]}})
    assert checklist.items == [ChecklistItem("Step", True)]

    references = parse_reference_items(
        {"mode": "manual", "items": {"reference": [{"url": "https://x.test/a", "alias": "A"}]}, "operationMode": "replace"}
    )
    assert references.items == [ReferenceItem("https://x.test/a", "A")]
    assert references.mode is OperationMode.REPLACE

    assert parse_checklist_items({"mode": "manual", "items": {}}).items == []
    assert parse_checklist_items({"mode": "manual", "items": [{"title": "Bare"}]}).items == [ChecklistItem("Bare")]


def test_malformed_manual_items_are_not_reported_as_json():
    with pytest.raises(ValidationError) as exc:
        parse_checklist_items({"mode": "manual", "items": {"item": "Step"}})

    assert str(exc.value) == "Checklist items must be a list of objects"


def test_unknown_modes_are_rejected():
    with pytest.raises(ValidationError):
        parse_checklist_items({"items": [], "operationMode": "merge"})
    with pytest.raises(ValidationError):
        parse_checklist_items({"mode": "yaml", "items": []})
    with pytest.raises(ValidationError):
        parse_checklist_items(42)


def test_reference_defaults_and_key():
    update = parse_reference_items([{"url": "https://x.test/plan.docx", "type": "Word"}, {"url": "https://x.test/b"}])

    first, second = update.items
    assert first == ReferenceItem("https://x.test/plan.docx", "", "Word")
    assert second.type == "Other"
    assert first.entry_key() == encode_reference_key("https://x.test/plan.docx")
    assert second.to_entry() == {"@odata.type": REFERENCE_ODATA_TYPE, "alias": "", "type": "Other"}


def test_reference_validation():
    with pytest.raises(ValidationError):
        parse_reference_items([{"alias": "no url"}])
    assert parse_reference_items('[{"alias": "no url"}]').items == []
    with pytest.raises(ValidationError) as exc:
        parse_reference_items("nope")
    assert "Attachments" in str(exc.value)


def test_locator_accepts_string_and_pair():
    assert resolve_locator("  abc ") == "abc"
    assert resolve_locator({"mode": "list", "value": "xyz"}) == "xyz"
    assert Locator.from_param({"mode": "url", "value": "u"}).mode == "url"
    loc = Locator("id1")
    assert Locator.from_param(loc) is loc


@pytest.mark.parametrize("raw", ["", "   ", {"mode": "id"}, {"mode": "id", "value": ""}, 5, None])
def test_locator_rejects_empty_or_malformed(raw):
    with pytest.raises(ValidationError):
        resolve_locator(raw, "taskId")
