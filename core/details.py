"""Caller-declared items for the keyed collections of a details blob.

Input arrives either as a manual list of objects or as JSON text holding a
list of objects. Parsing happens here, before any request is issued, so a
malformed collection never leaves a half-written entity behind.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .codec import CHECKLIST_ODATA_TYPE, REFERENCE_ODATA_TYPE, encode_reference_key
from .errors import ValidationError

DEFAULT_REFERENCE_TYPE = "Other"
REFERENCE_TYPES = ("Excel", "Other", "PowerPoint", "Word")


class OperationMode(str, Enum):
    APPEND = "append"
    REPLACE = "replace"

    @classmethod
    def from_value(cls, value: Any) -> "OperationMode":
        if isinstance(value, OperationMode):
            return value
        token = str(value or cls.APPEND.value).strip().lower()
        for mode in cls:
            if mode.value == token:
                return mode
        raise ValidationError(f"Unknown operation mode: {value!r} (expected append or replace)")


@dataclass
class ChecklistItem:
    title: str
    is_checked: bool = False
    key: Optional[str] = None

    def entry_key(self) -> Optional[str]:
        return self.key

    def to_entry(self) -> Dict[str, Any]:
        return {"@odata.type": CHECKLIST_ODATA_TYPE, "title": self.title, "isChecked": self.is_checked}


@dataclass
class ReferenceItem:
    url: str
    alias: str = ""
    type: str = DEFAULT_REFERENCE_TYPE

    def entry_key(self) -> Optional[str]:
        return encode_reference_key(self.url)

    def to_entry(self) -> Dict[str, Any]:
        return {"@odata.type": REFERENCE_ODATA_TYPE, "alias": self.alias, "type": self.type}


DeclaredItem = Union[ChecklistItem, ReferenceItem]


@dataclass
class CollectionUpdate:
    items: List[DeclaredItem] = field(default_factory=list)
    mode: OperationMode = OperationMode.APPEND


def _load_object_list(raw: Any, label: str, input_mode: str = "json") -> List[Mapping[str, Any]]:
    if input_mode == "manual":
        error = f"{label} items must be a list of objects"
    else:
        error = f"Invalid JSON in {label} (JSON) field. It must be an array of objects."
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise ValidationError(error) from exc
    if not isinstance(raw, list) or not all(isinstance(entry, Mapping) for entry in raw):
        raise ValidationError(error)
    return raw


def _split_input(raw: Any, item_key: str) -> Tuple[str, Any, OperationMode]:
    """Return (input_mode, payload, operation_mode) for a collection parameter.

    Manual items come either as a bare list or grouped under ``item_key``,
    e.g. ``{"items": {"item": [...]}}`` for checklists.
    """
    if isinstance(raw, (list, str)):
        return ("json" if isinstance(raw, str) else "manual"), raw, OperationMode.APPEND
    if not isinstance(raw, Mapping):
        raise ValidationError("Collection input must be a list, JSON text or an object")
    input_mode = str(raw.get("mode") or ("json" if "json" in raw else "manual")).lower()
    operation_mode = OperationMode.from_value(raw.get("operation_mode") or raw.get("operationMode"))
    if input_mode == "json":
        return "json", raw.get("json") or "[]", operation_mode
    if input_mode == "manual":
        items = raw.get("items") or []
        if isinstance(items, Mapping):
            items = items.get(item_key) or []
        return "manual", items, operation_mode
    raise ValidationError(f"Unknown input mode: {input_mode!r} (expected manual or json)")


def parse_checklist_items(raw: Any) -> CollectionUpdate:
    input_mode, payload, operation_mode = _split_input(raw, "item")
    entries = _load_object_list(payload, "Checklist", input_mode)
    items: List[DeclaredItem] = []
    for entry in entries:
        title = entry.get("title")
        if not title:
            if input_mode == "json":
                continue
            raise ValidationError("Checklist item title is required")
        key = entry.get("id") or entry.get("key") or None
        checked = entry.get("isChecked", entry.get("is_checked"))
        items.append(ChecklistItem(title=str(title), is_checked=bool(checked), key=key))
    return CollectionUpdate(items=items, mode=operation_mode)


def parse_reference_items(raw: Any) -> CollectionUpdate:
    input_mode, payload, operation_mode = _split_input(raw, "reference")
    entries = _load_object_list(payload, "Attachments", input_mode)
    items: List[DeclaredItem] = []
    for entry in entries:
        url = entry.get("url")
        if not url:
            if input_mode == "json":
                continue
            raise ValidationError("Attachment url is required")
        items.append(
            ReferenceItem(
                url=str(url),
                alias=str(entry.get("alias") or ""),
                type=str(entry.get("type") or DEFAULT_REFERENCE_TYPE),
            )
        )
    return CollectionUpdate(items=items, mode=operation_mode)
