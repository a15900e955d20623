"""Delta computation for the keyed collections of a details blob.

Detail collections are flat key -> value maps patched as partial updates: a key
set to ``None`` deletes the entry, an absent key leaves it untouched. Replace
mode tombstones every existing key first and then lays the declared items over
the tombstones, so an item kept under the same key is overwritten in place.
"""

import json
import random
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from core.codec import generate_guid
from core.details import CollectionUpdate, DeclaredItem, OperationMode
from core.errors import ValidationError

KeySource = Callable[[], str]


def reconcile(
    current: Optional[Mapping[str, Any]],
    items: Iterable[DeclaredItem],
    mode: OperationMode,
    key_source: Optional[KeySource] = None,
) -> Dict[str, Any]:
    next_key = key_source or generate_guid
    delta: Dict[str, Any] = {}
    if OperationMode.from_value(mode) is OperationMode.REPLACE:
        for key in (current or {}):
            delta[key] = None
    for item in items:
        key = item.entry_key() or next_key()
        delta[key] = item.to_entry()
    return delta


def seeded_key_source(seed: int) -> KeySource:
    rng = random.Random(seed)
    return lambda: generate_guid(rng)


def build_task_details_delta(
    current: Mapping[str, Any],
    description: Optional[str] = None,
    references: Optional[CollectionUpdate] = None,
    checklist: Optional[CollectionUpdate] = None,
    key_source: Optional[KeySource] = None,
) -> Dict[str, Any]:
    """Body for PATCH /planner/tasks/{id}/details; empty when nothing changes."""
    body: Dict[str, Any] = {}
    if description:
        body["description"] = description
    if references is not None:
        delta = reconcile(current.get("references"), references.items, references.mode, key_source)
        if delta:
            body["references"] = delta
    if checklist is not None:
        delta = reconcile(current.get("checklist"), checklist.items, checklist.mode, key_source)
        if delta:
            body["checklist"] = delta
    return body


def build_plan_details_delta(
    category_descriptions: Optional[Mapping[str, Any]] = None,
    shared_with: Any = None,
) -> Dict[str, Any]:
    """Body for PATCH /planner/plans/{id}/details.

    An empty or null category label unsets that category. ``shared_with`` is a
    ``{userId: bool}`` map or its JSON text.
    """
    body: Dict[str, Any] = {}
    if category_descriptions:
        categories: Dict[str, Any] = {}
        for key, value in category_descriptions.items():
            categories[key] = None if value is None or value == "" else value
        if categories:
            body["categoryDescriptions"] = categories
    if shared_with:
        parsed = shared_with
        if isinstance(shared_with, str):
            try:
                parsed = json.loads(shared_with)
            except ValueError as exc:
                raise ValidationError("Invalid JSON in Shared With (plannerUserIds JSON) field") from exc
        if not isinstance(parsed, Mapping):
            raise ValidationError("Shared With must be a JSON object of user ids")
        if parsed:
            body["sharedWith"] = dict(parsed)
    return body
