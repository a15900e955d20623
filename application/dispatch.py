"""Per-record routing of (resource, operation, parameters) onto PlannerService."""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

from application.planner_service import PlannerService
from core.errors import ValidationError
from core.locator import resolve_locator
from core.outcome import Err, Ok, RecordOutcome

logger = logging.getLogger("planner_sync.dispatch")

Handler = Callable[[PlannerService, Mapping[str, Any]], Any]


def _require(params: Mapping[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == "":
        raise ValidationError(f"Parameter {name!r} is required")
    return value


def _locator(params: Mapping[str, Any], name: str) -> str:
    return resolve_locator(_require(params, name), name)


def _optional_locator(params: Mapping[str, Any], name: str) -> Any:
    raw = params.get(name)
    return resolve_locator(raw, name) if raw else None


def _fields(params: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = params.get(name) or {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"Parameter {name!r} must be an object")
    return value


def _task_create(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.create_task(
        _locator(params, "planId"),
        _locator(params, "bucketId"),
        _require(params, "title"),
        _fields(params, "additionalFields"),
    )


def _task_get(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.get_task(_locator(params, "taskId"), bool(extra.get("includeDetails")))


def _task_get_all(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.list_tasks(
        str(params.get("filterBy") or ""),
        plan_id=_optional_locator(params, "planId"),
        bucket_id=_optional_locator(params, "bucketId"),
        select=extra.get("select"),
    )


def _task_update(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.update_task(_locator(params, "taskId"), _fields(params, "updateFields"))


def _task_delete(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.delete_task(_locator(params, "taskId"))


def _task_get_files(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.get_task_files(_locator(params, "taskId"))


def _plan_create(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.create_plan(_locator(params, "owner"), _require(params, "title"))


def _plan_get(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.get_plan(_locator(params, "planId"), bool(extra.get("includeDetails")))


def _plan_get_all(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.list_plans(
        str(params.get("scope") or ""),
        group_id=_optional_locator(params, "groupId"),
        select=extra.get("select"),
    )


def _plan_update(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.update_plan(_locator(params, "planId"), _fields(params, "updateFields"))


def _plan_delete(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.delete_plan(_locator(params, "planId"))


def _bucket_create(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.create_bucket(_locator(params, "planId"), _require(params, "name"), bool(params.get("upsert")))


def _bucket_get(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.get_bucket(_locator(params, "bucketId"))


def _bucket_get_all(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.list_buckets(_locator(params, "planId"), select=extra.get("select"))


def _bucket_update(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.update_bucket(_locator(params, "bucketId"), _fields(params, "updateFields"))


def _bucket_delete(service: PlannerService, params: Mapping[str, Any]) -> Any:
    return service.delete_bucket(_locator(params, "bucketId"))


def _comment_create(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.create_comment(
        _locator(params, "taskId"),
        _require(params, "content"),
        str(extra.get("contentType") or "text"),
    )


def _comment_get_all(service: PlannerService, params: Mapping[str, Any]) -> Any:
    extra = _fields(params, "additionalFields")
    return service.list_comments(_locator(params, "taskId"), select=extra.get("select"))


HANDLERS: Dict[Tuple[str, str], Handler] = {
    ("task", "create"): _task_create,
    ("task", "get"): _task_get,
    ("task", "getAll"): _task_get_all,
    ("task", "update"): _task_update,
    ("task", "delete"): _task_delete,
    ("task", "getFiles"): _task_get_files,
    ("plan", "create"): _plan_create,
    ("plan", "get"): _plan_get,
    ("plan", "getAll"): _plan_get_all,
    ("plan", "update"): _plan_update,
    ("plan", "delete"): _plan_delete,
    ("bucket", "create"): _bucket_create,
    ("bucket", "get"): _bucket_get,
    ("bucket", "getAll"): _bucket_get_all,
    ("bucket", "update"): _bucket_update,
    ("bucket", "delete"): _bucket_delete,
    ("comment", "create"): _comment_create,
    ("comment", "getAll"): _comment_get_all,
}


def error_descriptor(exc: Exception) -> Dict[str, Any]:
    descriptor: Dict[str, Any] = {"error": str(exc) or "Unknown error", "errorType": type(exc).__name__}
    status = getattr(exc, "status", None)
    if status is not None:
        descriptor["status"] = status
    return descriptor


class BatchRunner:
    """Runs records one after another.

    Strict mode (``continue_on_fail=False``) lets the first error propagate.
    Tolerant mode turns any error raised by a record into an ``Err``
    outcome and moves on to the next record.
    """

    def __init__(self, service: PlannerService, continue_on_fail: bool = False) -> None:
        self.service = service
        self.continue_on_fail = continue_on_fail

    def dispatch(self, resource: str, operation: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        handler = HANDLERS.get((resource, operation))
        if handler is None:
            raise ValidationError(f"The operation {operation!r} is not supported for resource {resource!r}")
        result = handler(self.service, params or {})
        if isinstance(result, list):
            return result
        return [result]

    def run(self, records: Iterable[Mapping[str, Any]]) -> List[RecordOutcome]:
        outcomes: List[RecordOutcome] = []
        for index, record in enumerate(records):
            resource = str(record.get("resource") or "")
            operation = str(record.get("operation") or "")
            try:
                values = self.dispatch(resource, operation, record.get("parameters") or {})
            except Exception as exc:
                if not self.continue_on_fail:
                    raise
                logger.warning("record %s (%s:%s) failed: %s", index, resource, operation, exc)
                outcomes.append(Err(error_descriptor(exc)))
                continue
            outcomes.extend(Ok(value) for value in values)
        return outcomes
