"""Planner operations built on the mutator, reconciler, resolver and paginator.

One method per resource/operation pair. Caller input is validated before the
first request; every write to a versioned entity goes through
``ConditionalUpdater`` with a tag read in the same operation.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from application.identity import IdentityResolver
from application.mutator import ConditionalUpdater
from application.paginator import collect_all
from application.ports import Transport
from application.reconciler import KeySource, build_plan_details_delta, build_task_details_delta
from core.codec import build_assignments, decode_reference_key, format_comment_content, format_date_time, parse_assignments
from core.details import CollectionUpdate, parse_checklist_items, parse_reference_items
from core.errors import ValidationError

logger = logging.getLogger("planner_sync.service")

TASK_DETAIL_FIELDS = ("description", "attachments", "attachmentsUi", "checklist", "checklistUi")


def _unwrap(fields: Mapping[str, Any], key: str) -> Any:
    # form payloads nest collections as {"attachmentsUi": {"attachments": {...}}}
    wrapped = fields.get(f"{key}Ui")
    if isinstance(wrapped, Mapping) and key in wrapped:
        return wrapped[key]
    return fields.get(key)


def _select_query(select: Optional[str]) -> Dict[str, Any]:
    return {"$select": select} if select else {}


class PlannerService:
    def __init__(
        self,
        transport: Transport,
        resolver: Optional[IdentityResolver] = None,
        updater: Optional[ConditionalUpdater] = None,
        key_source: Optional[KeySource] = None,
    ) -> None:
        self.transport = transport
        self.resolver = resolver or IdentityResolver(transport)
        self.updater = updater or ConditionalUpdater(transport)
        self.key_source = key_source

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, plan_id: str, bucket_id: str, title: str, fields: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        fields = fields or {}
        if not title:
            raise ValidationError("title is required")
        description, references, checklist = self._detail_inputs(fields)
        body: Dict[str, Any] = {"planId": plan_id, "bucketId": bucket_id, "title": title}
        body.update(self._task_fields(fields))
        task = self.transport.request("POST", "/planner/tasks", body=body)
        if description or references or checklist:
            details = self._write_task_details(task["id"], description, references, checklist)
            if description:
                task["description"] = description
            task["details"] = details
        logger.debug("created task %s in plan %s", task.get("id"), plan_id)
        return task

    def get_task(self, task_id: str, include_details: bool = False) -> Dict[str, Any]:
        task = self.transport.request("GET", f"/planner/tasks/{task_id}")
        if include_details:
            task["details"] = self.transport.request("GET", f"/planner/tasks/{task_id}/details")
        return task

    def list_tasks(
        self,
        filter_by: str,
        plan_id: Optional[str] = None,
        bucket_id: Optional[str] = None,
        select: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if filter_by == "plan" and plan_id:
            endpoint = f"/planner/plans/{plan_id}/tasks"
        elif filter_by == "bucket" and bucket_id:
            endpoint = f"/planner/buckets/{bucket_id}/tasks"
        else:
            raise ValidationError("You must specify either a Plan ID or Bucket ID to retrieve tasks")
        return collect_all(self.transport, endpoint, _select_query(select))

    def update_task(self, task_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        description, references, checklist = self._detail_inputs(fields)
        body = self._task_fields(fields)
        if fields.get("title"):
            body["title"] = fields["title"]
        if fields.get("bucketId"):
            body["bucketId"] = fields["bucketId"]
        path = f"/planner/tasks/{task_id}"
        task = self.updater.conditional_update(path, body)
        if description or references or checklist:
            details = self._write_task_details(task_id, description, references, checklist)
            # details writes move counters on the task (checklistItemCount, referenceCount)
            task = self.updater.fetch(path)
            task["details"] = details
        elif any(key in fields for key in TASK_DETAIL_FIELDS):
            task["details"] = self.transport.request("GET", f"{path}/details")
        return task

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        self.updater.conditional_delete(f"/planner/tasks/{task_id}")
        return {"success": True, "taskId": task_id}

    def get_task_files(self, task_id: str) -> Dict[str, Any]:
        details = self.transport.request("GET", f"/planner/tasks/{task_id}/details")
        references = details.get("references") or {}
        files = []
        for key, reference in references.items():
            reference = reference or {}
            files.append(
                {
                    "url": decode_reference_key(key),
                    "alias": reference.get("alias"),
                    "type": reference.get("type"),
                    "previewPriority": reference.get("previewPriority"),
                    "lastModifiedDateTime": reference.get("lastModifiedDateTime"),
                    "lastModifiedBy": reference.get("lastModifiedBy"),
                }
            )
        return {"taskId": task_id, "fileCount": len(files), "files": files}

    def _task_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if fields.get("priority") is not None:
            body["priority"] = fields["priority"]
        if fields.get("percentComplete") is not None:
            body["percentComplete"] = fields["percentComplete"]
        for name in ("dueDateTime", "startDateTime"):
            formatted = format_date_time(fields.get(name))
            if formatted:
                body[name] = formatted
        if fields.get("assignments"):
            emails = parse_assignments(fields["assignments"])
            user_ids = self.resolver.resolve_many(emails)
            if user_ids:
                body["assignments"] = build_assignments(user_ids)
        return body

    def _detail_inputs(
        self, fields: Mapping[str, Any]
    ) -> Tuple[Optional[str], Optional[CollectionUpdate], Optional[CollectionUpdate]]:
        references_raw = _unwrap(fields, "attachments")
        checklist_raw = _unwrap(fields, "checklist")
        references = parse_reference_items(references_raw) if references_raw else None
        checklist = parse_checklist_items(checklist_raw) if checklist_raw else None
        return fields.get("description") or None, references, checklist

    def _write_task_details(
        self,
        task_id: str,
        description: Optional[str],
        references: Optional[CollectionUpdate],
        checklist: Optional[CollectionUpdate],
    ) -> Dict[str, Any]:
        return self.updater.conditional_update(
            f"/planner/tasks/{task_id}/details",
            lambda current: build_task_details_delta(current, description, references, checklist, self.key_source),
        )

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def create_plan(self, owner: str, title: str) -> Dict[str, Any]:
        if not title:
            raise ValidationError("title is required")
        return self.transport.request("POST", "/planner/plans", body={"owner": owner, "title": title})

    def get_plan(self, plan_id: str, include_details: bool = False) -> Dict[str, Any]:
        plan = self.transport.request("GET", f"/planner/plans/{plan_id}")
        if include_details:
            plan["details"] = self.transport.request("GET", f"/planner/plans/{plan_id}/details")
        return plan

    def list_plans(self, scope: str, group_id: Optional[str] = None, select: Optional[str] = None) -> List[Dict[str, Any]]:
        if scope == "my":
            endpoint = "/me/planner/plans"
        elif scope == "group" and group_id:
            endpoint = f"/groups/{group_id}/planner/plans"
        else:
            raise ValidationError("Invalid scope for plan getAll operation")
        return collect_all(self.transport, endpoint, _select_query(select))

    def update_plan(self, plan_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        details_body = build_plan_details_delta(
            fields.get("categoryDescriptions"),
            fields.get("sharedWith") or fields.get("sharedWithJson"),
        )
        body: Dict[str, Any] = {}
        if fields.get("title"):
            body["title"] = fields["title"]
        path = f"/planner/plans/{plan_id}"
        plan = self.updater.conditional_update(path, body)
        if details_body:
            plan["details"] = self.updater.conditional_update(f"{path}/details", details_body)
        return plan

    def delete_plan(self, plan_id: str) -> Dict[str, Any]:
        self.updater.conditional_delete(f"/planner/plans/{plan_id}")
        return {"success": True, "planId": plan_id}

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    def create_bucket(self, plan_id: str, name: str, upsert: bool = False) -> Dict[str, Any]:
        if not name:
            raise ValidationError("name is required")
        if upsert:
            for bucket in collect_all(self.transport, f"/planner/plans/{plan_id}/buckets"):
                if bucket.get("name") == name:
                    logger.debug("bucket %r already exists in plan %s", name, plan_id)
                    return bucket
        return self.transport.request("POST", "/planner/buckets", body={"name": name, "planId": plan_id})

    def get_bucket(self, bucket_id: str) -> Dict[str, Any]:
        return self.transport.request("GET", f"/planner/buckets/{bucket_id}")

    def list_buckets(self, plan_id: str, select: Optional[str] = None) -> List[Dict[str, Any]]:
        return collect_all(self.transport, f"/planner/plans/{plan_id}/buckets", _select_query(select))

    def update_bucket(self, bucket_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body = {key: fields[key] for key in ("name", "orderHint") if fields.get(key)}
        return self.updater.conditional_update(f"/planner/buckets/{bucket_id}", body)

    def delete_bucket(self, bucket_id: str) -> Dict[str, Any]:
        self.updater.conditional_delete(f"/planner/buckets/{bucket_id}")
        return {"success": True, "bucketId": bucket_id}

    # ------------------------------------------------------------------
    # Comments (group conversation threads linked from the task)
    # ------------------------------------------------------------------

    def create_comment(self, task_id: str, content: str, content_type: str = "text") -> Dict[str, Any]:
        if not content:
            raise ValidationError("content is required")
        task = self.transport.request("GET", f"/planner/tasks/{task_id}")
        group_id = self._plan_group_id(task)
        post = format_comment_content(content, content_type or "text")
        thread_id = task.get("conversationThreadId")
        if not thread_id:
            conversation = self.transport.request(
                "POST",
                f"/groups/{group_id}/conversations",
                body={"topic": f'Comments on task "{task.get("title")}"', "threads": [{"posts": [post]}]},
            )
            conversation_id = conversation["id"]
            thread_id = conversation["threads"][0]["id"]
            self.updater.patch_with_tag(
                f"/planner/tasks/{task_id}",
                {"conversationThreadId": thread_id},
                task.get("@odata.etag"),
            )
        else:
            thread = self.transport.request("GET", f"/groups/{group_id}/threads/{thread_id}")
            conversation_id = thread.get("conversationId") or thread.get("id")
            self.transport.request(
                "POST",
                f"/groups/{group_id}/conversations/{conversation_id}/threads/{thread_id}/reply",
                body={"post": post},
            )
        return {
            "success": True,
            "taskId": task_id,
            "conversationId": conversation_id,
            "threadId": thread_id,
            "content": content,
        }

    def list_comments(self, task_id: str, select: Optional[str] = None) -> Dict[str, Any]:
        task = self.transport.request("GET", f"/planner/tasks/{task_id}")
        thread_id = task.get("conversationThreadId")
        if not thread_id:
            return {"taskId": task_id, "comments": [], "commentCount": 0}
        group_id = self._plan_group_id(task)
        posts = collect_all(self.transport, f"/groups/{group_id}/threads/{thread_id}/posts", _select_query(select))
        comments = [
            {
                "id": post.get("id"),
                "content": post.get("body"),
                "from": post.get("from"),
                "createdDateTime": post.get("createdDateTime"),
                "lastModifiedDateTime": post.get("lastModifiedDateTime"),
            }
            for post in posts
        ]
        return {"taskId": task_id, "comments": comments, "commentCount": len(comments)}

    def _plan_group_id(self, task: Mapping[str, Any]) -> str:
        plan = self.transport.request("GET", f"/planner/plans/{task.get('planId')}")
        group_id = (plan.get("container") or {}).get("containerId")
        if not group_id:
            raise ValidationError(f"Plan {task.get('planId')} is not owned by a group; comments are unavailable")
        return group_id

    # ------------------------------------------------------------------
    # Lookups for pickers
    # ------------------------------------------------------------------

    def bucket_options(self, plan_id: str) -> List[Dict[str, str]]:
        if not plan_id:
            return []
        buckets = collect_all(self.transport, f"/planner/plans/{plan_id}/buckets")
        return [{"name": bucket.get("name") or bucket["id"], "value": bucket["id"]} for bucket in buckets]

    def task_options(self, plan_id: Optional[str] = None, bucket_id: Optional[str] = None) -> List[Dict[str, str]]:
        if bucket_id:
            endpoint = f"/planner/buckets/{bucket_id}/tasks"
        elif plan_id:
            endpoint = f"/planner/plans/{plan_id}/tasks"
        else:
            return []
        tasks = collect_all(self.transport, endpoint)
        return [{"name": task.get("title") or task["id"], "value": task["id"]} for task in tasks]

    def group_options(self) -> List[Dict[str, str]]:
        groups = collect_all(self.transport, "/me/memberOf/$/microsoft.graph.group")
        # only Microsoft 365 (Unified) groups can own plans
        return [
            {"name": group.get("displayName") or group["id"], "value": group["id"]}
            for group in groups
            if "Unified" in (group.get("groupTypes") or [])
        ]
