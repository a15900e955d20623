"""Read-modify-write cycle for entities guarded by a version tag."""

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

from application.ports import Transport
from core.codec import clean_etag
from core.errors import ConflictError, RemoteRequestError

ETAG_PROPERTY = "@odata.etag"
PRECONDITION_FAILED = 412
logger = logging.getLogger("planner_sync.mutator")

Delta = Mapping[str, Any]
DeltaSource = Union[Delta, Callable[[Dict[str, Any]], Delta]]


class ConditionalUpdater:
    """Issues conditional writes with the tag from the immediately preceding read.

    No retries: a stale tag means someone else changed the entity and the
    caller has to decide what to do about it.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def fetch(self, path: str) -> Dict[str, Any]:
        return self.transport.request("GET", path) or {}

    def conditional_update(self, path: str, delta: DeltaSource) -> Dict[str, Any]:
        """GET, PATCH with If-Match, GET again; returns the post-write entity.

        ``delta`` may be a callable receiving the fetched entity, for deltas that
        depend on current state (details reconciliation). An empty delta skips
        the write and returns the fetched entity as-is.
        """
        current = self.fetch(path)
        body = delta(current) if callable(delta) else delta
        if not body:
            logger.debug("empty delta for %s, skipping write", path)
            return current
        self.patch_with_tag(path, body, current.get(ETAG_PROPERTY))
        return self.fetch(path)

    def patch_with_tag(self, path: str, body: Delta, etag: Optional[str]) -> Any:
        headers = self._precondition(path, etag)
        return self._write("PATCH", path, dict(body), headers)

    def conditional_delete(self, path: str) -> None:
        current = self.fetch(path)
        headers = self._precondition(path, current.get(ETAG_PROPERTY))
        self._write("DELETE", path, None, headers)

    def _precondition(self, path: str, etag: Optional[str]) -> Dict[str, str]:
        tag = clean_etag(etag)
        if not tag:
            # nothing to guard against yet (e.g. a details blob never written)
            logger.debug("no version tag on %s, writing unconditionally", path)
            return {}
        return {"If-Match": tag}

    def _write(self, method: str, path: str, body: Optional[Dict[str, Any]], headers: Dict[str, str]) -> Any:
        try:
            return self.transport.request(method, path, body=body, headers=headers)
        except RemoteRequestError as exc:
            if exc.status == PRECONDITION_FAILED:
                logger.warning("version tag for %s is stale, %s rejected", path, method)
                raise ConflictError(
                    f"{method} {path} rejected: entity was modified since it was read",
                    status=exc.status,
                    body=exc.body,
                ) from exc
            raise
