import logging
from typing import Dict, Iterable, List
from urllib.parse import quote

from application.paginator import collect_all
from application.ports import Transport
from core.codec import is_directory_id
from core.errors import IdentityNotFoundError, RemoteRequestError

logger = logging.getLogger("planner_sync.identity")


def _odata_literal(value: str) -> str:
    return value.replace("'", "''")


class IdentityResolver:
    """Turns an email / principal name into a directory object id.

    Lookup order: literal id (no call), direct ``/users/{name}``, then a
    filtered search on mail or userPrincipalName. Directory visibility differs
    per tenant, so the direct lookup alone is not reliable.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def resolve(self, identifier: str) -> str:
        identifier = (identifier or "").strip()
        if not identifier:
            raise IdentityNotFoundError(identifier)
        if is_directory_id(identifier):
            return identifier
        try:
            response = self.transport.request("GET", f"/users/{quote(identifier, safe='')}", query={"$select": "id"})
            user_id = (response or {}).get("id")
            if user_id:
                return user_id
        except RemoteRequestError as exc:
            logger.debug("direct user lookup failed for %s: %s", identifier, exc)
        literal = _odata_literal(identifier)
        query = {
            "$filter": f"mail eq '{literal}' or userPrincipalName eq '{literal}'",
            "$select": "id",
        }
        try:
            users = collect_all(self.transport, "/users", query)
        except RemoteRequestError as exc:
            logger.warning("filtered user lookup failed for %s: %s", identifier, exc)
            raise IdentityNotFoundError(identifier) from exc
        for user in users:
            if user.get("id"):
                return user["id"]
        raise IdentityNotFoundError(identifier)

    def resolve_many(self, identifiers: Iterable[str]) -> List[str]:
        """Resolve a list in order; repeated inputs hit the network once per call."""
        seen: Dict[str, str] = {}
        resolved: List[str] = []
        for identifier in identifiers:
            if identifier not in seen:
                seen[identifier] = self.resolve(identifier)
            resolved.append(seen[identifier])
        return resolved
