import logging
from typing import Any, Dict, List, Optional

from application.ports import Transport

NEXT_LINK = "@odata.nextLink"
logger = logging.getLogger("planner_sync.paginator")


def collect_all(
    transport: Transport,
    endpoint: str,
    query: Optional[Dict[str, Any]] = None,
    property_name: str = "value",
) -> List[Dict[str, Any]]:
    """Follow continuation links until exhausted and return every item in page order.

    The caller's query is sent with the first request only; continuation links
    already encode it and are requested verbatim. A failing page propagates and
    nothing accumulated so far is returned.
    """
    items: List[Dict[str, Any]] = []
    url: Optional[str] = None
    pages = 0
    while True:
        if url is None:
            payload = transport.request("GET", endpoint, query=dict(query or {}))
        else:
            payload = transport.request("GET", url)
        pages += 1
        items.extend(payload.get(property_name) or [])
        url = payload.get(NEXT_LINK)
        if not url:
            break
        logger.debug("following continuation link for %s (page %s)", endpoint, pages + 1)
    logger.debug("collected %s items from %s in %s pages", len(items), endpoint, pages)
    return items
