from typing import Any, Dict, Optional, Protocol


class Transport(Protocol):
    """Authenticated request channel to the Graph endpoint.

    ``path`` is either relative to the API root or an absolute URL (continuation
    links). Returns the decoded body; raises ``RemoteRequestError`` (or a
    subclass) on any non-2xx status.
    """

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        ...
