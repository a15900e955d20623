from .graph_client import GRAPH_BASE_URL, GraphClient
from .rate_limiter import RateLimiter

__all__ = [
    "GRAPH_BASE_URL",
    "GraphClient",
    "RateLimiter",
]
