"""
Cache key derivation shared by cache lookups and cache writes.
"""

from urllib.parse import unquote_plus

TOKEN_PARAM = "api_key"


def cache_key(path: str, query_string: str) -> str:
    """Identify a request for caching purposes.

    Every ``api_key`` parameter is removed: scoped keys are encrypted with a
    fresh IV on each request, so keeping one would make every lookup miss.
    The remaining parameters keep their order and raw encoding.
    """
    remaining = [
        part for part in query_string.split("&")
        if part and unquote_plus(part.split("=", 1)[0]) != TOKEN_PARAM
    ]
    if not remaining:
        return path
    return f"{path}?{'&'.join(remaining)}"
