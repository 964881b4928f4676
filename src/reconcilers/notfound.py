"""
Not-found classification for InfluxDB API errors.

Most endpoints report absence as HTTP 404. The find-by-name lookups have no
structured signal and fail with an error reading "<kind> '<name>' not found",
so that text is matched here and nowhere else.
"""

from typing import Awaitable, Optional, TypeVar

from clients.influxdb import APIError

T = TypeVar("T")


def not_found_message(kind: str, name: str) -> str:
    return f"{kind} '{name}' not found"


def is_not_found(
    err: BaseException, kind: Optional[str] = None, name: Optional[str] = None
) -> bool:
    """
    Whether an error means the external resource does not exist.

    Args:
        err: The error raised by the API client.
        kind: Lowercase resource kind used in untyped messages, e.g. "bucket".
        name: The name that was looked up.

    Returns:
        True for HTTP 404, or when kind and name are given and the message
        contains "<kind> '<name>' not found".
    """
    if isinstance(err, APIError) and err.not_found:
        return True
    if kind is None or name is None:
        return False
    return not_found_message(kind, name) in str(err)


async def find_or_none(
    call: Awaitable[T], kind: Optional[str] = None, name: Optional[str] = None
) -> Optional[T]:
    """
    Await a lookup and turn not-found into None.

    Any other error propagates unchanged.
    """
    try:
        return await call
    except Exception as e:
        if is_not_found(e, kind, name):
            return None
        raise
