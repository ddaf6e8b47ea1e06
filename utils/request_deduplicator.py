"""
Request deduplication to prevent duplicate API calls.

A ``RequestDeduplicator`` keeps one in-flight task per key. Callers asking
for a key that is already in flight join the existing task instead of
starting a new one; the entry disappears as soon as the task settles.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


def request_key(resource: str, identifier: str, operation: str) -> str:
    """
    Build a dedup key for one logical request.

    Segments are colon-delimited and the key ends with a delimiter-bounded
    operation name, so substring invalidation of ``event:12:`` never matches
    ``event:123:``.
    """
    return f"{resource}:{identifier}:{operation}"


def gallery_cache_key(event_id: str) -> str:
    return request_key("event", str(event_id), "gallery")


def event_cache_prefix(event_id: str) -> str:
    """Pattern matching every cached request of one event."""
    return f"event:{event_id}:"


class RequestDeduplicator:
    """Keyed registry of in-flight asynchronous operations."""

    def __init__(self):
        self._pending: Dict[str, asyncio.Future] = {}

    async def deduplicate(self, key: str, operation: Operation) -> Any:
        """
        Run ``operation`` unless a request with the same key is in flight.

        Every caller joined to a key receives the same result, or the same
        exception. The operation is never retried here.
        """
        pending = self._pending.get(key)
        if pending is not None:
            logger.debug(f"Deduplicating request: {key}")
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(operation())
        self._pending[key] = task
        task.add_done_callback(lambda done, key=key: self._release(key, done))
        # shield: one caller giving up must not cancel the request for the others
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Future) -> None:
        # A newer request may own the key after clear_cache()
        if self._pending.get(key) is task:
            del self._pending[key]

    def clear_cache(self, pattern: Optional[str] = None) -> None:
        """
        Forget in-flight entries whose key contains ``pattern`` (all when None).

        Requests already running keep running for the callers that joined
        them; the next call for a cleared key starts a fresh operation.
        """
        if pattern:
            for key in [k for k in self._pending if pattern in k]:
                del self._pending[key]
        else:
            self._pending.clear()

    def has_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_count(self) -> int:
        return len(self._pending)

    def pending_keys(self) -> List[str]:
        return list(self._pending.keys())
