"""
Lazy, batched loading of gallery previews for lists of events.

Used by event list pages where every visible past event wants a small
preview of its gallery. Fetches are issued a few at a time with a short
pause between batches instead of all at once.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set

from constants import (
    GALLERY_BATCH_SIZE,
    GALLERY_BATCH_DELAY_SECONDS,
    GALLERY_PREVIEW_SIZE,
    GALLERY_MAX_EVENTS,
)
from models.event import Event, GalleryImage
from utils.batching import chunked
from utils.event_time import Clock, is_event_past, system_clock
from utils.request_deduplicator import RequestDeduplicator, gallery_cache_key

logger = logging.getLogger(__name__)

GalleryFetcher = Callable[[str], Awaitable[List[GalleryImage]]]


class GalleryBatchLoader:
    """
    Loads gallery previews for past events and remembers what it loaded.

    Each event id moves ``unseen -> loading -> loaded`` on success and back
    to ``unseen`` on failure, so a later call retries it.
    """

    def __init__(
        self,
        fetch_gallery: GalleryFetcher,
        deduplicator: Optional[RequestDeduplicator] = None,
        clock: Clock = system_clock,
        batch_size: int = GALLERY_BATCH_SIZE,
        batch_delay: float = GALLERY_BATCH_DELAY_SECONDS,
        preview_size: int = GALLERY_PREVIEW_SIZE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._fetch_gallery = fetch_gallery
        self._deduplicator = deduplicator or RequestDeduplicator()
        self._clock = clock
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._preview_size = preview_size
        self._sleep = sleep

        self.galleries: Dict[str, List[GalleryImage]] = {}
        self._loaded: Set[str] = set()
        self._loading: Set[str] = set()
        self._generation = 0

    @classmethod
    def for_client(cls, client, **kwargs) -> "GalleryBatchLoader":
        """Build a loader sharing the client's deduplicator."""
        return cls(client.fetch_gallery_images, deduplicator=client.deduplicator, **kwargs)

    def is_loaded(self, event_id: str) -> bool:
        return event_id in self._loaded

    def is_loading(self, event_id: str) -> bool:
        return event_id in self._loading

    def reset(self) -> None:
        """Forget every loaded preview; loads still in flight are discarded when they finish."""
        self._generation += 1
        self.galleries = {}
        self._loaded.clear()
        self._loading.clear()

    def _eligible_ids(self, events: Sequence[Event], max_events: int) -> List[str]:
        now = self._clock()
        event_ids = []
        for event in events[:max_events]:
            if not is_event_past(event, now):
                continue
            if event.id in self._loaded or event.id in self._loading or event.id in event_ids:
                continue
            event_ids.append(event.id)
        return event_ids

    async def load_galleries_for(self, events: Sequence[Event], max_events: int = GALLERY_MAX_EVENTS) -> None:
        """
        Fetch previews for the past events among the first ``max_events``.

        Batches run strictly one after another; within a batch fetches run
        concurrently and a failing fetch never aborts its siblings. A
        ``reset()`` stops the remaining batches.
        """
        batches = list(chunked(self._eligible_ids(events, max_events), self._batch_size))
        if not batches:
            return

        generation = self._generation
        logger.debug(f"Loading galleries for {sum(len(b) for b in batches)} events in {len(batches)} batches")
        for index, batch in enumerate(batches):
            await asyncio.gather(*(self._load_gallery(event_id) for event_id in batch))
            if generation != self._generation:
                logger.debug("Gallery loader was reset, dropping remaining batches")
                return

            if index < len(batches) - 1:
                await self._sleep(self._batch_delay)

    async def _load_gallery(self, event_id: str) -> None:
        generation = self._generation
        self._loading.add(event_id)
        try:
            images = await self._deduplicator.deduplicate(
                gallery_cache_key(event_id),
                lambda: self._fetch_gallery(event_id),
            )
        except Exception as e:
            logger.warning(f"Could not load gallery for event {event_id}: {e}")
            if generation == self._generation:
                self._loaded.discard(event_id)
            return
        finally:
            if generation == self._generation:
                self._loading.discard(event_id)

        if generation != self._generation:
            return
        self._loaded.add(event_id)
        if images:
            self.galleries[event_id] = list(images[:self._preview_size])
