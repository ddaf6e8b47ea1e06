"""
Async client for the event gallery API.

Reads go through a ``RequestDeduplicator`` so that widgets asking for the
same event's gallery at the same time share one HTTP request. Every
mutation (upload, delete, caption update) invalidates that event's gallery
key so the next read goes back to the server.
"""
import asyncio
import os
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
from dotenv import load_dotenv
from pydantic import ValidationError

from constants import GALLERY_COUNT_BATCH_SIZE, GALLERY_COUNT_BATCH_DELAY_SECONDS
from models.event import GalleryImage
from utils.batching import chunked
from utils.exceptions import GalleryServiceError
from utils.request_deduplicator import RequestDeduplicator, gallery_cache_key

load_dotenv()

logger = logging.getLogger(__name__)

GALLERY_API_BASE_URL = os.getenv("GALLERY_API_BASE_URL", "http://localhost:8000/api/campus")

# (filename, content, content type)
UploadFile = Tuple[str, bytes, str]


class EventGalleryClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
        timeout: float = 10.0,
    ):
        self.deduplicator = deduplicator or RequestDeduplicator()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or GALLERY_API_BASE_URL,
            timeout=timeout,
        )

    async def __aenter__(self) -> "EventGalleryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def _request(self, event_id: str, method: str, url: str, **kwargs) -> dict:
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GalleryServiceError(
                event_id,
                f"Gallery API returned {e.response.status_code} for {method} {url}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise GalleryServiceError(event_id, f"Gallery API request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise GalleryServiceError(
                event_id,
                f"Gallery API returned a non-JSON body for {method} {url}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise GalleryServiceError(
                event_id,
                f"Gallery API returned an unexpected body for {method} {url}",
                status_code=response.status_code,
            )
        return data

    @staticmethod
    def _parse_images(event_id: str, payload) -> List[GalleryImage]:
        try:
            return [GalleryImage.model_validate(image) for image in payload or []]
        except (ValidationError, TypeError) as e:
            raise GalleryServiceError(event_id, f"Gallery API returned malformed images: {e}") from e

    async def fetch_gallery_images(self, event_id: str) -> List[GalleryImage]:
        """Fetch an event's gallery without deduplication."""
        data = await self._request(event_id, "GET", f"/event/{event_id}/gallery")
        return self._parse_images(event_id, data.get("gallery_images"))

    async def get_event_gallery_images(self, event_id: str) -> List[GalleryImage]:
        """Fetch an event's gallery, sharing any identical request in flight."""
        return await self.deduplicator.deduplicate(
            gallery_cache_key(event_id),
            lambda: self.fetch_gallery_images(event_id),
        )

    async def upload_event_gallery_images(
        self,
        event_id: str,
        files: Sequence[UploadFile],
        captions: Optional[Sequence[str]] = None,
    ) -> List[GalleryImage]:
        """
        Upload images to an event's gallery.

        Args:
            event_id: Event ID
            files: (filename, content, content type) tuples
            captions: Optional captions, matched to files by position

        Returns:
            The newly stored gallery images
        """
        form = {}
        for index, caption in enumerate(captions or []):
            if caption and caption.strip():
                form[f"caption_{index}"] = caption.strip()

        try:
            data = await self._request(
                event_id,
                "POST",
                f"/event/{event_id}/gallery",
                files=[("images", file) for file in files],
                data=form,
            )
        finally:
            self.deduplicator.clear_cache(gallery_cache_key(event_id))
        return self._parse_images(event_id, data.get("gallery_images"))

    async def delete_event_gallery_image(self, event_id: str, image_id: str) -> bool:
        try:
            await self._request(event_id, "DELETE", f"/event/{event_id}/gallery/{image_id}")
        finally:
            self.deduplicator.clear_cache(gallery_cache_key(event_id))
        return True

    async def update_event_gallery_image_caption(self, event_id: str, image_id: str, caption: str) -> GalleryImage:
        self.deduplicator.clear_cache(gallery_cache_key(event_id))
        data = await self._request(
            event_id,
            "PATCH",
            f"/event/{event_id}/gallery/{image_id}",
            json={"caption": (caption or "").strip()},
        )
        images = self._parse_images(event_id, [data.get("image")])
        return images[0]

    async def get_event_gallery_image_count(self, event_id: str) -> int:
        """Number of images in an event's gallery; 0 when it cannot be fetched."""
        try:
            images = await self.get_event_gallery_images(event_id)
        except GalleryServiceError as e:
            logger.warning(f"Could not count gallery images: {e}")
            return 0
        return len(images)

    async def get_multiple_event_gallery_counts(self, event_ids: Sequence[str]) -> Dict[str, int]:
        """Gallery sizes for many events, fetched in small batches. Failed ids are omitted."""
        counts = {}
        batches = list(chunked(list(event_ids), GALLERY_COUNT_BATCH_SIZE))
        for index, batch in enumerate(batches):
            results = await asyncio.gather(
                *(self.get_event_gallery_images(event_id) for event_id in batch),
                return_exceptions=True,
            )
            for event_id, result in zip(batch, results):
                if isinstance(result, GalleryServiceError):
                    logger.warning(f"Skipping gallery count: {result}")
                    continue
                if isinstance(result, BaseException):
                    raise result
                counts[event_id] = len(result)

            if index < len(batches) - 1:
                await asyncio.sleep(GALLERY_COUNT_BATCH_DELAY_SECONDS)
        return counts
