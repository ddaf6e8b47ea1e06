from datetime import datetime
from typing import Optional, List

from bson import ObjectId
from fastapi import APIRouter, Depends, Query

from database import events_collection
from models.event import EventResponse, GalleryImage
from utils.event_time import (
    Clock,
    system_clock,
    event_status,
    days_until_event,
    is_upcoming,
    is_past,
)
from utils.exceptions import NotFoundException
from utils.pagination import get_pagination_params, create_paginated_response, PaginatedResponse
from constants import EVENT_STATUS_PUBLISHED, TEMPORAL_FILTER_SCAN_LIMIT
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/event", tags=["event"])


def get_clock() -> Clock:
    """Wall clock used to classify events; overridden in tests."""
    return system_clock


def to_event_response(event: dict, now: datetime) -> EventResponse:
    return EventResponse(
        event_id=str(event["_id"]),
        title=event.get("title", ""),
        description=event.get("description", ""),
        date=event["date"],
        time=event.get("time"),
        location=event.get("location"),
        category=event.get("category", "Other"),
        status=event.get("status", EVENT_STATUS_PUBLISHED),
        featured=event.get("featured", False),
        gallery_images=[GalleryImage(**image) for image in event.get("gallery_images") or []],
        event_status=event_status(event["date"], event.get("time"), event.get("status"), now),
        days_until_event=days_until_event(event["date"], event.get("time"), now),
    )


# -------------------
# GET ALL EVENTS (with pagination)
# -------------------
@router.get("/", response_model=PaginatedResponse[EventResponse])
async def all_events(
        category: Optional[str] = Query(None),
        status: Optional[str] = Query(None, description="draft, published, cancelled or completed"),
        page: Optional[int] = Query(1, ge=1, description="Page number (1-indexed)"),
        page_size: Optional[int] = Query(20, ge=1, le=100, description="Number of items per page (max 100)"),
        clock: Clock = Depends(get_clock)
) -> PaginatedResponse[EventResponse]:
    match_query = {}
    if category:
        match_query["category"] = category
    if status:
        match_query["status"] = status

    skip, limit = get_pagination_params(page, page_size)
    total = await events_collection.count_documents(match_query)

    now = clock()
    events = []
    async for event in events_collection.find(match_query).sort("date", -1).skip(skip).limit(limit):
        events.append(to_event_response(event, now))

    return create_paginated_response(
        items=events,
        total=total,
        page=page or 1,
        page_size=page_size or 20
    )


# -------------------
# GET UPCOMING EVENTS (not started yet)
# -------------------
@router.get("/upcoming", response_model=List[EventResponse])
async def upcoming_events(
        limit: int = Query(20, ge=1, le=100),
        clock: Clock = Depends(get_clock)
) -> List[EventResponse]:
    now = clock()
    cursor = events_collection.find({"status": EVENT_STATUS_PUBLISHED}).sort("date", 1)
    events = []
    async for event in cursor.limit(TEMPORAL_FILTER_SCAN_LIMIT):
        if is_upcoming(event["date"], event.get("time"), now):
            events.append(to_event_response(event, now))
            if len(events) >= limit:
                break
    logger.debug(f"Upcoming events found: {len(events)}")
    return events


# -------------------
# GET PAST EVENTS (already started)
# -------------------
@router.get("/past", response_model=List[EventResponse])
async def past_events(
        limit: int = Query(20, ge=1, le=100),
        clock: Clock = Depends(get_clock)
) -> List[EventResponse]:
    now = clock()
    cursor = events_collection.find({"status": EVENT_STATUS_PUBLISHED}).sort("date", -1)
    events = []
    async for event in cursor.limit(TEMPORAL_FILTER_SCAN_LIMIT):
        if is_past(event["date"], event.get("time"), now):
            events.append(to_event_response(event, now))
            if len(events) >= limit:
                break
    return events


# -------------------
# GET SINGLE EVENT
# -------------------
@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, clock: Clock = Depends(get_clock)) -> EventResponse:
    # Malformed ids raise InvalidId, rendered as 400 by the global handler
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)
    return to_event_response(event, clock())
