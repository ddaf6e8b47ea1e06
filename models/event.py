from datetime import datetime, date as date_type
from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Union, Dict

from utils.event_time import EventTimeStatus

EventStatus = Literal["draft", "published", "cancelled", "completed"]


class GalleryImage(BaseModel):
    image_id: str
    public_id: str
    url: str
    caption: Optional[str] = ""
    uploaded_at: datetime
    uploaded_by: str = "admin"


class Event(BaseModel):
    id: str
    title: str = ""
    date: Union[datetime, date_type]
    time: Optional[str] = None  # "2:30 PM" or "14:30"; None means start of day
    status: EventStatus = "published"
    gallery_images: List[GalleryImage] = []


class EventResponse(BaseModel):
    event_id: str
    title: str
    description: str = ""
    date: datetime
    time: Optional[str] = None
    location: Optional[str] = None
    category: str = "Other"
    status: EventStatus
    featured: bool = False
    gallery_images: List[GalleryImage] = []
    event_status: EventTimeStatus
    days_until_event: int


class GalleryResponse(BaseModel):
    gallery_images: List[GalleryImage]
    event_title: str


class GalleryUploadResponse(BaseModel):
    message: str
    gallery_images: List[GalleryImage]


class CaptionUpdateRequest(BaseModel):
    caption: Optional[str] = ""


class CaptionUpdateResponse(BaseModel):
    message: str
    image: GalleryImage


class MultipleGalleriesRequest(BaseModel):
    event_ids: List[str] = Field(..., min_length=1)


class EventGallery(BaseModel):
    title: str
    gallery_images: List[GalleryImage]


class MultipleGalleriesResponse(BaseModel):
    event_galleries: Dict[str, EventGallery]
