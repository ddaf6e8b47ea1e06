from fastapi import APIRouter, UploadFile, File, Request
from bson import ObjectId
from datetime import datetime
import uuid
from typing import List

from database import events_collection
from models.event import (
    GalleryImage,
    GalleryResponse,
    GalleryUploadResponse,
    CaptionUpdateRequest,
    CaptionUpdateResponse,
    MultipleGalleriesRequest,
    MultipleGalleriesResponse,
    EventGallery,
)
from middleware.rate_limiter import limiter, RATE_LIMIT_GALLERY_UPLOAD
from utils.cloudinary_config import (
    upload_image_to_cloudinary,
    delete_image_from_cloudinary,
    gallery_folder,
)
from utils.exceptions import NotFoundException, ValidationException, UploadFailedException
from constants import MAX_GALLERY_UPLOADS_PER_REQUEST, MAX_GALLERY_IMAGE_BYTES, GALLERY_UPLOADED_BY
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/event", tags=["gallery"])


async def _find_event(event_id: str) -> dict:
    event = await events_collection.find_one({"_id": ObjectId(event_id)})
    if not event:
        raise NotFoundException("Event", event_id)
    return event


def _find_image(gallery_images: list, image_id: str) -> dict:
    for image in gallery_images:
        if image.get("image_id") == image_id or image.get("public_id") == image_id:
            return image
    raise NotFoundException("Gallery image", image_id)


# -------------------
# GET EVENT GALLERY
# -------------------
@router.get("/{event_id}/gallery", response_model=GalleryResponse)
async def get_gallery(event_id: str) -> GalleryResponse:
    event = await _find_event(event_id)
    return GalleryResponse(
        gallery_images=[GalleryImage(**image) for image in event.get("gallery_images") or []],
        event_title=event.get("title", "")
    )


# -------------------
# UPLOAD GALLERY IMAGES
# -------------------
@router.post("/{event_id}/gallery", response_model=GalleryUploadResponse)
@limiter.limit(RATE_LIMIT_GALLERY_UPLOAD)
async def upload_gallery_images(
        request: Request,
        event_id: str,
        images: List[UploadFile] = File([])
) -> GalleryUploadResponse:
    if not images:
        raise ValidationException("No images provided")
    if len(images) > MAX_GALLERY_UPLOADS_PER_REQUEST:
        raise ValidationException(f"At most {MAX_GALLERY_UPLOADS_PER_REQUEST} images per upload")
    for image in images:
        if not (image.content_type or "").startswith("image/"):
            raise ValidationException("Only image files are allowed", errors={image.filename: image.content_type})

    event = await _find_event(event_id)
    # Captions arrive as caption_<index> fields next to the files
    form = await request.form()
    folder = gallery_folder(event.get("title", ""), event_id)

    uploaded = []
    for index, image in enumerate(images):
        try:
            image_data = await image.read()
            if len(image_data) > MAX_GALLERY_IMAGE_BYTES:
                logger.warning(f"Skipping {image.filename}: larger than {MAX_GALLERY_IMAGE_BYTES} bytes")
                continue

            result = upload_image_to_cloudinary(
                image_data=image_data,
                folder=folder,
                public_id=f"{uuid.uuid4()}"
            )
        except Exception as e:
            # Cloudinary upload failed - skip this image
            logger.warning(f"Cloudinary upload failed for {image.filename}: {e}")
            continue

        uploaded.append({
            "image_id": uuid.uuid4().hex,
            "public_id": result["public_id"],
            "url": result["secure_url"],
            "caption": str(form.get(f"caption_{index}") or "").strip(),
            "uploaded_at": datetime.utcnow(),
            "uploaded_by": GALLERY_UPLOADED_BY,
        })

    if not uploaded:
        raise UploadFailedException()

    result = await events_collection.update_one(
        {"_id": ObjectId(event_id)},
        {"$push": {"gallery_images": {"$each": uploaded}}}
    )
    if result.matched_count == 0:
        raise NotFoundException("Event", event_id)
    logger.info(f"Uploaded {len(uploaded)}/{len(images)} gallery images for event {event_id}")

    return GalleryUploadResponse(
        message="Gallery images uploaded successfully",
        gallery_images=[GalleryImage(**image) for image in uploaded]
    )


# -------------------
# DELETE GALLERY IMAGE
# -------------------
@router.delete("/{event_id}/gallery/{image_id:path}")
async def delete_gallery_image(event_id: str, image_id: str) -> dict[str, str]:
    event = await _find_event(event_id)
    image = _find_image(event.get("gallery_images") or [], image_id)

    await events_collection.update_one(
        {"_id": ObjectId(event_id)},
        {"$pull": {"gallery_images": {"public_id": image["public_id"]}}}
    )

    try:
        delete_image_from_cloudinary(image["public_id"])
    except Exception as e:
        # The database entry is already gone; a leftover asset is only logged
        logger.warning(f"Failed to delete {image['public_id']} from Cloudinary: {e}")

    return {"message": "Gallery image deleted successfully"}


# -------------------
# UPDATE GALLERY IMAGE CAPTION
# -------------------
@router.patch("/{event_id}/gallery/{image_id:path}", response_model=CaptionUpdateResponse)
async def update_gallery_caption(
        event_id: str,
        image_id: str,
        request: CaptionUpdateRequest
) -> CaptionUpdateResponse:
    event = await _find_event(event_id)
    image = _find_image(event.get("gallery_images") or [], image_id)
    caption = (request.caption or "").strip()

    result = await events_collection.update_one(
        {"_id": ObjectId(event_id), "gallery_images.public_id": image["public_id"]},
        {"$set": {"gallery_images.$.caption": caption}}
    )
    if result.matched_count == 0:
        # Deleted between the lookup and the update
        raise NotFoundException("Gallery image", image_id)

    return CaptionUpdateResponse(
        message="Gallery image caption updated successfully",
        image=GalleryImage(**{**image, "caption": caption})
    )


# ---------------------------
# GET GALLERIES FOR MANY EVENTS
# ---------------------------
@router.post("/galleries/multiple", response_model=MultipleGalleriesResponse)
async def multiple_galleries(request: MultipleGalleriesRequest) -> MultipleGalleriesResponse:
    event_oids = [ObjectId(event_id) for event_id in request.event_ids]

    event_galleries = {}
    async for event in events_collection.find({"_id": {"$in": event_oids}}):
        event_galleries[str(event["_id"])] = EventGallery(
            title=event.get("title", ""),
            gallery_images=[GalleryImage(**image) for image in event.get("gallery_images") or []]
        )
    return MultipleGalleriesResponse(event_galleries=event_galleries)
