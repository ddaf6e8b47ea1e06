"""
Cloudinary configuration and utilities for event gallery images
"""
import os
import re
import cloudinary
import cloudinary.uploader
from dotenv import load_dotenv

load_dotenv()

# Cloudinary configuration
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

# Configure Cloudinary
cloudinary.config(
    cloud_name=CLOUDINARY_CLOUD_NAME,
    api_key=CLOUDINARY_API_KEY,
    api_secret=CLOUDINARY_API_SECRET,
    secure=True
)


def _ensure_configured():
    if not all([CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET]):
        raise Exception("Cloudinary credentials not configured. Please set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, and CLOUDINARY_API_SECRET in .env file")


def gallery_folder(event_title: str, event_id: str) -> str:
    """
    Cloudinary folder holding an event's gallery, e.g. "events/Tech_Fest_2024_<id>/gallery"
    """
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", event_title or "")
    return f"events/{safe_title}_{event_id}/gallery"


def upload_image_to_cloudinary(image_data: bytes, folder: str, public_id: str = None) -> dict:
    """
    Upload an image to Cloudinary

    Args:
        image_data: Image file bytes
        folder: Cloudinary folder name
        public_id: Optional public ID for the image

    Returns:
        dict: Cloudinary upload result with 'secure_url', 'public_id' and other metadata

    Raises:
        Exception: If upload fails or Cloudinary is not configured
    """
    _ensure_configured()

    try:
        result = cloudinary.uploader.upload(
            image_data,
            folder=folder,
            public_id=public_id,
            resource_type="image",
            overwrite=False,
            invalidate=True
        )
        return result
    except Exception as e:
        raise Exception(f"Failed to upload image to Cloudinary: {str(e)}")


def delete_image_from_cloudinary(public_id: str) -> dict:
    """
    Delete an image from Cloudinary by its public ID

    Raises:
        Exception: If deletion fails or Cloudinary is not configured
    """
    _ensure_configured()

    try:
        result = cloudinary.uploader.destroy(public_id, resource_type="image", invalidate=True)
    except Exception as e:
        raise Exception(f"Failed to delete image from Cloudinary: {str(e)}")
    if result.get("result") not in ("ok", "not found"):
        raise Exception(f"Cloudinary refused to delete {public_id}: {result}")
    return result

