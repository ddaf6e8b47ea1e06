"""
Application-wide constants.
Centralizes magic numbers and status values for better maintainability.
"""

# Event Status Values (author-set, independent of the event's time)
EVENT_STATUS_DRAFT = "draft"
EVENT_STATUS_PUBLISHED = "published"
EVENT_STATUS_CANCELLED = "cancelled"
EVENT_STATUS_COMPLETED = "completed"
EVENT_STATUSES = (
    EVENT_STATUS_DRAFT,
    EVENT_STATUS_PUBLISHED,
    EVENT_STATUS_CANCELLED,
    EVENT_STATUS_COMPLETED,
)

# Default pagination
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Gallery upload limits
MAX_GALLERY_UPLOADS_PER_REQUEST = 10
MAX_GALLERY_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB
GALLERY_UPLOADED_BY = "admin"

# Gallery preview loading
GALLERY_BATCH_SIZE = 3
GALLERY_BATCH_DELAY_SECONDS = 0.1
GALLERY_PREVIEW_SIZE = 3
GALLERY_MAX_EVENTS = 10

# Gallery count lookups
GALLERY_COUNT_BATCH_SIZE = 5
GALLERY_COUNT_BATCH_DELAY_SECONDS = 0.1

# Upper bound when filtering upcoming/past events in memory
TEMPORAL_FILTER_SCAN_LIMIT = 1000
