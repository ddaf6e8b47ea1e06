"""
Rate limiting middleware for FastAPI using slowapi.
Protects the image store from upload bursts and API abuse.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

# Initialize the shared limiter (will be attached to app.state in main.py)
limiter = Limiter(key_func=get_remote_address)

# Rate limit configurations for different endpoints
RATE_LIMIT_GALLERY_UPLOAD = "20/minute"  # 20 gallery uploads per minute per IP
RATE_LIMIT_GENERAL = "100/minute"  # General API rate limit
