from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from controllers import home_controller, event_controller, gallery_controller
from fastapi.middleware.cors import CORSMiddleware
from database import create_indexes
from middleware.rate_limiter import limiter
from slowapi.errors import RateLimitExceeded as SlowAPIRateLimitExceeded
from utils.logger import setup_logging
from utils.exceptions import (
    APIException,
    api_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    invalid_id_handler,
    general_exception_handler
)
from bson.errors import InvalidId
import os

# Setup logging
logger = setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database indexes on application startup"""
    logger.info("Starting application...")
    await create_indexes()
    logger.info("Application started successfully")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    lifespan=lifespan,
    title="Campus Events API",
    description="API for college events and their photo galleries",
    version="1.0.0"
)

# Add rate limiter to app state (will be used by all route limiters)
app.state.limiter = limiter

# Register exception handlers
app.add_exception_handler(APIException, api_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(InvalidId, invalid_id_handler)
app.add_exception_handler(Exception, general_exception_handler)


# Rate limit exception handler
@app.exception_handler(SlowAPIRateLimitExceeded)
async def rate_limit_handler(request: Request, exc: SlowAPIRateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.
    Returns a JSON response with 429 status code.
    """
    logger.warning(f"Rate limit exceeded for IP: {request.client.host}")
    response = JSONResponse(
        status_code=429,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}. Please try again later.",
            "error_code": "RATE_LIMIT_EXCEEDED",
            "status_code": 429
        }
    )
    response = request.app.state.limiter._inject_headers(
        response, request.state.view_rate_limit
    )
    return response

prefix = "/api/campus"

# Allow the React dev server origin
origins = [
    "http://localhost:5173",  # React Vite dev server
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with prefix
app.include_router(home_controller.router, prefix=prefix)
app.include_router(event_controller.router, prefix=prefix)
app.include_router(gallery_controller.router, prefix=prefix)
