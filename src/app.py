"""Snapgram Service - FastAPI server for the photo-sharing app."""

import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.auth.database import init_db
from src.shared.auth.routes import router as auth_router
from src.shared.users.routes import router as users_router
from src.shared.social.routes import posts_router, comments_router, likes_router, follows_router
from src.shared.chat.routes import router as chat_router
from src.shared.notifications.routes import router as notifications_router
from src.shared.realtime.routes import router as realtime_router
from src.shared.social.image_utils import get_upload_root

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

app = FastAPI(
    title="Snapgram Service",
    description="Photo sharing backend: posts, follows, notifications and direct messages",
    version="0.1.0"
)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    try:
        init_db()
        logging.info(f"Database initialization completed on startup ({ENVIRONMENT})")
    except Exception as e:
        # Log error but don't crash the app
        logging.error(f"Database initialization error on startup: {str(e)}", exc_info=True)


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(posts_router)
app.include_router(comments_router)
app.include_router(likes_router)
app.include_router(follows_router)
app.include_router(chat_router)
app.include_router(notifications_router)
app.include_router(realtime_router)

# Stored post and profile images
UPLOAD_DIR = get_upload_root()
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# CORS configuration - must be added before exception handlers
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


def cors_headers(request: Request) -> dict:
    """CORS headers for error responses, which bypass the middleware."""
    headers = {}
    origin = request.headers.get("origin")
    if origin in CORS_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Access-Control-Allow-Methods"] = "*"
        headers["Access-Control-Allow-Headers"] = "*"
    return headers


# Global exception handlers to ensure CORS headers are always added
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure CORS headers are added to FastAPI HTTP exceptions."""
    headers = cors_headers(request)
    headers.update(exc.headers or {})

    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    elif isinstance(exc.detail, str):
        content = {"detail": exc.detail}
    else:
        content = {"detail": str(exc.detail)}

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=headers
    )


@app.exception_handler(StarletteHTTPException)
async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Ensure CORS headers are added to Starlette HTTP exceptions."""
    headers = cors_headers(request)
    headers.update(exc.headers or {})

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail} if isinstance(exc.detail, (str, dict)) else {"detail": str(exc.detail)},
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Ensure CORS headers are added to validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors())},
        headers=cors_headers(request)
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Ensure CORS headers are added to all exceptions."""
    logging.error(f"Unhandled exception: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=cors_headers(request)
    )


@app.get("/")
async def root():
    return {"message": "Snapgram Service API is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
