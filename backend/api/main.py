"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import covers
from services.cover_resources import register_heif_opener
from settings import settings

logger = logging.getLogger(__name__)

# Register HEIF/HEIC opener at startup (for iPhone photos)
heif_available = register_heif_opener()


# Create app
app = FastAPI(
    title="Book Cover Studio API",
    description="API for rendering print-ready book covers",
    version="0.1.0",
)

# CORS middleware for the editor frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(covers.router, prefix="/covers", tags=["covers"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Book Cover Studio API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "heif": heif_available,
        "export_dpi": settings.COVER_EXPORT_DPI,
    }
