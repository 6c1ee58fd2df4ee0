"""
Configuration for the storm damage report system.

All limits, layout constants, and delivery settings in one place.
Change here, not in business logic modules.
"""

import os

# --- Photo Store ---

MAX_PHOTOS: int = 100
MAX_PHOTO_SIZE_MB: float = 10.0
MAX_PHOTO_SIZE_BYTES: int = int(MAX_PHOTO_SIZE_MB * 1024 * 1024)
ALLOWED_MEDIA_PREFIX: str = "image/"

# --- Ingestion ---

# Progress reported after each ingestion stage (read, decode, measure).
INGEST_PROGRESS_STEPS: tuple[int, ...] = (25, 60, 90)
PROGRESS_COMPLETE: int = 100

# --- Report Assembly ---

DEFAULT_REPORT_NAME: str = "Storm Damage Report"
REPORT_NAME_SUFFIX: str = "Damage Report"
PHOTOS_PER_PAGE: int = 6
GRID_COLUMNS: int = 2

# --- Imaging ---

PREVIEW_MAX_EDGE: int = 1024
PREVIEW_JPEG_QUALITY: int = 75
FULL_JPEG_QUALITY: int = 95

# --- Export ---

REPORT_CONTENT_TYPE: str = "application/pdf"
REPORT_SENDER_EMAIL: str = os.environ.get("REPORT_SENDER_EMAIL", "reports@example.com")
AWS_REGION: str = os.environ.get("AWS_REGION", "us-east-1")

# --- Logging ---

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.environ.get("LOG_FORMAT", "console")
