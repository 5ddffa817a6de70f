# config/settings.py
"""
Configuration settings for the compression bot and web server
"""
import os

API_ID = os.getenv("API_ID")
API_HASH = os.getenv("API_HASH")
BOT_TOKEN = os.getenv("BOT_TOKEN")

# Gemini image analysis
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# Health check / HTTP endpoint
WEB_HOST = os.getenv("WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.getenv("WEB_PORT", "5018"))

# Base directories
BASE_DIR = os.getenv("DATA_DIR", os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
DOWNLOADS_DIR = os.path.join(BASE_DIR, "Downloads")
COMPRESS_DIR = os.path.join(DOWNLOADS_DIR, "Compress")

# Create necessary directories
os.makedirs(DOWNLOADS_DIR, exist_ok=True)
os.makedirs(COMPRESS_DIR, exist_ok=True)

# Configure allowed file types
ALLOWED_IMAGE_TYPES = ['jpeg', 'jpg', 'png', 'webp', 'gif', 'bmp', 'tiff']

# Configure maximum file sizes (in bytes)
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB

# Configure timeout settings (in seconds)
OPERATION_TIMEOUT = 300  # 5 minutes

# Target size search
DEFAULT_TARGET_KB = 50
MAX_DIMENSION = 1920  # longer side cap applied before the search
MIN_WIDTH = 100  # dimension floor for the shrink fallback
BISECTION_ITERATIONS = 10
FALLBACK_PROBE_QUALITY = 0.1
FALLBACK_RESIZE_QUALITY = 0.7
SHRINK_FACTOR = 0.9

# Output format
OUTPUT_FORMAT = "JPEG"
OUTPUT_MEDIA_TYPE = "image/jpeg"
OUTPUT_SUFFIX = "-compressed.jpeg"

# Configure logging
LOG_DIR = os.path.join(BASE_DIR, "logs")
os.makedirs(LOG_DIR, exist_ok=True)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
