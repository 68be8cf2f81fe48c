import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


# ----------------------------
# Paths
# ----------------------------
BASE_DIR = Path(__file__).resolve().parent  # .../fileshrink
STATIC_DIR = BASE_DIR / "static"

PROJECT_ROOT = BASE_DIR.parent  # repo root
UPLOAD_DIR = Path(os.environ.get("UPLOAD_DIR", str(PROJECT_ROOT / "uploads")))
OUTPUT_DIR = Path(os.environ.get("OUTPUT_DIR", str(PROJECT_ROOT / "outputs")))
DATA_DIR = Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT / "data")))
STATS_FILE = Path(os.environ.get("STATS_FILE", str(DATA_DIR / "stats.json")))

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
DATA_DIR.mkdir(parents=True, exist_ok=True)


# ----------------------------
# Limits
# ----------------------------
# videos are the heavy case here, so the default is well above a PDF-only tool
MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "200"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

MAX_MERGE_FILES = int(os.environ.get("MAX_MERGE_FILES", "20"))


# ----------------------------
# External tools
# ----------------------------
GS_BINARY = os.environ.get("GS_BINARY") or ("gswin64c" if sys.platform == "win32" else "gs")
FFMPEG_BINARY = os.environ.get("FFMPEG_BINARY", "ffmpeg")

# Kept for the hosted conversion service; nothing calls it.
CLOUDCONVERT_API_KEY = os.environ.get("CLOUDCONVERT_API_KEY", "")


# ----------------------------
# HTTP / logging
# ----------------------------
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
