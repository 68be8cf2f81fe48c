from enum import Enum
from typing import Dict, Optional


class Quality(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


DEFAULT_QUALITY = Quality.MEDIUM


def parse_quality(value: Optional[str]) -> Quality:
    """Anything missing or unrecognized falls back to medium."""
    try:
        return Quality((value or "").strip().lower())
    except ValueError:
        return DEFAULT_QUALITY


# Ghostscript -dPDFSETTINGS profiles
PDF_PRESETS: Dict[Quality, str] = {
    Quality.SMALL: "/screen",   # max compression, ~72 dpi
    Quality.MEDIUM: "/ebook",   # ~150 dpi
    Quality.LARGE: "/printer",  # ~300 dpi
}

# libx264 constant rate factor, lower is better
VIDEO_CRF: Dict[Quality, int] = {
    Quality.SMALL: 28,
    Quality.MEDIUM: 23,
    Quality.LARGE: 18,
}

AUDIO_BITRATE: Dict[Quality, str] = {
    Quality.SMALL: "64k",
    Quality.MEDIUM: "128k",
    Quality.LARGE: "192k",
}

EXTRACT_AUDIO_BITRATE: Dict[Quality, str] = {
    Quality.SMALL: "96k",
    Quality.MEDIUM: "192k",
    Quality.LARGE: "320k",
}

IMAGE_QUALITY: Dict[Quality, int] = {
    Quality.SMALL: 50,
    Quality.MEDIUM: 80,
    Quality.LARGE: 95,
}

# GIF and PNG have no lossy quality knob, so the palette size is reduced instead
PALETTE_COLORS: Dict[Quality, int] = {
    Quality.SMALL: 64,
    Quality.MEDIUM: 128,
    Quality.LARGE: 256,
}


def pdf_preset(quality: Quality) -> str:
    return PDF_PRESETS[quality]


def video_crf(quality: Quality) -> int:
    return VIDEO_CRF[quality]


def audio_bitrate(quality: Quality) -> str:
    return AUDIO_BITRATE[quality]


def extract_audio_bitrate(quality: Quality) -> str:
    return EXTRACT_AUDIO_BITRATE[quality]


def image_quality(quality: Quality) -> int:
    return IMAGE_QUALITY[quality]


def palette_colors(quality: Quality) -> int:
    return PALETTE_COLORS[quality]
