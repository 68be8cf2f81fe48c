import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from fastapi import HTTPException, UploadFile

from fileshrink import config

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB chunks

DOCUMENT_MIME = {"application/pdf", "application/x-pdf"}
DOCUMENT_EXT = {".pdf"}

IMAGE_MIME = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}
IMAGE_EXT = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".webp": "WEBP",
    ".gif": "GIF",
}


class FileKind(str, Enum):
    DOCUMENT = "document"
    IMAGE = "image"
    OTHER = "other"


@dataclass(frozen=True)
class UploadedFile:
    path: Path
    original_name: str
    content_type: str
    size: int
    kind: FileKind
    image_format: Optional[str] = None  # set only for FileKind.IMAGE

    @property
    def stem(self) -> str:
        return Path(self.original_name).stem


def resolve_kind(content_type: Optional[str], filename: Optional[str]) -> Tuple[FileKind, Optional[str]]:
    """
    Returns (kind, image_format). The declared MIME type wins; the filename
    suffix is only consulted when the MIME type tells us nothing.
    """
    ctype = (content_type or "").split(";", 1)[0].strip().lower()
    ext = Path(filename or "").suffix.lower()

    if ctype in DOCUMENT_MIME:
        return FileKind.DOCUMENT, None
    if ctype in IMAGE_MIME:
        return FileKind.IMAGE, IMAGE_MIME[ctype]
    if ctype and ctype != "application/octet-stream":
        return FileKind.OTHER, None

    if ext in DOCUMENT_EXT:
        return FileKind.DOCUMENT, None
    if ext in IMAGE_EXT:
        return FileKind.IMAGE, IMAGE_EXT[ext]
    return FileKind.OTHER, None


def unique_name(filename: Optional[str]) -> str:
    ext = Path(filename or "").suffix.lower()
    if not ext[1:].isalnum():
        ext = ""
    return f"{uuid.uuid4().hex}{ext}"


def download_name(original_name: str, prefix: str = "", suffix: Optional[str] = None) -> str:
    p = Path(original_name or "output")
    stem = "".join(c for c in p.stem if c.isalnum() or c in ("-", "_", " ", ".")).strip() or "output"
    ext = suffix if suffix is not None else p.suffix.lower()
    return f"{prefix}{stem}{ext}"


def remove_paths(*paths: Optional[Path]) -> None:
    for p in paths:
        if p is None:
            continue
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("could not remove %s: %s", p, e)


# ----------------------------
# Upload limit helpers
# ----------------------------
def _http_413(msg: str):
    raise HTTPException(status_code=413, detail=msg)


async def save_upload_limited(file: UploadFile, dst: Path, max_bytes: int) -> int:
    """
    Streams UploadFile to disk and enforces max size while writing.
    Returns written byte count. The partial file is removed on any failure.
    """
    dst.parent.mkdir(parents=True, exist_ok=True)

    total = 0
    too_large = False
    try:
        with dst.open("wb") as out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    too_large = True
                    break
                out.write(chunk)
    except BaseException:
        remove_paths(dst)
        raise
    finally:
        await file.close()

    if too_large:
        remove_paths(dst)
        _http_413(f"File too large. Max allowed is {config.MAX_UPLOAD_MB}MB.")

    return total


async def receive_upload(file: Optional[UploadFile], upload_dir: Path, max_bytes: int) -> UploadedFile:
    if file is None or not file.filename:
        raise HTTPException(400, "No file uploaded")

    dst = upload_dir / unique_name(file.filename)
    size = await save_upload_limited(file, dst, max_bytes)
    kind, image_format = resolve_kind(file.content_type, file.filename)

    logger.debug("received %s as %s (%d bytes, %s)", file.filename, dst.name, size, kind.value)
    return UploadedFile(
        path=dst,
        original_name=file.filename,
        content_type=file.content_type or "",
        size=size,
        kind=kind,
        image_format=image_format,
    )


async def receive_uploads(
    files: Optional[Sequence[UploadFile]],
    upload_dir: Path,
    max_bytes: int,
    max_count: int,
) -> List[UploadedFile]:
    """
    Saves several uploads in the order given, sharing one byte budget.
    If any file fails, the ones already written are removed.
    """
    named = [f for f in (files or []) if f is not None and f.filename]
    if not named:
        raise HTTPException(400, "No files uploaded")
    if len(named) > max_count:
        raise HTTPException(400, f"Too many files. Max allowed is {max_count}.")

    saved: List[UploadedFile] = []
    total_written = 0
    try:
        for f in named:
            remaining = max(0, max_bytes - total_written)
            if remaining <= 0:
                _http_413(f"Total upload too large. Max allowed is {config.MAX_UPLOAD_MB}MB.")
            rec = await receive_upload(f, upload_dir, remaining)
            total_written += rec.size
            saved.append(rec)
    except BaseException:
        remove_paths(*(r.path for r in saved))
        raise

    return saved
