# fileshrink/main.py
import logging
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from fileshrink import config
from fileshrink.merge import MergeError, is_mergeable, merge_to_pdf
from fileshrink.quality import parse_quality
from fileshrink.tools import ToolError, compress_audio, compress_image, compress_pdf, compress_video, extract_audio
from fileshrink.uploads import (
    FileKind,
    UploadedFile,
    download_name,
    receive_upload,
    receive_uploads,
    remove_paths,
)
from fileshrink.usage import JsonFileUsageStore, UsageStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ----------------------------
# App
# ----------------------------
app = FastAPI(title="FileShrink")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Original-Bytes", "X-Output-Bytes"],
)
app.mount("/static", StaticFiles(directory=str(config.STATIC_DIR)), name="static")

IMAGE_MEDIA_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


# ----------------------------
# Usage store
# ----------------------------
_usage_store = JsonFileUsageStore(config.STATS_FILE)


def get_usage_store() -> UsageStore:
    return _usage_store


# ----------------------------
# Errors
# ----------------------------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid upload request"})


# ----------------------------
# Processing helpers
# ----------------------------
def _output_path(suffix: str) -> Path:
    return config.OUTPUT_DIR / f"{uuid.uuid4().hex}{suffix}"


def _reject(inputs: Sequence[UploadedFile], msg: str):
    remove_paths(*(r.path for r in inputs))
    raise HTTPException(400, msg)


async def _process(
    *,
    tool_id: str,
    inputs: Sequence[UploadedFile],
    out_path: Path,
    work: Callable[[], object],
    filename: str,
    media_type: str,
    usage: UsageStore,
    failure: str,
) -> FileResponse:
    """
    Runs the tool off the event loop, counts the use and streams the result.
    Every temp file goes away after the response is sent, or right away if
    anything fails before that.
    """
    in_paths = [r.path for r in inputs]
    try:
        await run_in_threadpool(work)
        out_bytes = out_path.stat().st_size
        usage.record_use(tool_id)
    except MergeError as e:
        remove_paths(*in_paths, out_path)
        raise HTTPException(500, f"{failure}: {e}")
    except ToolError:
        # stderr tail is already in the log
        remove_paths(*in_paths, out_path)
        raise HTTPException(500, f"{failure}.")
    except Exception:
        logger.exception("%s: unexpected error", tool_id)
        remove_paths(*in_paths, out_path)
        raise HTTPException(500, f"{failure}.")

    orig_bytes = sum(r.size for r in inputs)
    logger.info("%s: %d -> %d bytes", tool_id, orig_bytes, out_bytes)

    return FileResponse(
        path=str(out_path),
        media_type=media_type,
        filename=filename,
        headers={
            "X-Original-Bytes": str(orig_bytes),
            "X-Output-Bytes": str(out_bytes),
        },
        background=BackgroundTask(remove_paths, *in_paths, out_path),
    )


# ----------------------------
# Static HTML serving
# ----------------------------
def serve_static_html(filename: str):
    p = config.STATIC_DIR / filename
    if not p.exists():
        return JSONResponse(status_code=404, content={"error": f"{filename} not found"})
    return FileResponse(str(p), media_type="text/html")


@app.get("/")
def home():
    return serve_static_html("index.html")


@app.get("/stats")
def stats_page():
    return serve_static_html("stats.html")


# ----------------------------
# Health / status
# ----------------------------
@app.get("/health")
def health():
    return {"ok": True, "max_upload_mb": config.MAX_UPLOAD_MB}


@app.get("/api/status")
def status():
    return {"message": "FileShrink server is running", "status": "OK"}


@app.get("/api/stats")
def stats(usage: UsageStore = Depends(get_usage_store)):
    return usage.get_all()


# ----------------------------
# Tool APIs
# ----------------------------
@app.post("/api/compress/pdf")
async def compress_pdf_api(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    usage: UsageStore = Depends(get_usage_store),
):
    q = parse_quality(quality)
    rec = await receive_upload(file, config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES)
    out = _output_path(".pdf")

    return await _process(
        tool_id="pdf",
        inputs=[rec],
        out_path=out,
        work=lambda: compress_pdf(rec.path, out, q),
        filename=download_name(rec.original_name, prefix="compressed-", suffix=".pdf"),
        media_type="application/pdf",
        usage=usage,
        failure="Compression failed",
    )


@app.post("/api/convert/mp4-to-mp3")
async def mp4_to_mp3_api(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    usage: UsageStore = Depends(get_usage_store),
):
    q = parse_quality(quality)
    rec = await receive_upload(file, config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES)
    out = _output_path(".mp3")

    return await _process(
        tool_id="mp4_to_mp3",
        inputs=[rec],
        out_path=out,
        work=lambda: extract_audio(rec.path, out, q),
        filename=download_name(rec.original_name, suffix=".mp3"),
        media_type="audio/mpeg",
        usage=usage,
        failure="Audio extraction failed",
    )


@app.post("/api/compress/image")
async def compress_image_api(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    usage: UsageStore = Depends(get_usage_store),
):
    q = parse_quality(quality)
    rec = await receive_upload(file, config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES)
    if rec.kind is not FileKind.IMAGE:
        _reject([rec], "Supported: JPG, JPEG, PNG, WEBP, GIF")

    out = _output_path(rec.path.suffix)
    return await _process(
        tool_id="image",
        inputs=[rec],
        out_path=out,
        work=lambda: compress_image(rec.path, out, rec.image_format, q),
        filename=download_name(rec.original_name, prefix="compressed-"),
        media_type=IMAGE_MEDIA_TYPES[rec.image_format],
        usage=usage,
        failure="Image compression failed",
    )


@app.post("/api/compress/video")
async def compress_video_api(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    usage: UsageStore = Depends(get_usage_store),
):
    q = parse_quality(quality)
    rec = await receive_upload(file, config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES)
    out = _output_path(".mp4")

    return await _process(
        tool_id="video",
        inputs=[rec],
        out_path=out,
        work=lambda: compress_video(rec.path, out, q),
        filename=download_name(rec.original_name, prefix="compressed-", suffix=".mp4"),
        media_type="video/mp4",
        usage=usage,
        failure="Video compression failed",
    )


@app.post("/api/compress/audio")
async def compress_audio_api(
    file: Optional[UploadFile] = File(None),
    quality: Optional[str] = Form(None),
    usage: UsageStore = Depends(get_usage_store),
):
    q = parse_quality(quality)
    rec = await receive_upload(file, config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES)
    out = _output_path(".mp3")

    return await _process(
        tool_id="audio",
        inputs=[rec],
        out_path=out,
        work=lambda: compress_audio(rec.path, out, q),
        filename=download_name(rec.original_name, prefix="compressed-", suffix=".mp3"),
        media_type="audio/mpeg",
        usage=usage,
        failure="Audio compression failed",
    )


@app.post("/api/merge/pdf")
async def merge_pdf_api(
    files: Optional[List[UploadFile]] = File(None),
    quality: Optional[str] = Form(None),  # accepted for form parity, not used
    usage: UsageStore = Depends(get_usage_store),
):
    recs = await receive_uploads(files, config.UPLOAD_DIR, config.MAX_UPLOAD_BYTES, config.MAX_MERGE_FILES)

    bad = [r.original_name for r in recs if not is_mergeable(r)]
    if bad:
        _reject(recs, f"Only PDF, JPG and PNG can be merged: {', '.join(bad)}")

    out = _output_path(".pdf")
    return await _process(
        tool_id="merge_pdf",
        inputs=recs,
        out_path=out,
        work=lambda: merge_to_pdf(recs, out),
        filename="merged-document.pdf",
        media_type="application/pdf",
        usage=usage,
        failure="Merge failed",
    )
