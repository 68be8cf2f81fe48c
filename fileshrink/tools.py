import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from PIL import Image, ImageSequence

from fileshrink import config
from fileshrink.quality import (
    Quality,
    audio_bitrate,
    extract_audio_bitrate,
    image_quality,
    palette_colors,
    pdf_preset,
    video_crf,
)

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000


class ToolError(RuntimeError):
    """An external tool failed or produced nothing."""

    def __init__(self, tool: str, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr


def _tail(text: Optional[str]) -> str:
    text = (text or "").strip()
    return text[-STDERR_TAIL_CHARS:]


def _run(tool: str, cmd: List[str]) -> None:
    logger.debug("running %s: %s", tool, " ".join(cmd))
    try:
        p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, errors="replace")
    except FileNotFoundError as e:
        logger.error("%s binary not found: %s", tool, cmd[0])
        raise ToolError(tool, f"{cmd[0]} not found. Is {tool} installed?") from e

    if p.returncode != 0:
        tail = _tail(p.stderr or p.stdout)
        logger.error("%s exited with %d: %s", tool, p.returncode, tail)
        raise ToolError(tool, tail or f"{tool} failed", returncode=p.returncode, stderr=tail)


def _ensure_output(tool: str, out: Path) -> Path:
    if not out.exists() or out.stat().st_size == 0:
        raise ToolError(tool, f"{tool} produced no output")
    return out


# ----------------------------
# Ghostscript
# ----------------------------
def compress_pdf(input_pdf: Path, out_pdf: Path, quality: Quality) -> Path:
    input_pdf = input_pdf.resolve()
    out_pdf = out_pdf.resolve()
    out_pdf.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        config.GS_BINARY,
        "-sDEVICE=pdfwrite",
        "-dCompatibilityLevel=1.4",
        f"-dPDFSETTINGS={pdf_preset(quality)}",
        "-dNOPAUSE",
        "-dBATCH",
        "-dQUIET",
        f"-sOutputFile={str(out_pdf)}",
        str(input_pdf),
    ]
    _run("ghostscript", cmd)
    return _ensure_output("ghostscript", out_pdf)


# ----------------------------
# FFmpeg
# ----------------------------
def _ffmpeg(*args: str) -> List[str]:
    return [config.FFMPEG_BINARY, "-y", "-hide_banner", "-loglevel", "error", *args]


def compress_video(input_path: Path, out_path: Path, quality: Quality) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = _ffmpeg(
        "-i", str(input_path),
        "-vcodec", "libx264",
        "-crf", str(video_crf(quality)),
        "-preset", "fast",
        str(out_path),
    )
    _run("ffmpeg", cmd)
    return _ensure_output("ffmpeg", out_path)


def compress_audio(input_path: Path, out_path: Path, quality: Quality) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = _ffmpeg(
        "-i", str(input_path),
        "-vn",
        "-acodec", "libmp3lame",
        "-b:a", audio_bitrate(quality),
        str(out_path),
    )
    _run("ffmpeg", cmd)
    return _ensure_output("ffmpeg", out_path)


def extract_audio(input_path: Path, out_path: Path, quality: Quality) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = _ffmpeg(
        "-i", str(input_path),
        "-vn",
        "-f", "mp3",
        "-acodec", "libmp3lame",
        "-b:a", extract_audio_bitrate(quality),
        str(out_path),
    )
    _run("ffmpeg", cmd)
    return _ensure_output("ffmpeg", out_path)


# ----------------------------
# Pillow
# ----------------------------
def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _quantize(img: Image.Image, colors: int) -> Image.Image:
    """Palette-reduces an image. Transparent pixels stay transparent."""
    if not _has_alpha(img):
        return img.convert("RGB").quantize(colors=colors)

    # only the octree quantizers accept RGBA
    out = img.convert("RGBA").quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
    alpha = out.getpalette("RGBA")[3::4]
    if 0 in alpha:
        out.info["transparency"] = alpha.index(0)
    return out


def _save_gif(img: Image.Image, out_path: Path, colors: int) -> None:
    frames = []
    durations = []
    for frame in ImageSequence.Iterator(img):
        durations.append(frame.info.get("duration", img.info.get("duration", 100)))
        frames.append(_quantize(frame, colors))

    first, rest = frames[0], frames[1:]
    if rest:
        first.save(
            out_path,
            format="GIF",
            save_all=True,
            append_images=rest,
            duration=durations,
            loop=img.info.get("loop", 0),
            optimize=True,
        )
    else:
        first.save(out_path, format="GIF", optimize=True)


def compress_image(input_path: Path, out_path: Path, image_format: str, quality: Quality) -> Path:
    """
    Re-encodes an image in its own format. JPEG and WEBP take the codec
    quality. PNG and GIF are re-quantized to a palette sized by the tier,
    keeping transparency.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with Image.open(input_path) as img:
            if image_format == "JPEG":
                if img.mode not in ("RGB", "L", "CMYK"):
                    img = img.convert("RGB")
                img.save(out_path, format="JPEG", quality=image_quality(quality), optimize=True, progressive=True)
            elif image_format == "WEBP":
                animated = getattr(img, "is_animated", False)
                img.save(out_path, format="WEBP", quality=image_quality(quality), save_all=animated)
            elif image_format == "PNG":
                _quantize(img, palette_colors(quality)).save(out_path, format="PNG", optimize=True)
            elif image_format == "GIF":
                _save_gif(img, out_path, palette_colors(quality))
            else:
                raise ToolError("pillow", f"Unsupported image format: {image_format}")
    except (OSError, ValueError) as e:
        logger.error("image compression failed for %s: %s", input_path.name, e)
        raise ToolError("pillow", f"Image compression failed: {e}") from e

    return _ensure_output("pillow", out_path)
