import logging
from pathlib import Path
from typing import Sequence

import fitz  # PyMuPDF
from PIL import Image

from fileshrink.uploads import FileKind, UploadedFile

logger = logging.getLogger(__name__)

MERGEABLE_IMAGE_FORMATS = {"JPEG", "PNG"}


class MergeError(RuntimeError):
    pass


def is_mergeable(rec: UploadedFile) -> bool:
    if rec.kind is FileKind.DOCUMENT:
        return True
    return rec.kind is FileKind.IMAGE and rec.image_format in MERGEABLE_IMAGE_FORMATS


def _append_document(out: fitz.Document, rec: UploadedFile) -> None:
    src = fitz.open(str(rec.path), filetype="pdf")
    try:
        if src.needs_pass:
            raise MergeError(f"{rec.original_name} is password protected")
        if src.page_count == 0:
            raise MergeError(f"{rec.original_name} has no pages")
        out.insert_pdf(src)
    finally:
        src.close()


def _append_image(out: fitz.Document, rec: UploadedFile) -> None:
    # one point per pixel, so the page is exactly the image size
    with Image.open(rec.path) as img:
        width, height = img.size

    page = out.new_page(width=width, height=height)
    page.insert_image(page.rect, filename=str(rec.path))


def merge_to_pdf(files: Sequence[UploadedFile], out_pdf: Path) -> int:
    """
    Builds one PDF from documents and images, in the order given.

    Documents contribute all their pages; each image becomes a page of its
    own pixel size with the image covering it. Any failure aborts the whole
    merge and nothing is written. Returns the page count of the result.
    """
    if not files:
        raise MergeError("Nothing to merge")

    out = fitz.open()
    try:
        for rec in files:
            try:
                if rec.kind is FileKind.DOCUMENT:
                    _append_document(out, rec)
                elif rec.kind is FileKind.IMAGE and rec.image_format in MERGEABLE_IMAGE_FORMATS:
                    _append_image(out, rec)
                else:
                    raise MergeError(f"Unsupported file type: {rec.original_name}")
            except MergeError:
                raise
            except Exception as e:
                logger.error("merge failed on %s: %s", rec.original_name, e)
                raise MergeError(f"Could not read {rec.original_name}") from e

        page_count = out.page_count
        if page_count == 0:
            raise MergeError("Merged document has no pages")

        out_pdf.parent.mkdir(parents=True, exist_ok=True)
        out.save(str(out_pdf), garbage=3, deflate=True)
    finally:
        out.close()

    logger.info("merged %d file(s) into %d page(s)", len(files), page_count)
    return page_count
