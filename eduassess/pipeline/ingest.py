"""Uploaded document ingestion.

Turns one uploaded file into either plain text or a base64 binary payload.
The variant is chosen from the declared MIME type only; the bytes are never
sniffed.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from dataclasses import dataclass

from docx import Document
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from fastapi import UploadFile

from eduassess.schemas import BinaryPayload, IngestedDocument, TextPayload

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

WORD_EXTRACTION_ERROR_MESSAGE = "Word faylni o'qishda xatolik yuz berdi."


@dataclass
class DocumentExtractionError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


def normalize_mime_type(content_type: str | None) -> str:
    """Drop parameters such as ``; charset=utf-8`` and lowercase the type."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def decode_text(data: bytes) -> str:
    # Undecodable bytes become U+FFFD instead of failing the upload.
    return data.decode("utf-8-sig", errors="replace")


def _docx_lines(document) -> list[str]:
    lines: list[str] = []
    for element in document.element.body.iterchildren():
        if element.tag == qn("w:p"):
            text = Paragraph(element, document).text
            if text.strip():
                lines.append(text)
        elif element.tag == qn("w:tbl"):
            for row in Table(element, document).rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    lines.append(" | ".join(cells))
    return lines


def extract_docx_text(data: bytes) -> str:
    """Return the text of a .docx in document order.

    Paragraphs become one line each; table rows become one line with the
    non-empty cells joined by `` | ``. Any failure while opening or walking
    the document raises ``DocumentExtractionError``.
    """
    try:
        document = Document(io.BytesIO(data))
        lines = _docx_lines(document)
    except Exception as exc:
        raise DocumentExtractionError(WORD_EXTRACTION_ERROR_MESSAGE) from exc
    return "\n".join(lines)


async def ingest(upload: UploadFile) -> IngestedDocument:
    mime_type = normalize_mime_type(upload.content_type)
    data = await upload.read()
    logger.info(
        "ingest upload read",
        extra={"stage": "ingest", "upload_filename": upload.filename, "mime_type": mime_type, "size_bytes": len(data)},
    )

    if mime_type == PDF_MIME_TYPE:
        return BinaryPayload(data=base64.b64encode(data).decode("ascii"), mime_type=PDF_MIME_TYPE)

    if mime_type == DOCX_MIME_TYPE:
        content = await asyncio.to_thread(extract_docx_text, data)
        return TextPayload(content=content)

    if not mime_type.startswith("text/"):
        logger.warning(
            "ingest fallback text decode for unsupported type",
            extra={"stage": "ingest", "upload_filename": upload.filename, "mime_type": mime_type},
        )
    return TextPayload(content=decode_text(data))
