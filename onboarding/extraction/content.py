"""Turn uploaded bytes into the text the model stages work on."""

import io
import re
from dataclasses import dataclass

import pdfplumber
import structlog

from onboarding.pipeline.errors import ContentError

logger = structlog.get_logger(__name__)

TEXT_MIME_TYPES = frozenset({
    "text/plain",
    "text/markdown",
    "text/vtt",
    "text/csv",
    "application/json",
})
PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True)
class LoadedContent:
    """Text extracted from an upload."""

    text: str
    filename: str
    mime_type: str
    page_count: int | None = None

    @property
    def char_count(self) -> int:
        return len(self.text)


def _clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _extract_pdf_text(data: bytes) -> tuple[str, int]:
    pages: list[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n".join(pages), len(pages)


def load_content(data: bytes, filename: str, mime_type: str) -> LoadedContent:
    """Extract text from an uploaded file.

    Args:
        data: Raw file bytes.
        filename: Original filename.
        mime_type: Declared MIME type.

    Returns:
        LoadedContent with normalized text.

    Raises:
        ContentError: If the type is unsupported, extraction fails or no text remains.
    """
    page_count = None

    if mime_type == PDF_MIME_TYPE:
        try:
            text, page_count = _extract_pdf_text(data)
        except Exception as e:
            logger.error("pdf_extraction_failed", filename=filename, error=str(e))
            raise ContentError(f"Could not read PDF '{filename}': {e}") from e
    elif mime_type in TEXT_MIME_TYPES or mime_type.startswith("text/"):
        text = data.decode("utf-8", errors="replace")
    else:
        raise ContentError(f"Unsupported content type: {mime_type}")

    text = _clean_text(text)
    if not text:
        raise ContentError(f"No text content found in '{filename}'")

    logger.info(
        "content_loaded",
        filename=filename,
        mime_type=mime_type,
        chars=len(text),
        pages=page_count,
    )
    return LoadedContent(text=text, filename=filename, mime_type=mime_type, page_count=page_count)
