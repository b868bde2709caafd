from __future__ import annotations

import logging
from io import BytesIO
from pathlib import PurePath
from typing import Optional, Union

from pypdf import PdfReader

from .errors import TextExtractionError, UnsupportedFileTypeError
from .models import DocumentFormat

logger = logging.getLogger(__name__)

PDF_MIME_TYPES = frozenset({"application/pdf", "application/x-pdf"})
DOCX_MIME_TYPES = frozenset({"application/vnd.openxmlformats-officedocument.wordprocessingml.document"})
GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream"})

_EXTENSION_FORMATS = {".pdf": DocumentFormat.PDF, ".docx": DocumentFormat.DOCX}


def resolve_document_format(content_type: Optional[str], file_name: Optional[str] = None) -> DocumentFormat:
    """
    Map a declared MIME type to a supported document format. Generic binary
    types fall back to the file extension.
    """
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared in PDF_MIME_TYPES:
        return DocumentFormat.PDF
    if declared in DOCX_MIME_TYPES:
        return DocumentFormat.DOCX
    if declared in GENERIC_MIME_TYPES and file_name:
        fmt = _EXTENSION_FORMATS.get(PurePath(file_name).suffix.lower())
        if fmt:
            return fmt
    raise UnsupportedFileTypeError(
        f"Invalid file type '{content_type}'. Only PDF and DOCX files are supported"
    )


class TextExtractor:
    """
    Abstract text extractor. Implementations should be stateless and reusable.
    """

    def extract_text(self, data: bytes, document_format: Union[DocumentFormat, str]) -> str:
        raise NotImplementedError


class DefaultTextExtractor(TextExtractor):
    """
    pypdf for PDF content, Docling's DOCX backend for Word documents.
    """

    def extract_text(self, data: bytes, document_format: Union[DocumentFormat, str]) -> str:
        try:
            fmt = DocumentFormat(document_format)
        except ValueError as exc:
            raise UnsupportedFileTypeError(f"Unsupported file type: {document_format}") from exc

        if fmt == DocumentFormat.PDF:
            return self._extract_pdf(data)
        return self._extract_docx(data)

    def _extract_pdf(self, data: bytes) -> str:
        try:
            reader = PdfReader(BytesIO(data))
            pages = [(page.extract_text() or "") for page in reader.pages]
        except Exception as exc:  # noqa: BLE001
            logger.warning("PDF parsing failed: %s", exc)
            raise TextExtractionError("Could not parse PDF content.") from exc
        return "\n".join(pages).strip()

    def _extract_docx(self, data: bytes) -> str:
        try:
            from docling.datamodel.base_models import DocumentStream, InputFormat
            from docling.document_converter import DocumentConverter
        except ImportError as exc:  # pragma: no cover - dependency guard
            raise RuntimeError("Docling is required for DOCX extraction. Please install 'docling'.") from exc

        converter = DocumentConverter(allowed_formats=[InputFormat.DOCX])
        try:
            result = converter.convert(DocumentStream(name="resume.docx", stream=BytesIO(data)))
            text = result.document.export_to_markdown()
        except Exception as exc:  # noqa: BLE001
            logger.warning("DOCX parsing failed: %s", exc)
            raise TextExtractionError(
                "Could not parse DOCX content. Ensure the file is a valid .docx file."
            ) from exc
        return text.strip()
