"""OCR and document text extraction utilities.

Supports PDF (native text extraction + OCR fallback) and images (OCR) with
proper error handling and free/open-source tooling.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import pdfplumber
import pytesseract
from pdf2image import convert_from_bytes
from PIL import Image
from pypdf import PdfReader

from .config import settings

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Supported file types."""
    PDF = "pdf"
    IMAGE = "image"
    UNKNOWN = "unknown"


class ParseError(Exception):
    """Raised when document parsing fails."""
    pass


@dataclass
class ParsedDocument:
    """Result of document parsing."""
    text: str
    file_type: FileType
    metadata: dict[str, Any] = field(default_factory=dict)
    confidence: float = 1.0


def detect_file_type(filename: str, content: bytes | None = None) -> FileType:
    """Detect file type from filename or content.

    Args:
        filename: Original filename
        content: Optional file content for magic number detection

    Returns:
        Detected FileType
    """
    filename_lower = filename.lower()

    if filename_lower.endswith('.pdf'):
        return FileType.PDF
    elif filename_lower.endswith(('.jpg', '.jpeg', '.png')):
        return FileType.IMAGE

    # Magic number detection if content provided
    if content:
        if content.startswith(b'%PDF'):
            return FileType.PDF
        elif content.startswith((b'\x89PNG', b'\xff\xd8\xff')):
            return FileType.IMAGE

    return FileType.UNKNOWN


def extract_text_from_pdf_native(path: Path) -> tuple[str, float, int]:
    """Extract text from PDF using native text extraction.

    Returns:
        Tuple of (extracted_text, confidence_score, page_count)
    """
    try:
        with pdfplumber.open(path) as pdf:
            text_parts = [page.extract_text() or "" for page in pdf.pages]
            text = "\n\n".join(part for part in text_parts if part)

            # Estimate confidence based on text density
            if len(text.strip()) > 100:
                return text, 0.95, len(pdf.pages)
            elif len(text.strip()) > 20:
                return text, 0.7, len(pdf.pages)
            else:
                return text, 0.3, len(pdf.pages)

    except Exception as e:
        logger.warning(f"pdfplumber extraction failed: {e}, trying pypdf")

        # Fallback to pypdf
        try:
            reader = PdfReader(path)
            text = "\n\n".join(page.extract_text() or "" for page in reader.pages).strip()
            confidence = 0.8 if len(text) > 100 else 0.5
            return text, confidence, len(reader.pages)

        except Exception as e2:
            logger.error(f"pypdf extraction also failed: {e2}")
            return "", 0.0, 0


def _ocr_image(image: Image.Image) -> tuple[str, float | None]:
    """Run tesseract on one image; returns text and mean word confidence (0..1)."""
    ocr_data = pytesseract.image_to_data(
        image,
        lang=settings.ocr.tesseract_lang,
        output_type=pytesseract.Output.DICT,
    )
    page_text = pytesseract.image_to_string(image, lang=settings.ocr.tesseract_lang)

    conf_values = [float(c) for c in ocr_data.get("conf", []) if float(c) >= 0]
    confidence = sum(conf_values) / len(conf_values) / 100.0 if conf_values else None
    return page_text, confidence


def extract_text_from_pdf_ocr(file_content: bytes) -> tuple[str, float]:
    """Extract text from a scanned PDF by rasterizing pages and running OCR.

    Raises:
        ParseError: If rasterization fails entirely
    """
    try:
        images = convert_from_bytes(file_content, dpi=settings.ocr.dpi, fmt='jpeg')
    except Exception as e:
        logger.error(f"PDF OCR failed: {e}")
        raise ParseError(f"OCR processing failed: {e}") from e

    if not images:
        logger.warning("No images extracted from PDF")
        return "", 0.0

    text_parts = []
    confidences = []
    for idx, image in enumerate(images):
        try:
            page_text, confidence = _ocr_image(image)
        except Exception as e:
            logger.error(f"OCR failed for page {idx + 1}: {e}")
            continue
        if page_text.strip():
            text_parts.append(page_text)
            if confidence is not None:
                confidences.append(confidence)

    text = "\n\n".join(text_parts)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    logger.info(f"OCR completed. Extracted {len(text)} chars with confidence {confidence:.2f}")
    return text, confidence


def parse_pdf(path: Path, filename: str) -> ParsedDocument:
    """Parse PDF with text extraction + OCR fallback.

    Raises:
        ParseError: If no text can be extracted
    """
    try:
        text, confidence, num_pages = extract_text_from_pdf_native(path)
        method = "native"

        if confidence < settings.ocr.confidence_threshold or len(text.strip()) < 50:
            logger.info(f"Native extraction confidence {confidence:.2f} too low, trying OCR")
            text_ocr, conf_ocr = extract_text_from_pdf_ocr(path.read_bytes())

            if conf_ocr > confidence or len(text_ocr) > len(text):
                text, confidence, method = text_ocr, conf_ocr, "ocr"

        if not text.strip():
            raise ParseError("No text could be extracted from PDF")

        return ParsedDocument(
            text=text,
            file_type=FileType.PDF,
            confidence=confidence,
            metadata={"filename": filename, "num_pages": num_pages, "method": method},
        )

    except ParseError:
        raise
    except Exception as e:
        logger.error(f"PDF parsing failed: {e}")
        raise ParseError(f"Failed to parse PDF: {e}") from e


def parse_image(path: Path, filename: str) -> ParsedDocument:
    """OCR a photo or screenshot.

    An image with no recognizable text yields an empty document, not an error.
    """
    try:
        with Image.open(path) as image:
            text, confidence = _ocr_image(image)
    except Exception as e:
        logger.error(f"Image OCR failed: {e}")
        raise ParseError(f"Failed to read image: {e}") from e

    return ParsedDocument(
        text=text,
        file_type=FileType.IMAGE,
        confidence=confidence or 0.0,
        metadata={"filename": filename, "method": "ocr"},
    )


def parse_file(path: Path, filename: str) -> ParsedDocument:
    """Extract text from a staged upload based on its type.

    Raises:
        ParseError: If file type unsupported or parsing fails
    """
    file_type = detect_file_type(filename)

    if file_type == FileType.PDF:
        return parse_pdf(path, filename)
    elif file_type == FileType.IMAGE:
        return parse_image(path, filename)
    else:
        raise ParseError(f"Unsupported file type: {filename}")
