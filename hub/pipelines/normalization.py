"""Text cleanup applied before itinerary/schedule extraction.

Pasted emails, PDF text and OCR output arrive with smart punctuation, HTML
and irregular spacing; extraction patterns expect plain ASCII separators.
Line breaks are preserved because clause splitting depends on them.
"""
from __future__ import annotations

import logging
import re
import unicodedata

logger = logging.getLogger(__name__)


def normalize_unicode(text: str) -> str:
    """Normalize Unicode to composed form and replace non-breaking spaces."""
    text = unicodedata.normalize('NFC', text)
    return text.replace('\u00a0', ' ').replace('\u202f', ' ')


def normalize_punctuation(text: str) -> str:
    """Fold smart quotes and dashes to their ASCII forms."""
    text = text.replace('\u201c', '"').replace('\u201d', '"')
    text = text.replace('\u2018', "'").replace('\u2019', "'")

    # en/em dash time ranges must read as ranges
    text = text.replace('\u2013', '-').replace('\u2014', '-')

    return text


def clean_html(text: str) -> str:
    """Remove HTML tags, turning block-level breaks into newlines."""
    text = re.sub(r'(?i)<\s*(br|/p|/div|/tr|/li)\s*/?>', '\n', text)
    return re.sub(r'<[^>]+>', ' ', text)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs per line and drop blank-line runs."""
    lines = [re.sub(r'[ \t\f\v]+', ' ', line).strip() for line in text.splitlines()]
    text = '\n'.join(lines)
    return re.sub(r'\n{3,}', '\n\n', text).strip()


def normalize_text(
    text: str,
    *,
    clean_html_tags: bool = False,
) -> str:
    """Prepare raw text for extraction.

    Args:
        text: Input text (email body, PDF text, OCR output)
        clean_html_tags: Strip HTML markup first (email bodies)

    Returns:
        Normalized text
    """
    if not text or not text.strip():
        return ""

    if clean_html_tags:
        text = clean_html(text)

    text = normalize_unicode(text)
    text = normalize_punctuation(text)
    return normalize_whitespace(text)
