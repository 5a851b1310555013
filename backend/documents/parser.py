"""
Resume parsing.
Extracts raw text from PDF or DOCX uploads and pulls out name, email and phone.
"""
import io
import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

import docx
from pypdf import PdfReader

from utils.cleaning import ResponseCleaner
from utils.errors import UnsupportedFormatError

logger = logging.getLogger(__name__)

PDF_TYPE = "application/pdf"
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

NAME_PATTERN = re.compile(r'^[A-Z][a-z]+(?: [A-Z][a-z]+){0,3}$')
EMAIL_PATTERN = re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE)
PHONE_PATTERN = re.compile(r'(\+?\d{1,3}[\s-]?)?(\(?\d{3}\)?[\s-]?){2}\d{4}')


@dataclass
class ParsedDocument:
    """Text and identity fields found in an uploaded resume."""
    text: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


def _extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lower().lstrip(".")


def detect_kind(filename: str, content_type: Optional[str]) -> Optional[str]:
    """Return `pdf`, `docx`, or None for anything else."""
    extension = _extension(filename)
    if content_type == PDF_TYPE or extension == "pdf":
        return "pdf"
    if content_type == DOCX_TYPE or extension == "docx":
        return "docx"
    return None


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page in reader.pages:
        pages.append(page.extract_text() or "")
    return "\n".join(pages)


def extract_docx_text(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    return "\n".join(p.text for p in document.paragraphs)


def extract_name(text: str) -> Optional[str]:
    """First short capitalised line near the top that has no digits or @."""
    lines = [line.strip() for line in re.split(r'\n+', text) if line.strip()]
    for line in lines[:10]:
        if "@" in line or re.search(r'\d', line):
            continue
        if NAME_PATTERN.match(line):
            return line
    return None


def extract_email(text: str) -> Optional[str]:
    match = EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def extract_phone(text: str) -> Optional[str]:
    match = PHONE_PATTERN.search(text)
    if not match:
        return None
    digits = re.sub(r'[\s()\-]', '', match.group(0))
    if re.fullmatch(r'\d{10}', digits):
        return f"+1{digits}"
    return digits


def extract_fields(text: str) -> ParsedDocument:
    """
    Pull identity fields out of raw resume text.

    Name detection looks at lines, so it runs before whitespace is collapsed.
    """
    flat = ResponseCleaner.normalize_whitespace(text)
    return ParsedDocument(
        text=text,
        name=extract_name(text.replace('\r\n', '\n')),
        email=extract_email(flat),
        phone=extract_phone(flat),
    )


class DocumentParser:
    """
    Parses uploaded resumes into text plus detected identity fields.
    """

    def parse(self, filename: str, content_type: Optional[str], data: bytes) -> ParsedDocument:
        """
        Parse an uploaded document.

        Args:
            filename: Original file name
            content_type: MIME type reported by the client
            data: Raw file bytes

        Returns:
            ParsedDocument

        Raises:
            UnsupportedFormatError: If the file is neither PDF nor DOCX, or unreadable
        """
        kind = detect_kind(filename, content_type)
        if kind is None:
            raise UnsupportedFormatError(filename, content_type)

        try:
            if kind == "pdf":
                text = extract_pdf_text(data)
            else:
                text = extract_docx_text(data)
        except Exception as e:
            logger.warning(f"Could not read {kind} resume {filename!r}: {e}")
            raise UnsupportedFormatError(
                filename, content_type, reason=f"Could not read the {kind.upper()} file."
            ) from e

        parsed = extract_fields(text)
        logger.info(
            f"Parsed {kind} resume {filename!r}: name={bool(parsed.name)}, "
            f"email={bool(parsed.email)}, phone={bool(parsed.phone)}"
        )
        return parsed


# Global parser instance
document_parser = DocumentParser()
