"""
FairReview Document Parser Module
=================================
Extracts plain text from uploaded policy documents.

Supported formats:
- .docx via python-docx (paragraphs and table cells)
- .pdf with a native text layer via pdfplumber
- .txt (UTF-8, GB18030 fallback)

Legacy .doc files are rejected with a conversion hint. Scanned PDFs are
not OCR'd; they come back empty and are rejected.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pdfplumber
from docx import Document

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".docx", ".pdf", ".txt"})
MIN_CONTENT_LENGTH = 10

# Header/footer noise left by exported documents
PAGE_COUNTER_PATTERN = re.compile(r"第\s*\d+\s*页.*?共\s*\d+\s*页")
TIMESTAMP_PATTERN = re.compile(r"\d{4}年\d{1,2}月\d{1,2}日\s*\d{1,2}:\d{2}")
WHITESPACE_PATTERN = re.compile(r"\s+")
PUNCTUATION_SPACING_PATTERN = re.compile(r"([，。；])\s+")


class DocumentParseError(Exception):
    """Raised when a document cannot be turned into reviewable text."""
    pass


@dataclass
class ParsedDocument:
    """Text extracted from one document."""
    content: str
    title: str
    word_count: int
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def metadata(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "word_count": self.word_count,
            "extracted_at": self.extracted_at.isoformat(),
        }


def clean_extracted_text(text: str) -> str:
    """Normalize whitespace and drop page counters and print timestamps."""
    text = WHITESPACE_PATTERN.sub(" ", text)
    text = PAGE_COUNTER_PATTERN.sub("", text)
    text = TIMESTAMP_PATTERN.sub("", text)
    text = PUNCTUATION_SPACING_PATTERN.sub(r"\1", text)
    return text.strip()


class DocumentParser:
    """
    Turns an uploaded file into cleaned text for review.

    Extraction libraries are synchronous, so each runs in a worker thread.
    """

    async def parse(self, file_path: Path, file_name: str) -> ParsedDocument:
        """
        Extract and clean the text of a document.

        Args:
            file_path: Location of the stored upload
            file_name: Original client file name (decides the format)

        Returns:
            ParsedDocument with cleaned content

        Raises:
            DocumentParseError: For unsupported, corrupt, encrypted or
                empty documents
        """
        extension = Path(file_name).suffix.lower()
        logger.info(f"Parsing document: {file_name}")

        if extension == ".doc":
            raise DocumentParseError("暂不支持 .doc 格式，请将文档另存为 .docx 后重新上传")
        if extension not in SUPPORTED_EXTENSIONS:
            raise DocumentParseError(f"不支持的文件格式: {extension or '未知'}")

        try:
            if extension == ".docx":
                raw_text, title = await asyncio.to_thread(self._extract_docx, file_path)
            elif extension == ".pdf":
                raw_text, title = await asyncio.to_thread(self._extract_pdf, file_path)
            else:
                raw_text, title = await asyncio.to_thread(self._extract_txt, file_path)
        except DocumentParseError:
            raise
        except Exception as e:
            logger.warning(f"Extraction failed for {file_name}: {e}")
            raise DocumentParseError("文档解析失败，文件可能已损坏或被加密") from e

        content = clean_extracted_text(raw_text)
        if len(content) < MIN_CONTENT_LENGTH:
            raise DocumentParseError("文档内容为空或无法提取有效文本")

        logger.info(f"Extracted {len(content)} characters from {file_name}")

        return ParsedDocument(
            content=content,
            title=title or Path(file_name).stem,
            word_count=len(content)
        )

    def _extract_docx(self, file_path: Path) -> tuple[str, str]:
        document = Document(str(file_path))
        parts = [p.text for p in document.paragraphs if p.text.strip()]

        for table in document.tables:
            for row in table.rows:
                for cell in row.cells:
                    if cell.text.strip():
                        parts.append(cell.text)

        return "\n".join(parts), document.core_properties.title or ""

    def _extract_pdf(self, file_path: Path) -> tuple[str, str]:
        with pdfplumber.open(str(file_path)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
            title = (pdf.metadata or {}).get("Title") or ""
        return "\n".join(pages), str(title)

    def _extract_txt(self, file_path: Path) -> tuple[str, str]:
        data = file_path.read_bytes()
        try:
            return data.decode("utf-8-sig"), ""
        except UnicodeDecodeError:
            logger.debug(f"{file_path.name} is not UTF-8; decoding as GB18030")
        try:
            return data.decode("gb18030"), ""
        except UnicodeDecodeError as e:
            raise DocumentParseError("无法识别文本文件编码，请使用 UTF-8 编码") from e
