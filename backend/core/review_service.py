"""
FairReview Review Service Module
================================
Entry point for reviewing a document.

Per call the service:
1. Validates the input text (the only failure callers ever see)
2. Runs the local engine when no external reviewer is configured
3. Otherwise submits the text externally, whole or in sentence-aligned
   chunks, and falls back to the local engine over the whole document
   whenever any external call fails
"""

import asyncio
import logging
from typing import Any

from core.config import CHUNK_TERMINATORS, Settings
from core.external_reviewer import ExternalReviewer, ExternalReviewSuccess
from core.review_engine import (
    ReviewEngine,
    ReviewMode,
    ReviewResult,
    build_result,
    unparseable_result,
)

logger = logging.getLogger(__name__)

# Phrases left behind by a failed upstream text extraction
UNPARSEABLE_MARKERS = ("整个文档内容", "无法提取", "解析失败")

CHUNKED_COMPLIANT_SUMMARY = "经分片审查，文档基本符合公平竞争要求。"
CHUNKED_NON_COMPLIANT_SUMMARY = "经分片审查，共发现 {total} 个问题。"


class InputError(Exception):
    """
    Raised when document text cannot be reviewed.

    ``reason`` is one of: missing, not_text, empty, too_long, unparseable.
    """

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message

    def to_review_result(self) -> ReviewResult:
        """The "cannot parse" result shape for rejected input."""
        return unparseable_result()


def split_into_chunks(text: str, chunk_chars: int) -> list[str]:
    """
    Split text into sentence-aligned chunks.

    Characters accumulate until the chunk holds at least ``chunk_chars``
    characters; it is then cut right after the next sentence terminator.
    Concatenating the chunks reproduces the text.
    """
    chunks = []
    start = 0
    length = len(text)

    while start < length:
        cut = start + chunk_chars
        while cut <= length and text[cut - 1] not in CHUNK_TERMINATORS:
            cut += 1
        cut = min(cut, length)
        chunks.append(text[start:cut])
        start = cut

    return chunks


class ReviewService:
    """
    Chooses between local and external review and guarantees a result.

    Args:
        engine: Local rule engine
        settings: Limits for validation and chunking
        external_reviewer: External service client; None means local only
    """

    def __init__(
        self,
        engine: ReviewEngine,
        settings: Settings,
        external_reviewer: ExternalReviewer | None = None
    ):
        self.engine = engine
        self.settings = settings
        self.external_reviewer = external_reviewer

    @property
    def mode(self) -> str:
        return "external" if self.external_reviewer is not None else "local"

    def validate(self, text: Any) -> str:
        """
        Check that text can be reviewed.

        Raises:
            InputError: For absent, non-text, blank, oversized or
                unparseable input
        """
        if text is None:
            raise InputError("missing", "文档内容不能为空")
        if not isinstance(text, str):
            raise InputError("not_text", "文档内容必须为文本")
        if not text.strip():
            raise InputError("empty", "文档内容不能为空")
        if len(text) > self.settings.max_document_chars:
            raise InputError(
                "too_long",
                f"文档内容过长，请分段提交审查（最大约 {self.settings.max_document_chars} 字符）"
            )
        if (
            len(text.strip()) < self.settings.min_document_chars
            or any(marker in text for marker in UNPARSEABLE_MARKERS)
        ):
            raise InputError("unparseable", "文档解析失败，无法提取有效内容进行审查")
        return text

    async def review(self, text: Any) -> ReviewResult:
        """
        Review a document.

        Returns:
            ReviewResult from the external service or the local engine

        Raises:
            InputError: If the text is rejected before any rule runs
        """
        document = self.validate(text)

        if self.external_reviewer is None:
            logger.info("No external reviewer configured; reviewing locally")
            return await asyncio.to_thread(self.engine.review, document)

        try:
            result = await self._review_external(document)
        except Exception:
            logger.exception("External review raised unexpectedly; reviewing locally")
            result = None

        if result is None:
            return await asyncio.to_thread(self.engine.review, document)
        return result

    async def _review_external(self, document: str) -> ReviewResult | None:
        """Run the external path; None signals fallback to local review."""
        if len(document) <= self.settings.chunk_chars:
            outcome = await self.external_reviewer.review_chunk(document, ReviewMode.EXTERNAL)
            if isinstance(outcome, ExternalReviewSuccess):
                return outcome.result
            logger.warning(f"External review failed ({outcome.reason}); reviewing locally")
            return None

        chunks = split_into_chunks(document, self.settings.chunk_chars)
        logger.info(f"Submitting document in {len(chunks)} chunks")

        merged = []
        for index, chunk in enumerate(chunks, start=1):
            outcome = await self.external_reviewer.review_chunk(chunk, ReviewMode.CHUNKED_EXTERNAL)
            if not isinstance(outcome, ExternalReviewSuccess):
                logger.warning(
                    f"Chunk {index}/{len(chunks)} failed ({outcome.reason}); "
                    f"discarding partial results and reviewing the whole document locally"
                )
                return None
            merged.extend(outcome.result.issues)

        summary = (
            CHUNKED_COMPLIANT_SUMMARY if not merged
            else CHUNKED_NON_COMPLIANT_SUMMARY.format(total=len(merged))
        )
        return build_result(merged, mode=ReviewMode.CHUNKED_EXTERNAL, summary=summary)

    async def check_connection(self) -> dict[str, Any]:
        """Report whether the external reviewer is reachable."""
        if self.external_reviewer is None:
            return {
                "connected": False,
                "fallback_mode": True,
                "message": "API密钥未配置，使用本地规则审查模式"
            }
        return await self.external_reviewer.check_connection()
