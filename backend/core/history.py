"""
FairReview History Module
=========================
Compact log of completed reviews, kept in a local disk cache.

Only a summary of each run is stored; the review engine never depends
on this log being available.
"""

import csv
import io
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from diskcache import Cache

from core.review_engine import ReviewResult

logger = logging.getLogger(__name__)

RECORDS_KEY = "review_records"
SUMMARY_EXCERPT_LENGTH = 100

CSV_HEADER = ["文件名", "文件大小", "审查时间", "审查结果", "问题数量", "总结"]


@dataclass
class ReviewRecord:
    """Summary of one completed review."""
    record_id: str
    file_name: str
    file_size: int
    reviewed_at: str
    is_compliant: bool
    total_issues: int
    summary_excerpt: str
    status: str = "completed"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def verdict(self) -> str:
        if self.is_compliant:
            return "通过"
        return "需要修改" if self.total_issues > 0 else "不通过"


def generate_record_id() -> str:
    """Generate a unique record ID."""
    return f"review-{uuid.uuid4().hex[:12]}"


def summarize(summary: str, limit: int = SUMMARY_EXCERPT_LENGTH) -> str:
    """Shorten a summary for the log."""
    if len(summary) > limit:
        return summary[:limit] + "..."
    return summary


class ReviewHistory:
    """
    Review log stored under a single cache key, newest record first.

    Args:
        directory: Cache directory
        max_records: Number of records kept; older ones are dropped
    """

    def __init__(self, directory: Path, max_records: int = 50):
        self.max_records = max_records
        self._cache = Cache(str(directory))

    def close(self):
        self._cache.close()

    def save(self, file_name: str, file_size: int, result: ReviewResult) -> str:
        """Append a record for a completed review and return its ID."""
        record = ReviewRecord(
            record_id=generate_record_id(),
            file_name=file_name,
            file_size=file_size,
            reviewed_at=datetime.now(timezone.utc).isoformat(),
            is_compliant=result.is_compliant,
            total_issues=result.total_issues,
            summary_excerpt=summarize(result.summary)
        )

        with self._cache.transact():
            records = self._load()
            records.insert(0, record.to_dict())
            self._cache.set(RECORDS_KEY, records[:self.max_records])

        logger.info(f"Saved review record {record.record_id} for {file_name}")
        return record.record_id

    def list_records(self) -> list[ReviewRecord]:
        return [ReviewRecord(**data) for data in self._load()]

    def get(self, record_id: str) -> ReviewRecord | None:
        for record in self.list_records():
            if record.record_id == record_id:
                return record
        return None

    def delete(self, record_id: str) -> bool:
        """Delete one record; False when it does not exist."""
        with self._cache.transact():
            records = self._load()
            remaining = [r for r in records if r["record_id"] != record_id]
            if len(remaining) == len(records):
                return False
            self._cache.set(RECORDS_KEY, remaining)
        return True

    def clear(self) -> None:
        self._cache.delete(RECORDS_KEY)

    def statistics(self) -> dict[str, Any]:
        """Totals across all stored records."""
        records = self.list_records()
        return {
            "total_count": len(records),
            "compliant_count": sum(1 for r in records if r.is_compliant),
            "issues_count": sum(r.total_issues for r in records),
            "recent_activity": records[0].reviewed_at if records else None,
        }

    def export_csv(self) -> str:
        """Export all records as CSV text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for record in self.list_records():
            writer.writerow([
                record.file_name,
                f"{record.file_size / 1024:.1f}KB",
                record.reviewed_at,
                record.verdict,
                record.total_issues,
                record.summary_excerpt,
            ])
        return buffer.getvalue()

    def _load(self) -> list[dict[str, Any]]:
        return list(self._cache.get(RECORDS_KEY, default=[]))
