"""
FairReview Review Engine Module
===============================
Runs the rule table over a document and assembles the review result.

Key Features:
- Rules run in table order, each over the full document
- Per-scan acceptance state (never shared between scans)
- Stable deduplication by snippet + citation
- Deterministic summary derived from the findings
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from core.matchers import Finding, ScanState, detect
from core.rules import RuleTable

logger = logging.getLogger(__name__)


class ReviewMode(str, Enum):
    """Terminal state that produced a review result."""
    LOCAL = "local"
    EXTERNAL = "external"
    CHUNKED_EXTERNAL = "chunked-external"
    UNPARSEABLE = "unparseable"


COMPLIANT_SUMMARY = (
    "经智能审查，该文档基本符合公平竞争要求，未发现特定经营者相关问题。"
    "审查采用精准条款匹配算法。"
)

NON_COMPLIANT_SUMMARY = (
    "经智能审查，发现该文档存在{total}个公平竞争问题，其中涉及特定经营者问题{specific}个。"
    "主要问题包括：变相确定特定经营者、设置不合理准入条件、地域限制等，"
    "需要进行整改以符合公平竞争审查要求。"
)

UNPARSEABLE_SUMMARY = (
    "文档解析失败，无法提取有效内容进行审查。可能原因：1）文档加密或密码保护；"
    "2）文档格式不支持；3）文档内容为空或损坏。请检查文档格式，确保为标准的Word文档(.docx)且未加密。"
)


@dataclass(frozen=True)
class ReviewResult:
    """Aggregate review outcome for one document."""
    is_compliant: bool
    summary: str
    total_issues: int
    issues: tuple[Finding, ...]
    reviewed_at: datetime
    mode: ReviewMode = ReviewMode.LOCAL

    @property
    def specific_operator_count(self) -> int:
        return sum(1 for issue in self.issues if issue.is_specific_operator)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_compliant": self.is_compliant,
            "summary": self.summary,
            "total_issues": self.total_issues,
            "issues": [i.to_dict() for i in self.issues],
            "reviewed_at": self.reviewed_at.isoformat(),
            "mode": self.mode.value,
        }


def deduplicate(findings: Iterable[Finding]) -> list[Finding]:
    """Drop findings whose snippet + citation was already seen; keep order."""
    unique = []
    seen = set()

    for finding in findings:
        key = finding.dedup_key
        if key not in seen:
            seen.add(key)
            unique.append(finding)

    return unique


def build_result(
    findings: Iterable[Finding],
    mode: ReviewMode = ReviewMode.LOCAL,
    summary: str | None = None
) -> ReviewResult:
    """Assemble a result; the summary is derived unless given."""
    issues = tuple(findings)
    total = len(issues)
    is_compliant = total == 0

    if summary is None:
        specific = sum(1 for issue in issues if issue.is_specific_operator)
        summary = (
            COMPLIANT_SUMMARY if is_compliant
            else NON_COMPLIANT_SUMMARY.format(total=total, specific=specific)
        )

    return ReviewResult(
        is_compliant=is_compliant,
        summary=summary,
        total_issues=total,
        issues=issues,
        reviewed_at=datetime.now(timezone.utc),
        mode=mode
    )


def unparseable_result() -> ReviewResult:
    """Dedicated result shape for input that cannot be reviewed."""
    return ReviewResult(
        is_compliant=False,
        summary=UNPARSEABLE_SUMMARY,
        total_issues=0,
        issues=(),
        reviewed_at=datetime.now(timezone.utc),
        mode=ReviewMode.UNPARSEABLE
    )


class ReviewEngine:
    """
    Local rule-based violation detector.

    The rule table is injected and treated as read-only, so one engine
    may serve concurrent scans.
    """

    def __init__(self, rule_table: RuleTable):
        self.rule_table = rule_table

    def detect(self, document: str) -> list[Finding]:
        """Run every rule and return deduplicated findings."""
        state = ScanState()
        candidates: list[Finding] = []

        for rule in self.rule_table:
            found = detect(rule, document, state)
            logger.debug(f"Rule {rule.rule_id}: {len(found)} candidate(s)")
            candidates.extend(found)

        return deduplicate(candidates)

    def review(self, document: str) -> ReviewResult:
        """Scan a document and build the review result."""
        findings = self.detect(document)
        logger.info(
            f"Local review complete: {len(findings)} issue(s) "
            f"over {len(document)} characters"
        )
        return build_result(findings, mode=ReviewMode.LOCAL)
