"""
FairReview Matchers Module
==========================
Per-rule detection routines and severity evaluation.

Every matcher scans the whole document against one rule and emits
candidate findings. Candidates pass through a shared acceptance filter
whose processed-context set lives in a ScanState created per scan.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from core.config import EXTRACTION_FAILURE_MARKERS
from core.context_extractor import MAX_CONTEXT_LENGTH, extract_context, sentence_spans
from core.rules import (
    CooccurrencePattern,
    KeywordPattern,
    MatcherKind,
    NumericPattern,
    OperatorKind,
    Rule,
    Severity,
)

logger = logging.getLogger(__name__)

MIN_CONTEXT_LENGTH = 10


@dataclass(frozen=True)
class Finding:
    """One confirmed violation occurrence."""
    rule_id: str
    original_text: str
    citation: str
    suggestion: str
    severity: Severity
    is_specific_operator: bool
    operator_kind: OperatorKind
    problem_description: str

    @property
    def dedup_key(self) -> str:
        return self.original_text + self.citation

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "rule_id": self.rule_id,
            "original_text": self.original_text,
            "citation": self.citation,
            "suggestion": self.suggestion,
            "severity": self.severity.value,
            "is_specific_operator": self.is_specific_operator,
            "operator_kind": self.operator_kind.value,
            "problem_description": self.problem_description,
        }


@dataclass
class ScanState:
    """Acceptance-filter state scoped to a single document scan."""
    processed: set[str] = field(default_factory=set)

    def admit(self, context: str) -> bool:
        """
        Accept a candidate context and record it as processed.

        Rejects snippets that are too short or too long, already used in
        this scan, or that carry an extraction-failure marker.
        """
        if not MIN_CONTEXT_LENGTH < len(context) <= MAX_CONTEXT_LENGTH:
            return False
        if context in self.processed:
            return False
        if any(marker in context for marker in EXTRACTION_FAILURE_MARKERS):
            return False
        self.processed.add(context)
        return True


def detect(rule: Rule, document: str, state: ScanState) -> list[Finding]:
    """Run the matcher selected by the rule's pattern kind."""
    kind = rule.matcher.kind
    if kind == MatcherKind.KEYWORD:
        return match_keywords(rule, rule.matcher, document, state)
    elif kind == MatcherKind.NUMERIC:
        return match_thresholds(rule, rule.matcher, document, state)
    elif kind == MatcherKind.COOCCURRENCE:
        return match_cooccurrence(rule, rule.matcher, document, state)
    raise ValueError(f"Unknown matcher kind: {kind}")


def match_keywords(
    rule: Rule,
    pattern: KeywordPattern,
    document: str,
    state: ScanState
) -> list[Finding]:
    """Keyword matcher: the first accepted occurrence of each keyword."""
    findings = []

    for keyword in pattern.keywords:
        for index in _find_occurrences(document, keyword):
            context = _context_or_none(document, index, keyword)
            if context is None or not state.admit(context):
                continue

            severity, case = grade_keyword_context(rule, pattern, context)
            findings.append(_make_finding(
                rule,
                context,
                severity,
                rule.describe(case, keyword=keyword),
                rule.render_suggestion(keyword=keyword)
            ))
            break  # one finding per keyword

    return findings


def match_thresholds(
    rule: Rule,
    pattern: NumericPattern,
    document: str,
    state: ScanState
) -> list[Finding]:
    """Numeric matcher: every accepted match of every threshold pattern."""
    findings = []

    for regex in pattern.compiled():
        for match in regex.finditer(document):
            context = _context_or_none(document, match.start(), match.group(0))
            if context is None or not state.admit(context):
                continue

            value = int(match.group(1))
            category = pattern.classify(match.group(0))
            severity, case = evaluate_threshold(pattern, category, value)
            findings.append(_make_finding(
                rule,
                context,
                severity,
                rule.describe(case, category=category, value=value),
                rule.render_suggestion(category=category, value=value)
            ))

    return findings


def match_cooccurrence(
    rule: Rule,
    pattern: CooccurrencePattern,
    document: str,
    state: ScanState
) -> list[Finding]:
    """Co-occurrence matcher: first accepted sentence per anchor group."""
    findings = []

    for label, anchors in pattern.anchor_groups():
        for start, _, sentence in sentence_spans(document):
            if not pattern.matches(sentence, anchors):
                continue
            context = _context_or_none(document, start, sentence)
            if context is None or not state.admit(context):
                continue

            findings.append(_make_finding(
                rule,
                context,
                rule.severity,
                rule.describe("default", terms=label),
                rule.render_suggestion(terms=label)
            ))
            break

    return findings


def grade_keyword_context(
    rule: Rule,
    pattern: KeywordPattern,
    context: str
) -> tuple[Severity, str]:
    """
    Grade a keyword hit by its surrounding sentence.

    support + subsidy -> high, support only -> high, neither -> medium.
    Ungraded patterns keep the rule's base severity.
    """
    if not pattern.graded:
        return rule.severity, "default"

    has_support = any(word in context for word in pattern.support_keywords)
    has_subsidy = any(term in context for term in pattern.subsidy_terms)

    if has_support and has_subsidy:
        return Severity.HIGH, "support_and_subsidy"
    elif has_support:
        return Severity.HIGH, "support_only"
    return Severity.MEDIUM, "default"


def evaluate_threshold(
    pattern: NumericPattern,
    category: str,
    value: int
) -> tuple[Severity, str]:
    """Compare a threshold value with its category's bars."""
    bars = pattern.thresholds.get(category)
    if bars is None:
        return Severity.LOW, "default"

    if value >= bars.high:
        return Severity.HIGH, "high"
    elif value >= bars.medium:
        return Severity.MEDIUM, "medium"
    return Severity.LOW, "low"


def _find_occurrences(text: str, keyword: str) -> list[int]:
    """All start positions of ``keyword`` in ``text``."""
    positions = []
    index = text.find(keyword)
    while index != -1:
        positions.append(index)
        index = text.find(keyword, index + 1)
    return positions


def _context_or_none(document: str, start: int, match_text: str) -> str | None:
    """Extract a context window; a failed extraction skips the candidate."""
    try:
        return extract_context(document, start, match_text)
    except (IndexError, ValueError) as e:
        logger.debug(f"Skipping candidate at {start}: {e}")
        return None


def _make_finding(
    rule: Rule,
    context: str,
    severity: Severity,
    description: str,
    suggestion: str
) -> Finding:
    return Finding(
        rule_id=rule.rule_id,
        original_text=context,
        citation=rule.citation,
        suggestion=suggestion,
        severity=severity,
        is_specific_operator=rule.is_specific_operator,
        operator_kind=rule.operator_kind,
        problem_description=description,
    )
