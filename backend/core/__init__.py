"""
FairReview Core Module
======================
Core business logic for fair-competition review of policy documents.

Modules:
- rules: Rule table and matcher descriptions
- context_extractor: Sentence-bounded context windows
- matchers: Per-matcher detection over a document
- review_engine: Local rule-based review and result assembly
- external_reviewer: LLM-backed review (DeepSeek)
- review_service: Validation, mode selection and fallback
- document_parser: Text extraction from uploads
- history: Review log on disk
- rate_limiter: Per-client request limiting
- config: Application configuration
"""

from core.config import REGULATION_TITLE, SEVERITY_LEVELS, get_settings
from core.context_extractor import extract_context
from core.document_parser import DocumentParseError, DocumentParser, ParsedDocument
from core.external_reviewer import (
    DeepSeekReviewer,
    ExternalReviewer,
    ExternalReviewFailure,
    ExternalReviewSuccess,
)
from core.history import ReviewHistory, ReviewRecord
from core.matchers import Finding, ScanState, detect
from core.rate_limiter import FixedWindowRateLimiter
from core.review_engine import ReviewEngine, ReviewMode, ReviewResult
from core.review_service import InputError, ReviewService
from core.rules import (
    OperatorKind,
    Rule,
    RuleTable,
    Severity,
    build_default_rule_table,
)

__all__ = [
    # Rules
    "Rule",
    "RuleTable",
    "Severity",
    "OperatorKind",
    "build_default_rule_table",
    # Detection
    "extract_context",
    "detect",
    "Finding",
    "ScanState",
    # Review
    "ReviewEngine",
    "ReviewResult",
    "ReviewMode",
    "ReviewService",
    "InputError",
    # External review
    "ExternalReviewer",
    "DeepSeekReviewer",
    "ExternalReviewSuccess",
    "ExternalReviewFailure",
    # Collaborators
    "DocumentParser",
    "DocumentParseError",
    "ParsedDocument",
    "ReviewHistory",
    "ReviewRecord",
    "FixedWindowRateLimiter",
    # Config
    "get_settings",
    "REGULATION_TITLE",
    "SEVERITY_LEVELS",
]
