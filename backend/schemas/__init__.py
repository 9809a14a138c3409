"""
FairReview API Schemas
======================
Pydantic models for API request/response validation.
All API contracts are defined here for type safety and documentation.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# === Enums ===

class SeverityEnum(str, Enum):
    """Issue severity."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class OperatorKindEnum(str, Enum):
    """How a passage singles out an operator."""
    DIRECT_NAMING = "direct-naming"
    INDIRECT_DESIGNATION = "indirect-designation"
    TAILOR_MADE = "tailor-made"
    CONDITIONAL_EXCLUSION = "conditional-exclusion"
    OTHER = "other"


class ReviewModeEnum(str, Enum):
    """Path that produced a review result."""
    LOCAL = "local"
    EXTERNAL = "external"
    CHUNKED_EXTERNAL = "chunked-external"
    UNPARSEABLE = "unparseable"


# === Document Parsing ===

class DocumentMetadataSchema(BaseModel):
    """Metadata of an extracted document."""
    title: str
    word_count: int = Field(..., ge=0)
    extracted_at: datetime


class ParseResponse(BaseModel):
    """Response for document text extraction."""
    content: str = Field(..., description="Cleaned document text")
    metadata: DocumentMetadataSchema

    class Config:
        json_schema_extra = {
            "example": {
                "content": "为支持本地产业发展，对龙头企业给予专项资金补贴。",
                "metadata": {
                    "title": "关于促进产业发展的若干措施",
                    "word_count": 24,
                    "extracted_at": "2025-03-01T08:00:00Z"
                }
            }
        }


# === Review ===

class ReviewRequest(BaseModel):
    """Request to review document text."""
    document_content: Any = Field(
        default=None,
        description="Plain text of the policy document"
    )
    file_name: str | None = Field(
        default=None,
        description="Original file name; when given the run is recorded in history"
    )
    file_size: int = Field(default=0, ge=0, description="Original file size in bytes")


class IssueSchema(BaseModel):
    """One detected fair-competition issue."""
    rule_id: str
    original_text: str
    citation: str
    suggestion: str
    severity: SeverityEnum
    is_specific_operator: bool
    operator_kind: OperatorKindEnum
    problem_description: str


class ReviewResultSchema(BaseModel):
    """Aggregate review outcome."""
    is_compliant: bool
    summary: str
    total_issues: int = Field(..., ge=0)
    issues: list[IssueSchema]
    reviewed_at: datetime
    mode: ReviewModeEnum
    record_id: str | None = Field(None, description="History record of this run")

    class Config:
        json_schema_extra = {
            "example": {
                "is_compliant": False,
                "summary": "经智能审查，发现该文档存在1个公平竞争问题，其中涉及特定经营者问题1个。",
                "total_issues": 1,
                "issues": [
                    {
                        "rule_id": "clause_11_1",
                        "original_text": "支持龙头企业发展，给予专项资金扶持。",
                        "citation": "《公平竞争审查条例实施办法》第十一条第（一）项：...",
                        "suggestion": "将\"龙头企业\"修改为具体的量化标准...",
                        "severity": "high",
                        "is_specific_operator": True,
                        "operator_kind": "indirect-designation",
                        "problem_description": "使用\"龙头企业\"概念并给予财政支持..."
                    }
                ],
                "reviewed_at": "2025-03-01T08:00:00Z",
                "mode": "local",
                "record_id": None
            }
        }


class ConnectionStatusResponse(BaseModel):
    """External reviewer reachability."""
    connected: bool
    fallback_mode: bool
    message: str
    mode: str = Field(..., description="Configured review mode: external or local")


# === Rules ===

class RuleSchema(BaseModel):
    """A rule of the table."""
    rule_id: str
    article: str
    citation: str
    matcher_kind: str
    severity: SeverityEnum
    operator_kind: OperatorKindEnum


class RuleListResponse(BaseModel):
    """The full rule table."""
    rules: list[RuleSchema]
    total: int


# === History ===

class HistoryRecordSchema(BaseModel):
    """Summary of a past review."""
    record_id: str
    file_name: str
    file_size: int
    reviewed_at: datetime
    is_compliant: bool
    total_issues: int
    summary_excerpt: str
    status: str


class HistoryListResponse(BaseModel):
    """Stored review records, newest first."""
    records: list[HistoryRecordSchema]
    total: int


class HistoryStatisticsSchema(BaseModel):
    """Totals over the review history."""
    total_count: int
    compliant_count: int
    issues_count: int
    recent_activity: datetime | None = None


# === Error Schemas ===

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict[str, Any] | None = Field(None, description="Additional error details")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "InputError",
                "message": "文档内容不能为空",
                "details": {"reason": "empty"}
            }
        }


# === Health Check ===

class HealthCheckResponse(BaseModel):
    """API health check response."""
    status: str = Field(..., description="API status")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(..., description="Current server timestamp")
    services: dict[str, str] = Field(..., description="Status of dependent services")
