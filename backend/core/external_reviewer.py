"""
FairReview External Reviewer Module
===================================
LLM-backed review through an OpenAI-compatible endpoint (DeepSeek).

Each call returns a typed outcome: ExternalReviewSuccess carrying a
ReviewResult, or ExternalReviewFailure. Transport errors, error statuses,
missing JSON and payloads of the wrong shape all become failures; the
caller decides how to fall back.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.config import SEVERITY_LEVELS, Settings
from core.matchers import Finding
from core.review_engine import ReviewMode, ReviewResult, build_result
from core.rules import (
    CooccurrencePattern,
    KeywordPattern,
    NumericPattern,
    OperatorKind,
    RuleTable,
    Severity,
)

logger = logging.getLogger(__name__)

EXTERNAL_RULE_ID = "external"


class ExternalServiceError(Exception):
    """Raised when the external service answers with something unusable."""
    pass


@dataclass(frozen=True)
class ExternalReviewSuccess:
    result: ReviewResult


@dataclass(frozen=True)
class ExternalReviewFailure:
    reason: str
    detail: str = ""


ExternalReviewOutcome = ExternalReviewSuccess | ExternalReviewFailure


# === Response payload ===

class IssuePayload(BaseModel):
    """One issue as returned by the model."""
    model_config = ConfigDict(populate_by_name=True)

    original_text: str = Field(alias="originalText")
    violated_clause: str = Field(alias="violatedClause")
    suggestion: str
    severity: Severity
    is_specific_operator: bool = Field(default=False, alias="isSpecificOperator")
    specific_operator_type: str | None = Field(default=None, alias="specificOperatorType")
    problem_description: str = Field(default="", alias="problemDescription")


class ReviewPayload(BaseModel):
    """Top-level review payload as returned by the model."""
    model_config = ConfigDict(populate_by_name=True)

    is_compliant: bool = Field(alias="isCompliant")
    summary: str
    total_issues: int | None = Field(default=None, alias="totalIssues")
    issues: list[IssuePayload] = Field(default_factory=list)


# System prompt for fair-competition review
REVIEW_SYSTEM_PROMPT = """你是一名专业的公平竞争审查员，请严格按照《公平竞争审查条例》和《公平竞争审查条例实施办法》对政策文件进行精准审查。

## 条款匹配体系

{rules}

## 审查执行标准
1. 原文摘录必须是完整句子，不超过200字符，避免截取片段。
2. 条款引用格式：《公平竞争审查条例实施办法》第X条第（X）项：完整条款内容。
3. 严重程度：high 表示变相确定特定经营者并给予财政支持、过高准入门槛、明确地域排斥；medium 表示单纯特定经营者概念、需论证的门槛、模糊评定标准；low 表示条件相对合理但需完善。
4. 修改建议须提供具体的量化替代方案和整改路径。

请以JSON格式返回结果：
{{
  "isCompliant": boolean,
  "summary": "审查总结，重点说明是否存在特定经营者问题及整体合规情况",
  "totalIssues": number,
  "issues": [
    {{
      "originalText": "完整的问题句子（不超过200字符）",
      "violatedClause": "《公平竞争审查条例实施办法》第X条第（X）项：完整的条款内容",
      "suggestion": "具体可操作的修改建议和替代表述",
      "severity": "high|medium|low",
      "problemDescription": "精准的问题性质描述和影响分析",
      "isSpecificOperator": boolean,
      "specificOperatorType": "直接指名|变相确定|量身定制|条件排除|其他"
    }}
  ]
}}"""

REVIEW_USER_PROMPT = """请对以下政策文档进行公平竞争审查：

{text}

请严格按照《公平竞争审查条例实施办法》进行审查，不要随意发挥或添加额外内容。"""

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def describe_rules(rule_table: RuleTable) -> str:
    """Render the rule table as the prompt's clause catalogue."""
    sections = []
    for rule in rule_table:
        matcher = rule.matcher
        if isinstance(matcher, KeywordPattern):
            hint = "关键词：" + "、".join(matcher.keywords)
        elif isinstance(matcher, NumericPattern):
            hint = "数值门槛：" + "；".join(
                f"{category}≥{bars.high}（高风险）、≥{bars.medium}（中等风险）"
                for category, bars in matcher.thresholds.items()
            )
        elif isinstance(matcher, CooccurrencePattern):
            hint = (
                "同一句中同时出现：" + "、".join(matcher.anchor_terms)
                + " 与 " + "、".join(matcher.companion_terms)
            )
        else:
            hint = ""
        sections.append(
            f"### {rule.article}（{SEVERITY_LEVELS[rule.severity.value]['label']}）\n"
            f"条款内容：{rule.clause_text}\n"
            f"{hint}"
        )
    return "\n\n".join(sections)


def parse_review_content(content: str | None, mode: ReviewMode) -> ReviewResult:
    """
    Parse the model's reply into a ReviewResult.

    Raises:
        ExternalServiceError: If no JSON object is present
        json.JSONDecodeError: If the JSON is malformed
        ValidationError: If the JSON has the wrong shape
    """
    if not content:
        raise ExternalServiceError("Empty response content")

    json_match = JSON_OBJECT_PATTERN.search(content)
    if not json_match:
        raise ExternalServiceError("No JSON object found in response")

    payload = ReviewPayload.model_validate(json.loads(json_match.group(0)))

    findings = [
        Finding(
            rule_id=EXTERNAL_RULE_ID,
            original_text=issue.original_text,
            citation=issue.violated_clause,
            suggestion=issue.suggestion,
            severity=issue.severity,
            is_specific_operator=issue.is_specific_operator,
            operator_kind=OperatorKind.from_label(issue.specific_operator_type),
            problem_description=issue.problem_description,
        )
        for issue in payload.issues
    ]

    if payload.is_compliant != (len(findings) == 0):
        logger.warning(
            f"External review flag isCompliant={payload.is_compliant} "
            f"disagrees with {len(findings)} issue(s); using the issue list"
        )

    return build_result(findings, mode=mode, summary=payload.summary)


class ExternalReviewer(ABC):
    """Interface of an external classification service."""

    @abstractmethod
    async def review_chunk(
        self,
        text: str,
        mode: ReviewMode = ReviewMode.EXTERNAL
    ) -> ExternalReviewOutcome:  # pragma: no cover - interface
        ...

    @abstractmethod
    async def check_connection(self) -> dict[str, Any]:  # pragma: no cover - interface
        ...


class DeepSeekReviewer(ExternalReviewer):
    """
    Reviews text with a DeepSeek chat model.

    The DeepSeek API is OpenAI-compatible, so the OpenAI SDK is used with
    a custom base URL.
    """

    def __init__(self, settings: Settings, rule_table: RuleTable):
        self.settings = settings
        self.model = settings.llm_model
        self.system_prompt = REVIEW_SYSTEM_PROMPT.format(rules=describe_rules(rule_table))
        self._init_llm_client()

    def _init_llm_client(self):
        """Initialize the OpenAI-compatible client."""
        self.llm_client = AsyncOpenAI(
            api_key=self.settings.deepseek_api_key,
            base_url=self.settings.deepseek_base_url.rstrip("/"),
            timeout=self.settings.llm_timeout_seconds,
            max_retries=0
        )

    async def review_chunk(
        self,
        text: str,
        mode: ReviewMode = ReviewMode.EXTERNAL
    ) -> ExternalReviewOutcome:
        """
        Submit one chunk of text for review.

        Returns:
            ExternalReviewSuccess with the parsed result, or
            ExternalReviewFailure describing why the call is unusable
        """
        logger.info(f"Submitting {len(text)} characters to {self.model}")

        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": REVIEW_USER_PROMPT.format(text=text)}
                ],
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature,
                stream=False
            )
            if not response.choices:
                raise ExternalServiceError("Response has no choices")
            content = response.choices[0].message.content
            return ExternalReviewSuccess(result=parse_review_content(content, mode))

        except OpenAIError as e:
            logger.error(f"External review request failed: {e}")
            return ExternalReviewFailure(reason="transport", detail=str(e))
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse external review JSON: {e}")
            return ExternalReviewFailure(reason="malformed_json", detail=str(e))
        except ValidationError as e:
            logger.error(f"External review payload has the wrong shape: {e}")
            return ExternalReviewFailure(reason="invalid_payload", detail=str(e))
        except ExternalServiceError as e:
            logger.error(f"External review unusable: {e}")
            return ExternalReviewFailure(reason="unusable_response", detail=str(e))

    async def check_connection(self) -> dict[str, Any]:
        """Probe the service with a minimal completion."""
        try:
            response = await self.llm_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "你好，请回复\"连接成功\""}],
                max_tokens=10,
                temperature=0.1
            )
            message = response.choices[0].message.content if response.choices else ""
            return {"connected": True, "fallback_mode": False, "message": message or ""}
        except OpenAIError as e:
            logger.warning(f"External review connection check failed: {e}")
            return {
                "connected": False,
                "fallback_mode": True,
                "message": f"连接失败，使用本地规则审查模式: {e}"
            }
