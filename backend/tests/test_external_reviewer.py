"""
Tests for the DeepSeek reviewer and its payload parsing.
"""
import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from openai import OpenAIError
from pydantic import ValidationError

from core.external_reviewer import (
    DeepSeekReviewer,
    ExternalReviewer,
    ExternalReviewFailure,
    ExternalReviewSuccess,
    ExternalServiceError,
    describe_rules,
    parse_review_content,
)
from core.review_engine import ReviewMode
from core.rules import OperatorKind, Severity

VALID_PAYLOAD = {
    "isCompliant": False,
    "summary": "发现1个问题",
    "totalIssues": 1,
    "issues": [
        {
            "originalText": "支持龙头企业发展，给予专项资金扶持。",
            "violatedClause": "《公平竞争审查条例实施办法》第十一条第（一）项：限定特定经营者",
            "suggestion": "改为客观量化标准",
            "severity": "high",
            "problemDescription": "变相确定特定经营者",
            "isSpecificOperator": True,
            "specificOperatorType": "变相确定"
        }
    ]
}


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def reviewer(settings, rule_table):
    reviewer = DeepSeekReviewer(settings.model_copy(update={"deepseek_api_key": "test-key"}), rule_table)
    reviewer.llm_client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock()))
    )
    return reviewer


class TestParseReviewContent:
    """Tests for turning the model reply into a result."""

    def test_valid_payload(self):
        result = parse_review_content(json.dumps(VALID_PAYLOAD, ensure_ascii=False), ReviewMode.EXTERNAL)

        assert result.total_issues == 1
        assert not result.is_compliant
        assert result.summary == "发现1个问题"
        issue = result.issues[0]
        assert issue.severity == Severity.HIGH
        assert issue.operator_kind == OperatorKind.INDIRECT_DESIGNATION
        assert issue.rule_id == "external"

    def test_json_embedded_in_prose(self):
        content = "审查结果如下：\n```json\n" + json.dumps(VALID_PAYLOAD) + "\n```\n以上。"

        assert parse_review_content(content, ReviewMode.EXTERNAL).total_issues == 1

    def test_compliance_derived_from_issues(self):
        payload = dict(VALID_PAYLOAD, isCompliant=True)

        result = parse_review_content(json.dumps(payload), ReviewMode.EXTERNAL)

        assert result.is_compliant is False
        assert result.total_issues == 1

    def test_optional_fields_default(self):
        payload = {
            "isCompliant": False,
            "summary": "s",
            "issues": [{
                "originalText": "原文内容示例句子。",
                "violatedClause": "条款",
                "suggestion": "建议",
                "severity": "low"
            }]
        }

        issue = parse_review_content(json.dumps(payload), ReviewMode.CHUNKED_EXTERNAL).issues[0]

        assert issue.is_specific_operator is False
        assert issue.operator_kind == OperatorKind.OTHER

    @pytest.mark.parametrize("content", [None, "", "没有任何结构化输出"])
    def test_missing_json(self, content):
        with pytest.raises(ExternalServiceError):
            parse_review_content(content, ReviewMode.EXTERNAL)

    def test_malformed_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_review_content('{"isCompliant": tru}', ReviewMode.EXTERNAL)

    @pytest.mark.parametrize("payload", [
        {"summary": "缺少合规标记"},
        {"isCompliant": False, "summary": "s", "issues": [{"originalText": "缺少其他字段"}]},
        {"isCompliant": False, "summary": "s", "issues": [dict(VALID_PAYLOAD["issues"][0], severity="critical")]},
    ])
    def test_wrong_shape(self, payload):
        with pytest.raises(ValidationError):
            parse_review_content(json.dumps(payload), ReviewMode.EXTERNAL)


class TestDeepSeekReviewer:
    """Tests for the client wrapper with a stubbed SDK."""

    def test_prompt_lists_every_rule(self, rule_table):
        catalogue = describe_rules(rule_table)

        for rule in rule_table:
            assert rule.article in catalogue
        assert "注册资本≥1000" in catalogue
        assert "### 第四十六条（中风险）" in catalogue

    def test_success(self, reviewer):
        reviewer.llm_client.chat.completions.create.return_value = _completion(json.dumps(VALID_PAYLOAD))

        outcome = asyncio.run(reviewer.review_chunk("文本", ReviewMode.CHUNKED_EXTERNAL))

        assert isinstance(outcome, ExternalReviewSuccess)
        assert outcome.result.mode == ReviewMode.CHUNKED_EXTERNAL

    @pytest.mark.parametrize("response,reason", [
        (_completion("no json here"), "unusable_response"),
        (_completion("{not json}"), "malformed_json"),
        (_completion('{"summary": "x"}'), "invalid_payload"),
        (SimpleNamespace(choices=[]), "unusable_response"),
    ])
    def test_unusable_responses(self, reviewer, response, reason):
        reviewer.llm_client.chat.completions.create.return_value = response

        outcome = asyncio.run(reviewer.review_chunk("文本"))

        assert isinstance(outcome, ExternalReviewFailure)
        assert outcome.reason == reason

    def test_transport_error(self, reviewer):
        reviewer.llm_client.chat.completions.create.side_effect = OpenAIError("connection refused")

        outcome = asyncio.run(reviewer.review_chunk("文本"))

        assert isinstance(outcome, ExternalReviewFailure)
        assert outcome.reason == "transport"

    def test_check_connection(self, reviewer):
        reviewer.llm_client.chat.completions.create.return_value = _completion("连接成功")

        status = asyncio.run(reviewer.check_connection())

        assert status == {"connected": True, "fallback_mode": False, "message": "连接成功"}

    def test_check_connection_failure(self, reviewer):
        reviewer.llm_client.chat.completions.create.side_effect = OpenAIError("timeout")

        status = asyncio.run(reviewer.check_connection())

        assert status["connected"] is False
        assert status["fallback_mode"] is True


class TestReviewerInterface:
    """Tests for the abstract reviewer contract."""

    def test_interface_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            ExternalReviewer()

    def test_incomplete_reviewer_is_rejected(self):
        class ChunkOnlyReviewer(ExternalReviewer):
            async def review_chunk(self, text, mode=ReviewMode.EXTERNAL):
                return None

        with pytest.raises(TypeError, match="check_connection"):
            ChunkOnlyReviewer()

    def test_deepseek_reviewer_is_an_external_reviewer(self, reviewer):
        assert isinstance(reviewer, ExternalReviewer)
