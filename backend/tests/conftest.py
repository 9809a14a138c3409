"""
Pytest configuration and fixtures for FairReview tests.
"""
import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Environment must be set before the app (and its cached settings) is imported
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="fairreview-tests-"))
os.environ["DEEPSEEK_API_KEY"] = ""
os.environ["API_AUTH_TOKEN"] = ""
os.environ["UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["HISTORY_DIR"] = str(_TEST_ROOT / "history")

from core.config import Settings  # noqa: E402
from core.external_reviewer import (  # noqa: E402
    ExternalReviewer,
    ExternalReviewFailure,
    ExternalReviewOutcome,
    ExternalReviewSuccess,
)
from core.matchers import Finding  # noqa: E402
from core.review_engine import ReviewEngine, ReviewMode, build_result  # noqa: E402
from core.rules import OperatorKind, RuleTable, Severity, build_default_rule_table  # noqa: E402


# === Sample documents ===

SCENARIO_A = "支持龙头企业发展，给予专项资金扶持。"
SCENARIO_B = "注册资本不少于1200万元以上的企业方可投标。"
SCENARIO_C = "本地注册并在本地缴纳税收的企业优先中标。"

COMPLIANT_TEXT = "本办法适用于本行政区域内依法设立的各类经营者，相关申报条件向社会公开。"


class FakeReviewer(ExternalReviewer):
    """
    Scripted external reviewer.

    ``respond`` receives (text, mode, call_index) and returns an outcome
    or raises.
    """

    def __init__(self, respond: Callable[[str, ReviewMode, int], ExternalReviewOutcome]):
        self.respond = respond
        self.calls: list[str] = []

    async def review_chunk(self, text, mode=ReviewMode.EXTERNAL):
        self.calls.append(text)
        return self.respond(text, mode, len(self.calls) - 1)

    async def check_connection(self):
        return {"connected": True, "fallback_mode": False, "message": "连接成功"}


def external_finding(text: str) -> Finding:
    """A finding as the external service would report it."""
    return Finding(
        rule_id="external",
        original_text=text,
        citation="《公平竞争审查条例实施办法》第十一条第（一）项：测试条款",
        suggestion="删除相关表述",
        severity=Severity.MEDIUM,
        is_specific_operator=True,
        operator_kind=OperatorKind.OTHER,
        problem_description="测试问题",
    )


def success_with(*texts: str, mode: ReviewMode = ReviewMode.EXTERNAL) -> ExternalReviewSuccess:
    findings = [external_finding(t) for t in texts]
    return ExternalReviewSuccess(result=build_result(findings, mode=mode, summary="外部审查完成"))


def failure(reason: str = "transport") -> ExternalReviewFailure:
    return ExternalReviewFailure(reason=reason, detail="scripted failure")


@pytest.fixture(scope="session")
def rule_table() -> RuleTable:
    return build_default_rule_table()


@pytest.fixture
def engine(rule_table) -> ReviewEngine:
    return ReviewEngine(rule_table)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with small chunks so chunking is easy to trigger."""
    return Settings(
        deepseek_api_key="",
        chunk_chars=40,
        upload_dir=tmp_path / "uploads",
        history_dir=tmp_path / "history",
    )


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app with a clean history."""
    from main import app

    with TestClient(app) as client:
        app.state.history.clear()
        yield client
