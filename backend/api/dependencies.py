"""
FairReview API Dependencies
===========================
Request-scoped access to the services built at startup, plus the token
check and per-client rate limits shared by the routers.
"""

import logging

from fastapi import HTTPException, Request, status

from core.document_parser import DocumentParser
from core.history import ReviewHistory
from core.rate_limiter import FixedWindowRateLimiter, client_id_from_headers
from core.review_service import ReviewService
from core.rules import RuleTable

logger = logging.getLogger(__name__)


def get_review_service(request: Request) -> ReviewService:
    return request.app.state.review_service


def get_history(request: Request) -> ReviewHistory:
    return request.app.state.history


def get_document_parser(request: Request) -> DocumentParser:
    return request.app.state.document_parser


def get_rule_table(request: Request) -> RuleTable:
    return request.app.state.rule_table


def get_client_id(request: Request) -> str:
    return client_id_from_headers(
        request.headers.get("x-forwarded-for"),
        request.headers.get("x-real-ip"),
        request.client.host if request.client else None
    )


def require_api_token(request: Request) -> None:
    """
    Check the X-API-Token header when a token is configured.

    Raises:
        HTTPException: 401 if the header is missing or wrong
    """
    expected = request.app.state.settings.api_auth_token
    if not expected:
        return

    if request.headers.get("x-api-token") != expected:
        logger.warning(f"Rejected request to {request.url.path}: invalid API token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Unauthorized",
                "message": "缺少或无效的 X-API-Token",
                "details": None
            }
        )


def _enforce(limiter: FixedWindowRateLimiter, request: Request) -> None:
    client_id = get_client_id(request)
    if not limiter.allow(client_id):
        logger.warning(f"Rate limit exceeded for {client_id} on {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RateLimitExceeded",
                "message": "请求过于频繁，请稍后再试",
                "details": {
                    "limit": limiter.max_requests,
                    "window_seconds": limiter.window_seconds
                }
            }
        )


def review_rate_limit(request: Request) -> None:
    _enforce(request.app.state.review_limiter, request)


def parse_rate_limit(request: Request) -> None:
    _enforce(request.app.state.parse_limiter, request)
