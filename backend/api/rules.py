"""
FairReview Rules API
====================
Read-only view of the rule table used by the local engine.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.dependencies import get_rule_table
from core.rules import RuleTable
from schemas import RuleListResponse, RuleSchema

router = APIRouter(prefix="/rules", tags=["Rules"])


@router.get(
    "",
    response_model=RuleListResponse,
    summary="List review rules",
    description="Every rule with its article, citation, matcher kind and base severity."
)
async def list_rules(
    rule_table: Annotated[RuleTable, Depends(get_rule_table)]
) -> RuleListResponse:
    rules = [RuleSchema(**rule.to_dict()) for rule in rule_table]
    return RuleListResponse(rules=rules, total=len(rules))
