"""가격 규칙 API 라우터"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ... import config
from ...audit import AuditEntry, AuditEventType, audit_service
from ...core.enums import RuleType
from ...core.errors import ErrorCodes, ExpressionError, PricingError
from ...core.expression import ExpressionEvaluator
from ...core.rule import Rule
from ...core.rule_io import export_rules, import_rules
from ...database import SqlRuleRepository
from ..dependencies import get_rule_repository
from ..schemas import (
    ExpressionValidationRequest,
    ExpressionValidationResponse,
    RuleImportResponse,
    RuleListResponse,
    RuleResponse,
    ErrorResponse
)

router = APIRouter()

_evaluator = ExpressionEvaluator()


def _parse_rule_type(value: Optional[str]) -> Optional[RuleType]:
    if not value:
        return None
    rule_type = RuleType.parse(value)
    if rule_type is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": ErrorCodes.Rule.INVALID_RULE_TYPE,
                "message": f"Invalid rule type: {value}",
                "errors": [f"Rule type must be one of: {', '.join(RuleType.choices())}"],
            }
        )
    return rule_type


def _rule_response(rule: Rule) -> RuleResponse:
    return RuleResponse(
        rule_id=rule.rule_id,
        country_code=rule.country_code,
        rule_type=rule.rule_type.value,
        name=rule.name,
        description=rule.description,
        expression=rule.expression,
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        priority=rule.priority,
        is_active=rule.is_active,
        parameters=[{"name": p.name, "data_type": p.data_type} for p in rule.parameters],
        conditions=[
            {"parameter": c.parameter, "operator": c.operator.value, "value": c.value}
            for c in rule.conditions
        ]
    )


@router.get("", response_model=RuleListResponse)
async def list_rules(
    country_code: Optional[str] = Query(None, description="국가 코드 필터"),
    rule_type: Optional[str] = Query(None, description="규칙 유형 필터"),
    active_only: bool = Query(False, description="활성 규칙만"),
    page: int = Query(1, ge=1),
    page_size: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    repository: SqlRuleRepository = Depends(get_rule_repository)
):
    """규칙 목록 조회 (페이지 단위)"""
    result = repository.get_paged_rules(
        page=page,
        page_size=page_size,
        country_code=country_code,
        rule_type=_parse_rule_type(rule_type),
        active_only=active_only
    )
    return RuleListResponse(
        rules=[_rule_response(rule) for rule in result.items],
        total=result.total_count,
        page=result.page,
        page_size=result.page_size
    )


@router.post("/import", response_model=RuleImportResponse, responses={400: {"model": ErrorResponse}})
async def import_rule_list(
    entries: List[Dict[str, Any]] = Body(..., description="규칙 항목 JSON 배열"),
    overwrite: bool = Query(False, description="같은 rule_id가 있으면 덮어쓰기"),
    repository: SqlRuleRepository = Depends(get_rule_repository)
):
    """규칙 가져오기

    항목별로 독립 검증하며, 일부가 실패해도 나머지는 저장됩니다.
    """
    try:
        result = import_rules(entries, repository, overwrite=overwrite)
    except PricingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_dict())

    audit_service.log_entry(AuditEntry(
        event_type=AuditEventType.RULES_IMPORTED,
        timestamp=datetime.now(),
        metadata=result.to_dict()
    ))

    return RuleImportResponse(
        total_rules=result.total_rules,
        imported_rules=result.imported_rules,
        failed_rules=result.failed_rules,
        errors=result.errors,
        imported_rule_ids=result.imported_rule_ids,
        success=result.success
    )


@router.get("/export")
async def export_rule_list(
    country_code: Optional[str] = Query(None, description="국가 코드 필터"),
    rule_type: Optional[str] = Query(None, description="규칙 유형 필터"),
    active_only: bool = Query(False, description="활성 규칙만"),
    repository: SqlRuleRepository = Depends(get_rule_repository)
) -> List[Dict[str, Any]]:
    """규칙 내보내기 (가져오기와 같은 JSON 형식)"""
    return export_rules(
        repository,
        country_code=country_code,
        rule_type=_parse_rule_type(rule_type),
        active_only=active_only
    )


@router.post("/validate-expression", response_model=ExpressionValidationResponse)
async def validate_expression(body: ExpressionValidationRequest):
    """표현식 검증 (sample_values가 있으면 시험 평가)"""
    errors = _evaluator.validation_errors(body.expression)
    if errors or body.sample_values is None:
        return ExpressionValidationResponse(is_valid=not errors, errors=errors)

    try:
        result = _evaluator.evaluate(body.expression, body.sample_values)
    except ExpressionError as e:
        return ExpressionValidationResponse(is_valid=False, errors=e.errors)

    return ExpressionValidationResponse(is_valid=True, errors=[], result=result)
