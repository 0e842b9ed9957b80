"""규칙 가져오기/내보내기 (JSON)"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .enums import RuleType
from .errors import ErrorCodes, PricingError, ValidationError
from .repository import RuleRepository
from .rule import Rule
from .validation import validate_rule


logger = logging.getLogger(__name__)

EXPORT_PAGE_SIZE = 500


@dataclass
class RuleImportResult:
    """가져오기 결과

    Attributes:
        total_rules: 입력 항목 수
        imported_rules: 저장된 규칙 수
        failed_rules: 실패한 항목 수
        errors: 항목별 에러 메시지 ("Rule {index}: ..." 형식)
        imported_rule_ids: 저장된 규칙 ID
    """

    total_rules: int = 0
    imported_rules: int = 0
    failed_rules: int = 0
    errors: List[str] = field(default_factory=list)
    imported_rule_ids: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_rules == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalRules': self.total_rules,
            'importedRules': self.imported_rules,
            'failedRules': self.failed_rules,
            'errors': list(self.errors),
            'importedRuleIds': list(self.imported_rule_ids),
            'success': self.success,
        }


def parse_rules_json(payload: Union[str, bytes, List[Any]]) -> List[Any]:
    """JSON 텍스트(또는 이미 파싱된 목록)를 규칙 항목 목록으로 변환

    Raises:
        ValidationError: JSON이 아니거나 최상위가 목록이 아닌 경우
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(
                "Rule import payload is not valid JSON",
                code=ErrorCodes.Rule.RULE_IMPORT_FAILED,
                errors=[str(e)]
            )

    if not isinstance(payload, list):
        raise ValidationError(
            "Rule import payload must be a JSON array",
            code=ErrorCodes.Rule.RULE_IMPORT_FAILED
        )
    return payload


def import_rules(
    payload: Union[str, bytes, List[Any]],
    repository: RuleRepository,
    overwrite: bool = False
) -> RuleImportResult:
    """규칙 가져오기

    항목마다 독립적으로 검증하고 저장합니다. 한 항목의 실패가
    다른 항목의 가져오기를 막지 않습니다.

    Args:
        payload: 규칙 항목 JSON 배열
        repository: 저장할 규칙 저장소
        overwrite: 같은 rule_id가 있으면 덮어쓸지 여부

    Returns:
        가져오기 결과
    """
    entries = parse_rules_json(payload)
    result = RuleImportResult(total_rules=len(entries))

    for index, entry in enumerate(entries, 1):
        errors = validate_rule(entry)
        rule: Optional[Rule] = None

        if not errors:
            try:
                rule = Rule.from_dict(entry)
                if repository.get_by_id(rule.rule_id) is not None:
                    if not overwrite:
                        raise ValidationError(
                            f"Rule {rule.rule_id} already exists",
                            code=ErrorCodes.Rule.DUPLICATE_RULE_ID
                        )
                    repository.update(rule)
                else:
                    repository.add(rule)
            except PricingError as e:
                errors = e.errors

        if errors:
            result.failed_rules += 1
            result.errors.append(f"Rule {index}: {'; '.join(errors)}")
            logger.warning("Rule import entry %d rejected: %s", index, '; '.join(errors))
            continue

        result.imported_rules += 1
        result.imported_rule_ids.append(rule.rule_id)

    logger.info(
        "Rule import finished: %d imported, %d failed (of %d)",
        result.imported_rules, result.failed_rules, result.total_rules
    )
    return result


def export_rules(
    repository: RuleRepository,
    country_code: Optional[str] = None,
    rule_type: Optional[RuleType] = None,
    active_only: bool = False
) -> List[Dict[str, Any]]:
    """규칙 내보내기 (가져오기와 같은 JSON 형식)"""
    exported: List[Dict[str, Any]] = []
    page = 1
    while True:
        result = repository.get_paged_rules(
            page=page,
            page_size=EXPORT_PAGE_SIZE,
            country_code=country_code,
            rule_type=rule_type,
            active_only=active_only
        )
        exported.extend(rule.to_dict() for rule in result.items)
        if page >= result.total_pages:
            break
        page += 1
    return exported


def export_rules_json(
    repository: RuleRepository,
    country_code: Optional[str] = None,
    rule_type: Optional[RuleType] = None,
    active_only: bool = False
) -> str:
    return json.dumps(
        export_rules(repository, country_code, rule_type, active_only),
        ensure_ascii=False,
        indent=2
    )
