"""RuleSelector: 국가/기준일별 적용 규칙 선택"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from .enums import RuleType
from .rule import Rule


logger = logging.getLogger(__name__)


class RuleSelector:
    """규칙 스냅샷에서 적용 가능한 규칙을 선택

    계산 한 건 동안 규칙 정의는 불변 스냅샷으로 취급됩니다.
    생성 시 전달된 순서(삽입 순서)가 같은 우선순위 규칙의 동점 처리 기준이므로
    같은 스냅샷에 대해 반복 선택하면 항상 같은 순서가 나옵니다.

    Attributes:
        rules: 규칙 스냅샷 (불변 튜플)
    """

    def __init__(self, rules: Iterable[Rule]):
        """
        Args:
            rules: 규칙 목록

        Raises:
            ValueError: rules가 None인 경우 (호출자 오류)
        """
        if rules is None:
            raise ValueError("Rules collection cannot be null")
        self.rules: Tuple[Rule, ...] = tuple(rules)

    @classmethod
    def from_repository(cls, repository, country_codes: Iterable[str]) -> "RuleSelector":
        """규칙 저장소에서 요청 국가들의 규칙을 읽어 스냅샷 생성

        Args:
            repository: get_rules_by_country()를 제공하는 규칙 저장소
            country_codes: 대상 국가 코드 목록
        """
        rules: List[Rule] = []
        for country_code in dict.fromkeys(country_codes):
            rules.extend(repository.get_rules_by_country(country_code))
        return cls(rules)

    def select(self, country_code: str, as_of: date) -> List[Rule]:
        """적용 규칙 선택

        선택 조건: 국가 일치, 활성, effective_from <= as_of <= effective_to(있는 경우)
        정렬: priority 오름차순, 동점은 스냅샷 삽입 순서

        Args:
            country_code: 국가 코드
            as_of: 기준일

        Returns:
            평가 순서대로 정렬된 규칙 리스트
        """
        indexed = [
            (position, rule)
            for position, rule in enumerate(self.rules)
            if rule.applies_to(country_code, as_of)
        ]
        indexed.sort(key=lambda item: (item[1].priority, item[0]))

        selected = [rule for _, rule in indexed]
        logger.debug(
            "Selected %d of %d rules for %s as of %s",
            len(selected), len(self.rules), country_code, as_of.isoformat()
        )
        return selected

    def select_by_type(self, country_code: str, rule_type: RuleType, as_of: date) -> List[Rule]:
        """특정 유형의 적용 규칙만 선택"""
        return [rule for rule in self.select(country_code, as_of) if rule.rule_type is rule_type]

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """ID로 규칙 조회"""
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def country_codes(self) -> List[str]:
        """스냅샷에 규칙이 있는 국가 코드 목록"""
        return sorted({rule.country_code for rule in self.rules})

    def __len__(self) -> int:
        return len(self.rules)

    def __str__(self) -> str:
        return f"RuleSelector({len(self)} rules, {len(self.country_codes())} countries)"
