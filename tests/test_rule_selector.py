"""Rule 모델과 RuleSelector 테스트"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date

from vatpricing.core import (
    Rule,
    RuleCondition,
    RuleSelector,
    RuleType,
    ConditionOperator,
    ValidationError,
    ErrorCodes,
    InMemoryRuleRepository,
)


def make_rule(rule_id, country_code="GB", priority=100, **overrides):
    data = dict(
        rule_id=rule_id,
        country_code=country_code,
        rule_type=RuleType.VAT_RATE,
        name=f"Rule {rule_id}",
        expression="basePrice * 2",
        effective_from=date(2024, 1, 1),
        priority=priority,
    )
    data.update(overrides)
    return Rule(**data)


AS_OF = date(2024, 6, 1)


class TestRule:
    """Rule 모델 테스트"""

    def test_create_rule(self):
        rule = make_rule("GB-1", rule_type="Threshold")
        assert rule.rule_type is RuleType.THRESHOLD
        assert rule.is_active is True
        assert rule.conditions == ()

    def test_invalid_rule_type(self):
        with pytest.raises(ValidationError) as exc_info:
            make_rule("GB-1", rule_type="Surcharge")
        assert exc_info.value.code == ErrorCodes.Rule.INVALID_RULE_TYPE

    def test_effective_range_validated(self):
        """effective_from > effective_to 는 생성 시 오류"""
        with pytest.raises(ValidationError):
            make_rule("GB-1", effective_from=date(2024, 6, 1), effective_to=date(2024, 1, 1))

    def test_rule_is_immutable(self):
        rule = make_rule("GB-1")
        with pytest.raises(FrozenInstanceError):
            rule.priority = 5

    def test_with_changes_and_deactivate(self):
        """수정은 새 객체로"""
        rule = make_rule("GB-1")
        changed = rule.with_changes(priority=5, expression="basePrice * 3")
        retired = rule.deactivate()

        assert rule.priority == 100
        assert changed.priority == 5
        assert changed.expression == "basePrice * 3"
        assert retired.is_active is False
        assert rule.is_active is True

    def test_condition_operator_parsed(self):
        condition = RuleCondition("serviceType", "Equals", "ComplexFiling")
        assert condition.operator is ConditionOperator.EQUALS

    def test_invalid_condition_operator(self):
        with pytest.raises(ValidationError) as exc_info:
            RuleCondition("serviceType", "like", "Complex")
        assert exc_info.value.code == ErrorCodes.Rule.INVALID_OPERATOR

    def test_dict_round_trip_keys(self):
        """JSON(camelCase) 형식 변환"""
        rule = make_rule(
            "GB-1",
            conditions=(RuleCondition("transactionVolume", "greaterThan", 1000),),
            effective_to=date(2024, 12, 31)
        )
        data = rule.to_dict()

        assert data['ruleId'] == "GB-1"
        assert data['ruleType'] == "VatRate"
        assert data['effectiveFrom'] == "2024-01-01"
        assert data['effectiveTo'] == "2024-12-31"
        assert data['conditions'][0]['operator'] == "greaterThan"
        assert Rule.from_dict(data) == rule

    def test_from_dict_snake_case(self):
        """YAML(snake_case) 키도 허용"""
        rule = Rule.from_dict({
            "rule_id": "DE-1",
            "country_code": "DE",
            "rule_type": "Complexity",
            "expression": "basePrice * 1.25",
            "effective_from": "2024-01-01",
        })
        assert rule.rule_type is RuleType.COMPLEXITY
        assert rule.priority == 100

    def test_from_dict_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            Rule.from_dict({"ruleId": "X"})
        assert "Missing required field: expression" in exc_info.value.errors


class TestRuleSelector:
    """RuleSelector 테스트"""

    def test_selects_country_rules_in_priority_order(self):
        selector = RuleSelector([
            make_rule("GB-3", priority=30),
            make_rule("DE-1", country_code="DE", priority=1),
            make_rule("GB-1", priority=10),
            make_rule("GB-2", priority=20),
        ])

        selected = selector.select("GB", AS_OF)
        assert [r.rule_id for r in selected] == ["GB-1", "GB-2", "GB-3"]

    def test_ties_broken_by_insertion_order(self):
        """같은 우선순위는 삽입 순서"""
        selector = RuleSelector([
            make_rule("GB-B", priority=10),
            make_rule("GB-A", priority=10),
            make_rule("GB-C", priority=10),
        ])

        selected = [r.rule_id for r in selector.select("GB", AS_OF)]
        assert selected == ["GB-B", "GB-A", "GB-C"]

    def test_ordering_is_deterministic(self):
        rules = [make_rule(f"GB-{i}", priority=i % 3) for i in range(10)]
        selector = RuleSelector(rules)

        first = [r.rule_id for r in selector.select("GB", AS_OF)]
        for _ in range(5):
            assert [r.rule_id for r in selector.select("GB", AS_OF)] == first

    def test_excludes_future_rules(self):
        """effective_from > as_of 제외"""
        selector = RuleSelector([make_rule("GB-1", effective_from=date(2024, 7, 1))])
        assert selector.select("GB", AS_OF) == []

    def test_excludes_expired_rules(self):
        """effective_to < as_of 제외"""
        selector = RuleSelector([
            make_rule("GB-1", effective_from=date(2023, 1, 1), effective_to=date(2024, 5, 31))
        ])
        assert selector.select("GB", AS_OF) == []

    def test_effective_dates_are_inclusive(self):
        """시작일과 종료일 당일은 포함"""
        selector = RuleSelector([
            make_rule("GB-1", effective_from=AS_OF, effective_to=AS_OF)
        ])
        assert len(selector.select("GB", AS_OF)) == 1

    def test_excludes_inactive_rules(self):
        selector = RuleSelector([make_rule("GB-1").deactivate(), make_rule("GB-2")])
        assert [r.rule_id for r in selector.select("GB", AS_OF)] == ["GB-2"]

    def test_select_by_type(self):
        selector = RuleSelector([
            make_rule("GB-1"),
            make_rule("GB-2", rule_type=RuleType.COMPLEXITY),
        ])
        selected = selector.select_by_type("GB", RuleType.COMPLEXITY, AS_OF)
        assert [r.rule_id for r in selected] == ["GB-2"]

    def test_snapshot_is_immutable(self):
        """선택기는 전달받은 목록의 이후 변경에 영향받지 않음"""
        rules = [make_rule("GB-1")]
        selector = RuleSelector(rules)
        rules.append(make_rule("GB-2"))

        assert len(selector) == 1
        assert isinstance(selector.rules, tuple)

    def test_null_rules_rejected(self):
        with pytest.raises(ValueError):
            RuleSelector(None)

    def test_from_repository(self):
        repository = InMemoryRuleRepository([
            make_rule("GB-1"),
            make_rule("DE-1", country_code="DE"),
            make_rule("FR-1", country_code="FR"),
        ])
        selector = RuleSelector.from_repository(repository, ["GB", "DE", "GB"])

        assert len(selector) == 2
        assert selector.country_codes() == ["DE", "GB"]
        assert selector.get_rule("FR-1") is None
