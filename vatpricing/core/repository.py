"""저장소 계약과 인메모리 구현

엔진은 국가/규칙/계산 저장소를 이 계약을 통해서만 사용합니다.
인메모리 구현은 rules/ 디렉토리의 YAML 시드 파일로 채워지며
SQLAlchemy 구현은 database 패키지에 있습니다.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from .calculation import Calculation
from .enums import FilingFrequency, RuleType
from .errors import ErrorCodes, ValidationError
from .rule import Rule, parse_bool


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Country:
    """VAT 신고 대상 국가

    Attributes:
        code: ISO-3166 alpha-2 코드
        name: 국가 이름
        currency_code: 현지 통화
        standard_vat_rate: 표준 VAT 세율 (%)
        filing_frequencies: 허용 신고 주기
        is_active: 활성 여부
    """

    code: str
    name: str
    currency_code: str
    standard_vat_rate: Decimal = Decimal('0')
    filing_frequencies: Tuple[FilingFrequency, ...] = ()
    is_active: bool = True

    def supports_frequency(self, frequency: FilingFrequency) -> bool:
        # 신고 주기 목록이 비어 있으면 모든 주기 허용
        return not self.filing_frequencies or frequency in self.filing_frequencies

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'name': self.name,
            'currencyCode': self.currency_code,
            'standardVatRate': str(self.standard_vat_rate),
            'filingFrequencies': [f.value for f in self.filing_frequencies],
            'isActive': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Country":
        frequencies = []
        for value in data.get('filing_frequencies', data.get('filingFrequencies', [])) or []:
            frequency = FilingFrequency.parse(value)
            if frequency is None:
                raise ValidationError(
                    f"Invalid filing frequency: {value}",
                    code=ErrorCodes.Pricing.INVALID_FILING_FREQUENCY
                )
            frequencies.append(frequency)

        return cls(
            code=data['code'],
            name=data.get('name', data['code']),
            currency_code=data.get('currency_code', data.get('currencyCode', 'EUR')),
            standard_vat_rate=Decimal(str(data.get('standard_vat_rate', data.get('standardVatRate', 0)))),
            filing_frequencies=tuple(frequencies),
            is_active=parse_bool(data.get('is_active', data.get('isActive')), 'isActive'),
        )


@dataclass
class Page:
    """페이지 단위 조회 결과"""
    items: List[Any] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size


class CountryRepository(ABC):
    """국가 저장소 계약"""

    @abstractmethod
    def exists_by_code(self, code: str) -> bool:
        ...

    @abstractmethod
    def get_by_codes(self, codes: Iterable[str]) -> List[Country]:
        ...

    @abstractmethod
    def get_all(self, active_only: bool = True) -> List[Country]:
        ...


class RuleRepository(ABC):
    """규칙 저장소 계약"""

    @abstractmethod
    def get_rules_by_country(self, country_code: str) -> List[Rule]:
        ...

    @abstractmethod
    def get_paged_rules(
        self,
        page: int = 1,
        page_size: int = 20,
        country_code: Optional[str] = None,
        rule_type: Optional[RuleType] = None,
        active_only: bool = False
    ) -> Page:
        ...

    @abstractmethod
    def get_by_id(self, rule_id: str) -> Optional[Rule]:
        ...

    @abstractmethod
    def add(self, rule: Rule) -> Rule:
        ...

    @abstractmethod
    def update(self, rule: Rule) -> Rule:
        ...


class CalculationRepository(ABC):
    """계산 저장소 계약"""

    @abstractmethod
    def add(self, calculation: Calculation) -> Calculation:
        ...

    @abstractmethod
    def get_by_id(self, calculation_id: str) -> Optional[Calculation]:
        ...


class InMemoryCountryRepository(CountryRepository):
    """인메모리 국가 저장소 (등록 순서 유지)"""

    def __init__(self, countries: Iterable[Country] = ()):
        self.countries: Dict[str, Country] = {}
        for country in countries:
            self.add(country)

    def add(self, country: Country) -> Country:
        self.countries[country.code] = country
        return country

    def exists_by_code(self, code: str) -> bool:
        country = self.countries.get(code)
        return country is not None and country.is_active

    def get_by_codes(self, codes: Iterable[str]) -> List[Country]:
        return [self.countries[code] for code in codes if code in self.countries]

    def get_all(self, active_only: bool = True) -> List[Country]:
        return [c for c in self.countries.values() if c.is_active or not active_only]


class InMemoryRuleRepository(RuleRepository):
    """인메모리 규칙 저장소 (삽입 순서 유지)"""

    def __init__(self, rules: Iterable[Rule] = ()):
        self.rules: Dict[str, Rule] = {}
        for rule in rules:
            self.add(rule)

    def get_rules_by_country(self, country_code: str) -> List[Rule]:
        return [r for r in self.rules.values() if r.country_code == country_code]

    def get_paged_rules(
        self,
        page: int = 1,
        page_size: int = 20,
        country_code: Optional[str] = None,
        rule_type: Optional[RuleType] = None,
        active_only: bool = False
    ) -> Page:
        matched = [
            r for r in self.rules.values()
            if (country_code is None or r.country_code == country_code)
            and (rule_type is None or r.rule_type is rule_type)
            and (r.is_active or not active_only)
        ]
        start = (max(page, 1) - 1) * page_size
        return Page(
            items=matched[start:start + page_size],
            total_count=len(matched),
            page=page,
            page_size=page_size
        )

    def get_by_id(self, rule_id: str) -> Optional[Rule]:
        return self.rules.get(rule_id)

    def add(self, rule: Rule) -> Rule:
        """규칙 추가

        Raises:
            ValidationError: 같은 rule_id가 이미 존재하는 경우
        """
        if rule.rule_id in self.rules:
            raise ValidationError(
                f"Rule {rule.rule_id} already exists",
                code=ErrorCodes.Rule.DUPLICATE_RULE_ID
            )
        self.rules[rule.rule_id] = rule
        return rule

    def update(self, rule: Rule) -> Rule:
        self.rules[rule.rule_id] = rule
        return rule

    def __len__(self) -> int:
        return len(self.rules)


class InMemoryCalculationRepository(CalculationRepository):
    """인메모리 계산 저장소"""

    def __init__(self):
        self.calculations: Dict[str, Calculation] = {}

    def add(self, calculation: Calculation) -> Calculation:
        self.calculations[calculation.calculation_id] = calculation
        return calculation

    def get_by_id(self, calculation_id: str) -> Optional[Calculation]:
        return self.calculations.get(calculation_id)


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """YAML 시드 파일 읽기

    Raises:
        ValueError: 최상위가 매핑이 아닌 경우
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Invalid seed file format: {file_path}")
    return data


def load_seed_data(rules_dir: Path) -> Tuple[List[Country], List[Rule]]:
    """rules/ 디렉토리의 모든 .yml, .yaml 파일에서 국가와 규칙 로드

    파일에는 `countries:` 와 `rules:` 목록이 있을 수 있습니다.
    읽을 수 없는 파일은 경고를 남기고 건너뜁니다.

    Args:
        rules_dir: 시드 파일 디렉토리

    Returns:
        (국가 목록, 규칙 목록)
    """
    countries: List[Country] = []
    rules: List[Rule] = []

    if not rules_dir.exists():
        logger.warning("Seed directory %s does not exist", rules_dir)
        return countries, rules

    for yaml_file in sorted(rules_dir.glob("*.y*ml")):
        try:
            data = load_yaml_file(yaml_file)
            file_countries = [Country.from_dict(c) for c in data.get('countries', []) or []]
            file_rules = [Rule.from_dict(r) for r in data.get('rules', []) or []]
        except (OSError, ValueError, KeyError, yaml.YAMLError, ValidationError) as e:
            logger.warning("Failed to load seed file %s: %s", yaml_file, e)
            continue

        countries.extend(file_countries)
        rules.extend(file_rules)
        logger.debug(
            "Loaded %d countries, %d rules from %s",
            len(file_countries), len(file_rules), yaml_file.name
        )

    return countries, rules


def build_in_memory_repositories(
    rules_dir: Path
) -> Tuple[InMemoryCountryRepository, InMemoryRuleRepository]:
    """시드 파일로 채운 인메모리 저장소 쌍 생성"""
    countries, rules = load_seed_data(rules_dir)
    return InMemoryCountryRepository(countries), InMemoryRuleRepository(rules)
