"""핵심 비즈니스 로직"""

from .money import Money
from .enums import RuleType, FilingFrequency, ServiceType, ConditionOperator
from .errors import (
    ErrorCodes,
    PricingError,
    ValidationError,
    DomainError,
    ExpressionError,
    RuleEvaluationError,
    CurrencyMismatchError,
)
from .expression import ExpressionEvaluator
from .rule import Rule, RuleParameter, RuleCondition
from .rule_selector import RuleSelector
from .calculation_trace import CalculationTrace, CountryCostResult
from .rule_engine import RuleEngine
from .calculation import Calculation, CalculationCountry
from .pricing_models import PricingRequest, PricingResponse, ServiceResult
from .repository import (
    Country,
    CountryRepository,
    RuleRepository,
    CalculationRepository,
    InMemoryCountryRepository,
    InMemoryRuleRepository,
    InMemoryCalculationRepository,
)
from .rule_io import RuleImportResult, import_rules, export_rules
from .pricing_service import PricingService

__all__ = [
    'Money',
    'RuleType',
    'FilingFrequency',
    'ServiceType',
    'ConditionOperator',
    'ErrorCodes',
    'PricingError',
    'ValidationError',
    'DomainError',
    'ExpressionError',
    'RuleEvaluationError',
    'CurrencyMismatchError',
    'ExpressionEvaluator',
    'Rule',
    'RuleParameter',
    'RuleCondition',
    'RuleSelector',
    'CalculationTrace',
    'CountryCostResult',
    'RuleEngine',
    'Calculation',
    'CalculationCountry',
    'PricingRequest',
    'PricingResponse',
    'ServiceResult',
    'Country',
    'CountryRepository',
    'RuleRepository',
    'CalculationRepository',
    'InMemoryCountryRepository',
    'InMemoryRuleRepository',
    'InMemoryCalculationRepository',
    'RuleImportResult',
    'import_rules',
    'export_rules',
    'PricingService',
]
