"""ExpressionEvaluator: 제한된 산술/조건 표현식 평가기

허용 문법 (닫힌 문법, 코드 실행 경로 없음):

    expression  := ternary
    ternary     := comparison [ '?' comparison ':' comparison ]
    comparison  := additive [ ('==' | '!=' | '<' | '>' | '<=' | '>=') additive ]
    additive    := term (('+' | '-') term)*
    term        := unary (('*' | '/' | '%') unary)*
    unary       := ('-' | '+') unary | primary
    primary     := NUMBER | IDENTIFIER | '(' ternary ')'

삼항 연산자는 한 단계만 허용되며, 비교 결과는 1 또는 0 입니다.
모든 연산은 Decimal로 수행되어 통화 계산의 반올림 오차를 피합니다.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, DecimalException
from typing import Any, List, Mapping, Optional, Union

from .errors import ErrorCodes, ExpressionError


OPERATORS = ('+', '-', '*', '/', '%', '==', '!=', '<', '>', '<=', '>=')
COMPARISON_OPERATORS = ('==', '!=', '<', '>', '<=', '>=')

# 네임스페이스/리플렉션/프로세스/파일시스템 접근으로 보이는 토큰
UNSAFE_PATTERNS = (
    re.compile(r"__"),
    re.compile(r"\bimport\b"),
    re.compile(r"\beval\b"),
    re.compile(r"\bexec\b"),
    re.compile(r"\bopen\b"),
    re.compile(r"\blambda\b"),
    re.compile(r"\bgetattr\b"),
    re.compile(r"\bglobals\b"),
    re.compile(r"\b(?:os|sys|subprocess|System|Process|File|Directory|Environment)\s*\."),
    re.compile(r"Reflection"),
    re.compile(r"Assembly"),
    re.compile(r"\bInvoke\b"),
)

MAX_EXPRESSION_LENGTH = 2000

_TOKEN_PATTERN = re.compile(
    r"\s*(?:"
    r"(?P<number>\d+(?:\.\d+)?|\.\d+)"
    r"|(?P<identifier>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<operator>==|!=|<=|>=|[-+*/%<>?:()])"
    r")"
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


# AST 노드

@dataclass(frozen=True)
class Number:
    value: Decimal


@dataclass(frozen=True)
class Reference:
    name: str


@dataclass(frozen=True)
class Unary:
    operator: str
    operand: "Node"


@dataclass(frozen=True)
class Binary:
    operator: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Conditional:
    condition: "Node"
    when_true: "Node"
    when_false: "Node"


Node = Union[Number, Reference, Unary, Binary, Conditional]


def tokenize(expression: str) -> List[Token]:
    """표현식을 토큰 리스트로 분리

    Raises:
        ExpressionError: 문법 밖의 문자가 포함된 경우
    """
    tokens = []
    position = 0
    length = len(expression)

    while position < length:
        if expression[position:].strip() == "":
            break

        match = _TOKEN_PATTERN.match(expression, position)
        if not match or match.end() == position:
            raise ExpressionError(
                "Expression has invalid syntax",
                errors=[f"Unexpected character '{expression[position:].strip()[0]}' at position {position}"]
            )

        kind = match.lastgroup
        tokens.append(Token(kind=kind, text=match.group(kind), position=match.start(kind)))
        position = match.end()

    return tokens


class _Parser:
    """재귀 하강 파서 (토큰 리스트 → AST)"""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.index = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise ExpressionError("Expression cannot be empty", errors=["Expression is required"])

        node = self._ternary()
        if self.index != len(self.tokens):
            token = self.tokens[self.index]
            raise self._error(f"Unexpected token '{token.text}' at position {token.position}")
        if _ternary_depth(node) > 1:
            raise self._error("Nested conditional expressions are not supported")
        return node

    def _peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _accept(self, *texts: str) -> Optional[Token]:
        token = self._peek()
        if token is not None and token.kind == 'operator' and token.text in texts:
            self.index += 1
            return token
        return None

    def _expect(self, text: str) -> Token:
        token = self._accept(text)
        if token is None:
            found = self._peek()
            where = f"'{found.text}' at position {found.position}" if found else "end of expression"
            raise self._error(f"Expected '{text}' but found {where}")
        return token

    def _error(self, detail: str) -> ExpressionError:
        return ExpressionError("Expression has invalid syntax", errors=[detail])

    def _ternary(self) -> Node:
        condition = self._comparison()
        token = self._accept('?')
        if token is None:
            return condition

        when_true = self._comparison()
        self._expect(':')
        when_false = self._comparison()
        return Conditional(condition, when_true, when_false)

    def _comparison(self) -> Node:
        left = self._additive()
        token = self._accept(*COMPARISON_OPERATORS)
        if token is None:
            return left
        right = self._additive()
        if self._peek() is not None and self._peek().text in COMPARISON_OPERATORS:
            raise self._error("Chained comparisons are not supported")
        return Binary(token.text, left, right)

    def _additive(self) -> Node:
        node = self._term()
        while True:
            token = self._accept('+', '-')
            if token is None:
                return node
            node = Binary(token.text, node, self._term())

    def _term(self) -> Node:
        node = self._unary()
        while True:
            token = self._accept('*', '/', '%')
            if token is None:
                return node
            node = Binary(token.text, node, self._unary())

    def _unary(self) -> Node:
        token = self._accept('-', '+')
        if token is not None:
            return Unary(token.text, self._unary())
        return self._primary()

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of expression")

        if token.kind == 'number':
            self.index += 1
            return Number(Decimal(token.text))

        if token.kind == 'identifier':
            self.index += 1
            return Reference(token.text)

        if self._accept('('):
            node = self._ternary()
            self._expect(')')
            return node

        raise self._error(f"Unexpected token '{token.text}' at position {token.position}")


def _ternary_depth(node: Node) -> int:
    """AST 안에서 삼항 연산자가 중첩된 최대 깊이"""
    if isinstance(node, Conditional):
        return 1 + max(
            _ternary_depth(node.condition),
            _ternary_depth(node.when_true),
            _ternary_depth(node.when_false),
        )
    if isinstance(node, Unary):
        return _ternary_depth(node.operand)
    if isinstance(node, Binary):
        return max(_ternary_depth(node.left), _ternary_depth(node.right))
    return 0


def parse(expression: str) -> Node:
    """표현식을 AST로 파싱"""
    return _Parser(tokenize(expression)).parse()


class ExpressionEvaluator:
    """제한된 문법의 표현식 평가기

    상태를 갖지 않으므로 여러 계산에서 동시에 공유할 수 있습니다.

    Example:
        >>> ExpressionEvaluator().evaluate("basePrice * 0.2", {"basePrice": 100})
        Decimal('20.0')
    """

    def validation_errors(self, expression: str) -> List[str]:
        """평가 전 검증 규칙 위반 목록

        Args:
            expression: 검증할 표현식

        Returns:
            에러 메시지 리스트 (비어 있으면 유효)
        """
        if expression is None or not str(expression).strip():
            return ["Expression is required"]
        if not isinstance(expression, str):
            return ["Expression must be a string"]

        errors = []

        if len(expression) > MAX_EXPRESSION_LENGTH:
            errors.append(f"Expression cannot exceed {MAX_EXPRESSION_LENGTH} characters")

        open_count = 0
        for char in expression:
            if char == '(':
                open_count += 1
            elif char == ')':
                open_count -= 1
            if open_count < 0:
                break
        if open_count != 0:
            errors.append("Expression has unbalanced parentheses")

        if not any(op in expression for op in OPERATORS):
            errors.append("Expression must contain valid operators")

        if any(pattern.search(expression) for pattern in UNSAFE_PATTERNS):
            errors.append("Expression contains potentially unsafe code")

        if not errors:
            try:
                parse(expression)
            except ExpressionError as e:
                errors.extend(e.errors)

        return errors

    def validate(self, expression: str) -> bool:
        return not self.validation_errors(expression)

    def evaluate(self, expression: str, parameters: Optional[Mapping[str, Any]] = None) -> Decimal:
        """표현식 평가

        Args:
            expression: 평가할 표현식
            parameters: 파라미터 이름 → 값 매핑

        Returns:
            Decimal 결과

        Raises:
            ExpressionError: 검증 실패, 알 수 없는 파라미터, 0으로 나누기
        """
        errors = self.validation_errors(expression)
        if errors:
            raise ExpressionError(f"Invalid expression: {expression}", errors=errors)

        return self._evaluate_node(parse(expression), parameters or {})

    def _evaluate_node(self, node: Node, parameters: Mapping[str, Any]) -> Decimal:
        if isinstance(node, Number):
            return node.value

        if isinstance(node, Reference):
            if node.name not in parameters:
                raise ExpressionError(
                    f"Parameter not found: {node.name}",
                    code=ErrorCodes.Rule.RULE_VALIDATION_FAILED
                )
            return to_decimal(parameters[node.name], node.name)

        if isinstance(node, Unary):
            operand = self._evaluate_node(node.operand, parameters)
            return -operand if node.operator == '-' else operand

        if isinstance(node, Conditional):
            condition = self._evaluate_node(node.condition, parameters)
            branch = node.when_true if condition != 0 else node.when_false
            return self._evaluate_node(branch, parameters)

        left = self._evaluate_node(node.left, parameters)
        right = self._evaluate_node(node.right, parameters)
        return _apply_operator(node.operator, left, right)


def _apply_operator(operator: str, left: Decimal, right: Decimal) -> Decimal:
    if operator in ('/', '%') and right == 0:
        raise ExpressionError(
            "Division by zero is not allowed",
            code=ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED
        )
    try:
        return _arithmetic(operator, left, right)
    except DecimalException as e:
        raise ExpressionError(
            f"Arithmetic error: {e}",
            code=ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED
        )


def _arithmetic(operator: str, left: Decimal, right: Decimal) -> Decimal:
    if operator == '+':
        return left + right
    if operator == '-':
        return left - right
    if operator == '*':
        return left * right
    if operator == '/':
        return left / right
    if operator == '%':
        return left % right

    comparisons = {
        '==': left == right,
        '!=': left != right,
        '<': left < right,
        '>': left > right,
        '<=': left <= right,
        '>=': left >= right,
    }
    if operator not in comparisons:
        raise ExpressionError(f"Unknown operator: {operator}")
    return Decimal(1) if comparisons[operator] else Decimal(0)


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """파라미터 값을 Decimal로 변환

    int/Decimal/float(문자열 경유)/숫자 문자열/bool(1, 0)을 지원합니다.
    NaN, Infinity 같은 유한하지 않은 값은 거부합니다.
    """
    result: Optional[Decimal] = None
    if isinstance(value, bool):
        result = Decimal(1) if value else Decimal(0)
    elif isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except DecimalException:
            result = None

    if result is None or not result.is_finite():
        raise ExpressionError(
            f"Cannot convert value to decimal: {name}={value!r}",
            code=ErrorCodes.Pricing.EXPRESSION_EVALUATION_FAILED
        )
    return result


_default_evaluator = ExpressionEvaluator()


def evaluate(expression: str, parameters: Optional[Mapping[str, Any]] = None) -> Decimal:
    """기본 평가기로 표현식 평가"""
    return _default_evaluator.evaluate(expression, parameters)


def validate(expression: str) -> bool:
    """기본 평가기로 표현식 검증"""
    return _default_evaluator.validate(expression)
