"""Boolean tag expressions such as ``@smoke and not (@slow or @wip)``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Union

from .errors import TagExpressionError

_PRECEDENCE = {"or": 0, "and": 1, "not": 2}
_BINARY = {"and", "or"}


@dataclass(frozen=True)
class Literal:
    tag: str

    def evaluate(self, tags: AbstractSet[str]) -> bool:
        return self.tag in tags

    def __str__(self) -> str:
        return self.tag.replace("(", "\\(").replace(")", "\\)").replace(" ", "\\ ")


@dataclass(frozen=True)
class Not:
    operand: "Expression"

    def evaluate(self, tags: AbstractSet[str]) -> bool:
        return not self.operand.evaluate(tags)

    def __str__(self) -> str:
        return f"not ( {self.operand} )"


@dataclass(frozen=True)
class And:
    left: "Expression"
    right: "Expression"

    def evaluate(self, tags: AbstractSet[str]) -> bool:
        return self.left.evaluate(tags) and self.right.evaluate(tags)

    def __str__(self) -> str:
        return f"( {self.left} and {self.right} )"


@dataclass(frozen=True)
class Or:
    left: "Expression"
    right: "Expression"

    def evaluate(self, tags: AbstractSet[str]) -> bool:
        return self.left.evaluate(tags) or self.right.evaluate(tags)

    def __str__(self) -> str:
        return f"( {self.left} or {self.right} )"


@dataclass(frozen=True)
class Always:
    def evaluate(self, tags: AbstractSet[str]) -> bool:
        return True

    def __str__(self) -> str:
        return "true"


Expression = Union[Literal, Not, And, Or, Always]


def tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char.isspace() or char in "()":
            if current:
                tokens.append("".join(current))
                current = []
            if char in "()":
                tokens.append(char)
        else:
            current.append(char)
    if escaped:
        raise TagExpressionError(f"Tag expression '{text}' ends with a dangling escape")
    if current:
        tokens.append("".join(current))
    return tokens


def parse(text: str) -> Expression:
    """Parse ``text`` into an expression tree; blank input matches everything."""

    tokens = tokenize(text)
    if not tokens:
        return Always()

    operands: list[Expression] = []
    operators: list[str] = []
    expect_operand = True

    def fail(reason: str) -> TagExpressionError:
        return TagExpressionError(f"Tag expression '{text}' could not be parsed: {reason}")

    def reduce() -> None:
        operator = operators.pop()
        if operator == "not":
            if not operands:
                raise fail("'not' is missing its operand")
            operands.append(Not(operands.pop()))
            return
        if len(operands) < 2:
            raise fail(f"'{operator}' is missing an operand")
        right = operands.pop()
        left = operands.pop()
        operands.append(And(left, right) if operator == "and" else Or(left, right))

    for token in tokens:
        if token == "(":
            if not expect_operand:
                raise fail("expected an operator before '('")
            operators.append(token)
        elif token == ")":
            if expect_operand:
                raise fail("expected a tag before ')'")
            while operators and operators[-1] != "(":
                reduce()
            if not operators:
                raise fail("unmatched ')'")
            operators.pop()
        elif token == "not":
            if not expect_operand:
                raise fail("expected an operator before 'not'")
            operators.append(token)
        elif token in _BINARY:
            if expect_operand:
                raise fail(f"expected a tag before '{token}'")
            while (
                operators
                and operators[-1] != "("
                and _PRECEDENCE[operators[-1]] >= _PRECEDENCE[token]
            ):
                reduce()
            operators.append(token)
            expect_operand = True
        else:
            if not expect_operand:
                raise fail(f"expected an operator before '{token}'")
            operands.append(Literal(token))
            expect_operand = False

    if expect_operand:
        raise fail("expression ends without a tag")
    while operators:
        if operators[-1] == "(":
            raise fail("unmatched '('")
        reduce()
    if len(operands) != 1:  # pragma: no cover - guarded by the checks above
        raise fail("dangling operands")
    return operands[0]
