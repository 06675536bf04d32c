# Evaluator.py
"""
Postfix stack machine.

Every call to Evaluator.evaluate() owns its stack. Ranged functions (∑, ∏)
re-enter the whole pipeline through EvaluationContext.evaluate_expression,
which receives the raw body text and a scoped copy of the variables.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional

from . import SymbolTable as ST
from . import error as E
from .DecimalValue import DEFAULT_MATH_CONTEXT, CoordinatePair, DecimalValue, MathContext
from .ScientificEngine import DEG
from .Tokenizer import TokenType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationContext:
    math_context: MathContext = DEFAULT_MATH_CONTEXT
    trigonometric_mode: str = DEG
    locale: Any = None
    variables: Mapping[str, str] = field(default_factory=dict)
    # (expression, variables) -> DecimalValue | CoordinatePair
    evaluate_expression: Optional[Callable] = None
    max_series_iterations: int = 100000

    def scoped(self, variables):
        return replace(self, variables=variables)


def as_value(operand):
    """A coordinate pair used as an operand contributes its first component."""
    if isinstance(operand, CoordinatePair):
        return operand.x
    return operand


class Evaluator:

    def __init__(self, context=None, symbol_table=None):
        self.context = context or EvaluationContext()
        self.symbols = symbol_table or ST.get_symbol_table()

    def _operand_count(self, descriptor, token):
        if descriptor.kind == ST.VARIADIC:
            if not token.arg_count:
                raise E.MalformedExpressionError(f"'{token.value}' has no argument count.", code="3200")
            return token.arg_count
        if descriptor.kind == ST.RANGED:
            if token.body is None:
                raise E.MalformedExpressionError(f"'{token.value}' has no expression.", code="3200")
            # start and end come from the stack, the body from the token
            return descriptor.arity - 1
        return descriptor.arity

    def _reenter(self, expression, variables):
        if self.context.evaluate_expression is None:
            raise E.MalformedExpressionError("Series can not be evaluated without a pipeline.", code="3200")
        return self.context.evaluate_expression(expression, variables)

    def evaluate(self, postfix):
        context = self.context
        stack = []

        for token in postfix:
            if token.type == TokenType.NUMBER:
                stack.append(DecimalValue.parse(token.value, context.locale, context.math_context))
                continue

            if token.type not in (TokenType.OPERATOR, TokenType.FUNCTION):
                raise E.MalformedExpressionError(f"Unexpected token {token!r} in postfix.", code="3200")

            descriptor = self.symbols.get(token.value)
            if descriptor is None:
                raise E.MalformedExpressionError(f"Unknown symbol '{token.value}'.", code="3201")

            count = self._operand_count(descriptor, token)
            if len(stack) < count:
                raise E.MalformedExpressionError(
                    f"'{token.value}' needs {count} operand(s), found {len(stack)}.", code="3200")

            operands = [as_value(operand) for operand in stack[len(stack) - count:]]
            del stack[len(stack) - count:]

            if descriptor.kind == ST.RANGED:
                operands.append(token.body)
                action_context = replace(context, evaluate_expression=self._reenter)
            else:
                action_context = context

            result = descriptor.apply(operands, action_context)
            stack.append(result)

        if len(stack) != 1:
            raise E.MalformedExpressionError(f"Expected one result, found {len(stack)} values.", code="3200")
        return stack[0]


def evaluate(postfix, context=None):
    return Evaluator(context).evaluate(postfix)
