# SymbolTable.py
"""
Registry of every operator, function and constant the engine understands.

Each symbol is described by one SymbolDescriptor record (symbol, arity,
precedence, associativity, kind, action). The different categories
(binary operators, trigonometric functions, coordinate functions, variadic
and ranged functions, constants) are just constructor functions producing
that same record.

The table is built once when the module is imported and exposed through a
read-only mapping, so it can be shared by all engines and threads.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable

from . import ScientificEngine
from . import error as E
from .DecimalValue import DecimalValue

logger = logging.getLogger(__name__)

LEFT = "LEFT"
RIGHT = "RIGHT"

# Descriptor kinds
OPERATOR = "operator"
POSTFIX = "postfix"
FUNCTION = "function"
VARIADIC = "variadic"
RANGED = "ranged"
CONSTANT = "constant"

FUNCTION_KINDS = (FUNCTION, VARIADIC, RANGED)

# Loop variable of ∑ / ∏
INDEX_VARIABLE = "k"

# Internal unary minus, produced by the tokenizer for "-(...)" / "-sin(...)".
# Not matchable in input and free to use as a variable name.
NEGATE = "neg"

ABSOLUTE_BAR = "|"
SEPARATOR = ";"
LEFT_PAREN = "("
RIGHT_PAREN = ")"


@dataclass(frozen=True)
class SymbolDescriptor:
    symbol: str
    arity: int
    precedence: int
    associativity: str
    kind: str
    action: Callable

    @property
    def is_function(self):
        return self.kind in FUNCTION_KINDS

    @property
    def is_postfix(self):
        return self.kind == POSTFIX

    @property
    def is_right_associative(self):
        return self.associativity == RIGHT

    def apply(self, operands, context):
        return self.action(operands, context)


# -----------------------------
# Descriptor constructors
# -----------------------------

def binary_operator(symbol, precedence, operation, associativity=LEFT):
    """Infix operator; operation(left, right, math_context)."""
    return SymbolDescriptor(symbol, 2, precedence, associativity, OPERATOR,
                            lambda operands, context: operation(operands[0], operands[1], context.math_context))


def postfix_operator(symbol, precedence, operation):
    return SymbolDescriptor(symbol, 1, precedence, LEFT, POSTFIX,
                            lambda operands, context: operation(operands[0], context.math_context))


def function(symbol, operation, arity=1, precedence=6):
    """Plain function; operation(*operands, math_context)."""
    return SymbolDescriptor(symbol, arity, precedence, LEFT, FUNCTION,
                            lambda operands, context: operation(*operands, context.math_context))


def angle_function(symbol, operation, arity=1):
    """Function whose input or output is an angle; also receives the DEG/RAD mode."""
    return SymbolDescriptor(symbol, arity, 6, LEFT, FUNCTION,
                            lambda operands, context: operation(*operands, context.math_context,
                                                                context.trigonometric_mode))


def variadic_function(symbol, operation):
    """Function over any number (>= 1) of ';'-separated arguments."""
    return SymbolDescriptor(symbol, 1, 6, LEFT, VARIADIC,
                            lambda operands, context: operation(list(operands), context.math_context))


def ranged_function(symbol, combine, neutral):
    """∑ / ∏ style function over (start; end; expression)."""
    return SymbolDescriptor(symbol, 3, 6, LEFT, RANGED, _series(combine, neutral))


def constant(symbol, producer):
    return SymbolDescriptor(symbol, 0, 0, LEFT, CONSTANT,
                            lambda operands, context: producer(context.math_context, context.locale))


def _series(combine, neutral):
    def action(operands, context):
        start, end, body = operands
        if not start.is_integer() or not end.is_integer():
            raise E.DomainError("Series bounds must be integers.", code="2012")
        if start > end:
            raise E.DomainError("Series end must not be smaller than its start.", code="2012")

        first = start.to_int()
        last = end.to_int()
        if last - first + 1 > context.max_series_iterations:
            raise E.DomainError("Series has too many terms.", code="2013")

        policy = context.math_context
        result = DecimalValue(neutral, policy, context.locale)
        for index in range(first, last + 1):
            # every term gets its own copy of the variables with k layered on top
            scoped_variables = dict(context.variables)
            scoped_variables[INDEX_VARIABLE] = str(index)
            term = context.evaluate_expression(body, scoped_variables)
            if not isinstance(term, DecimalValue):
                term = term.x
            result = combine(result, term, policy)
        return result

    return action


def _add(a, b, policy):
    return a.add(b, policy)


def _subtract(a, b, policy):
    return a.subtract(b, policy)


def _multiply(a, b, policy):
    return a.multiply(b, policy)


def _divide(a, b, policy):
    return a.divide(b, policy)


def _modulo(a, b, policy):
    return a.modulo(b, policy)


def _power(a, b, policy):
    return a.power(b, policy)


def _negate(value, policy):
    return value.negate()


def _absolute(value, policy):
    return value.abs()


# -----------------------------
# Table
# -----------------------------

class SymbolTable:
    """Read-only symbol -> descriptor mapping with longest-match lookup."""

    def __init__(self, descriptors, ranged_aliases=None, internal=()):
        symbols = {}
        for descriptor in descriptors:
            if descriptor.symbol in symbols:
                raise ValueError(f"Duplicate symbol: {descriptor.symbol}")
            symbols[descriptor.symbol] = descriptor
        self._symbols = MappingProxyType(symbols)
        self._ranged_aliases = MappingProxyType(dict(ranged_aliases or {}))
        # produced by the tokenizer only, never matched in input
        self._internal = frozenset(internal)
        self._max_length = max(len(symbol) for symbol in symbols if symbol not in self._internal)
        self._constants_lower = MappingProxyType(
            {symbol.lower(): descriptor for symbol, descriptor in symbols.items() if descriptor.kind == CONSTANT}
        )

    def __contains__(self, symbol):
        return symbol in self._symbols

    def __getitem__(self, symbol):
        return self._symbols[symbol]

    def __iter__(self):
        return iter(self._symbols)

    def __len__(self):
        return len(self._symbols)

    def get(self, symbol):
        return self._symbols.get(symbol)

    @property
    def max_symbol_length(self):
        return self._max_length

    @property
    def ranged_aliases(self):
        """Variadic symbols that turn into a ranged function for (start; end; expression)."""
        return self._ranged_aliases

    def match(self, text, index):
        """Longest symbol starting at text[index] ("sinh" wins over "sin"), or None.

        A name ending in a digit does not match when another digit follows,
        so "log100" is log(100) and not log10(0).
        """
        longest = min(self._max_length, len(text) - index)
        for length in range(longest, 0, -1):
            candidate = text[index:index + length]
            if candidate in self._internal:
                continue
            following = text[index + length:index + length + 1]
            if candidate[-1].isdigit() and following.isdigit():
                continue
            descriptor = self._symbols.get(candidate)
            if descriptor is None:
                # pi / PI / Pi, e / E
                descriptor = self._constants_lower.get(candidate.lower())
            if descriptor is not None:
                return descriptor
        return None


def _build():
    S = ScientificEngine
    descriptors = [
        # --- Constants ---
        constant("pi", S.pi_value),
        constant("π", S.pi_value),
        constant("e", S.e_value),

        # --- Arithmetic operators ---
        binary_operator("+", 2, _add),
        binary_operator("-", 2, _subtract),
        binary_operator("*", 3, _multiply),
        binary_operator("×", 3, _multiply),
        binary_operator("/", 3, _divide),
        binary_operator("÷", 3, _divide),
        binary_operator("%", 3, _modulo),
        binary_operator("^", 4, _power, associativity=RIGHT),
        binary_operator("nPr", 6, S.permutation),
        binary_operator("nCr", 6, S.combination),
        postfix_operator("!", 5, S.factorial),

        # --- Roots ---
        function("sqrt", S.square_root),
        function("√", S.square_root),
        function("cbrt", S.cubic_root),
        function("³√", S.cubic_root),
        function("rootn", S.nth_root, arity=2),

        # --- Logarithms ---
        function("log2", S.log2),
        function("log10", S.log10),
        function("log", S.log10),
        function("ln", S.ln),
        function("logbase", S.log_base, arity=2),

        # --- Trigonometry ---
        angle_function("sin", S.sin),
        angle_function("cos", S.cos),
        angle_function("tan", S.tan),
        angle_function("cot", S.cot),
        angle_function("asin", S.asin),
        angle_function("acos", S.acos),
        angle_function("atan", S.atan),
        angle_function("acot", S.acot),
        angle_function("sin⁻¹", S.asin),
        angle_function("cos⁻¹", S.acos),
        angle_function("tan⁻¹", S.atan),
        angle_function("cot⁻¹", S.acot),
        angle_function("atan2", S.atan2, arity=2),
        angle_function("tan2⁻¹", S.atan2, arity=2),

        # --- Hyperbolic ---
        function("sinh", S.sinh),
        function("cosh", S.cosh),
        function("tanh", S.tanh),
        function("coth", S.coth),
        function("asinh", S.asinh),
        function("acosh", S.acosh),
        function("atanh", S.atanh),
        function("acoth", S.acoth),
        function("sinh⁻¹", S.asinh),
        function("cosh⁻¹", S.acosh),
        function("tanh⁻¹", S.atanh),
        function("coth⁻¹", S.acoth),

        # --- Combinatorics / number theory / random ---
        function("comb", S.combination, arity=2),
        function("perm", S.permutation, arity=2),
        function("GCD", S.gcd, arity=2),
        function("gcd", S.gcd, arity=2),
        function("LCM", S.lcm, arity=2),
        function("lcm", S.lcm, arity=2),
        function("RandInt", S.random_integer, arity=2),

        # --- Coordinates ---
        angle_function("Pol", S.cartesian_to_polar, arity=2),
        angle_function("Rec", S.polar_to_cartesian, arity=2),

        # --- Special functions ---
        function("Γ", S.gamma),
        function("gamma", S.gamma),
        function("B", S.beta, arity=2),
        function("beta", S.beta, arity=2),

        # --- Absolute value / negation ---
        function("abs", _absolute),
        function(NEGATE, _negate),

        # --- Statistics ---
        variadic_function("sum", S.total),
        variadic_function("avg", S.average),
        variadic_function("average", S.average),
        variadic_function("median", S.median),

        # --- Series ---
        ranged_function("∑", _add, 0),
        ranged_function("∏", _multiply, 1),
        ranged_function("prod", _multiply, 1),
    ]
    table = SymbolTable(descriptors, ranged_aliases={"sum": "∑"}, internal=(NEGATE,))
    logger.debug("Symbol table built with %d symbols", len(table))
    return table


SYMBOLS = _build()


def get_symbol_table():
    return SYMBOLS
