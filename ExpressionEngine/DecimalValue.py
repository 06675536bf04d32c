# DecimalValue.py
"""
Arbitrary-precision decimal value used by every stage of the engine.

A DecimalValue wraps an exact decimal.Decimal together with the precision /
rounding policy (MathContext) and the locale that produced it. Values are
immutable: every operation returns a new DecimalValue.

Notes
-----
- Equality, hashing and ordering look at the numeric value only
  ("2.50" == "2.5"), never at the text.
- Every arithmetic operation runs in a fresh decimal.Context built from the
  MathContext, never in the thread's global context, so engines with
  different precisions can run side by side.
- decimal signals (overflow, invalid operation, division by zero) surface as
  DomainError.
"""

import decimal
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from functools import total_ordering

from . import LocaleNumbers
from . import error as E

logger = logging.getLogger(__name__)

ROUNDING_MODES = {
    "HALF_UP": decimal.ROUND_HALF_UP,
    "HALF_DOWN": decimal.ROUND_HALF_DOWN,
    "HALF_EVEN": decimal.ROUND_HALF_EVEN,
    "UP": decimal.ROUND_UP,
    "DOWN": decimal.ROUND_DOWN,
    "CEILING": decimal.ROUND_CEILING,
    "FLOOR": decimal.ROUND_FLOOR,
    "05UP": decimal.ROUND_05UP,
}


# -----------------------------
# Precision / rounding policy
# -----------------------------

@dataclass(frozen=True)
class MathContext:
    """Precision (significant digits) and rounding mode for arithmetic results."""

    precision: int = 100
    rounding: str = "HALF_UP"

    def __post_init__(self):
        if isinstance(self.precision, bool) or not isinstance(self.precision, int) or self.precision < 1:
            raise E.ConfigurationError(f"Precision must be a positive integer: {self.precision!r}", code="5000")

        rounding = str(self.rounding).upper()
        if rounding.startswith("ROUND_"):
            rounding = rounding[len("ROUND_"):]
        if rounding not in ROUNDING_MODES:
            raise E.ConfigurationError(f"Unknown rounding mode: {self.rounding!r}", code="5002")
        object.__setattr__(self, "rounding", rounding)

    def to_context(self, extra_digits=0):
        """Build a new decimal.Context for this policy (optionally with guard digits)."""
        return decimal.Context(
            prec=self.precision + extra_digits,
            rounding=ROUNDING_MODES[self.rounding],
            traps=[decimal.Overflow, decimal.DivisionByZero, decimal.InvalidOperation],
        )


DEFAULT_MATH_CONTEXT = MathContext()


@contextmanager
def decimal_guard(equation=None):
    """Translate decimal signals raised inside the block into DomainError."""
    try:
        yield
    except decimal.DivisionByZero:
        raise E.DomainError("Division by zero", code="3003", equation=equation)
    except decimal.Overflow:
        raise E.DomainError("Number too large (Arithmetic overflow).", code="3026", equation=equation)
    except decimal.InvalidOperation:
        raise E.DomainError("Undefined operation.", code="2000", equation=equation)


def strip_trailing_zeros(value):
    """Remove insignificant trailing zeros without touching the integral digits."""
    if value.is_zero():
        return Decimal(0)
    digits = len(value.as_tuple().digits)
    stripped = value.normalize(decimal.Context(prec=digits, Emax=decimal.MAX_EMAX, Emin=decimal.MIN_EMIN))
    if stripped.as_tuple().exponent > 0:
        # 1E+3 -> 1000
        stripped = stripped.quantize(
            Decimal(1),
            context=decimal.Context(prec=stripped.adjusted() + 1, Emax=decimal.MAX_EMAX, Emin=decimal.MIN_EMIN),
        )
    return stripped


# -----------------------------
# Decimal value
# -----------------------------

@total_ordering
class DecimalValue:
    """Immutable arbitrary-precision decimal number."""

    __slots__ = ("_value", "_math_context", "_locale")

    def __init__(self, value=0, math_context=None, locale=None):
        if isinstance(value, DecimalValue):
            value = value._value
        elif isinstance(value, (int, str)) and not isinstance(value, bool):
            try:
                value = Decimal(value)
            except decimal.InvalidOperation:
                raise E.SyntaxError(f"Invalid number: {value!r}", code="3001")
        elif isinstance(value, float):
            value = Decimal(repr(value))
        elif not isinstance(value, Decimal):
            raise TypeError(f"Unsupported value type: {type(value).__name__}")

        if not value.is_finite():
            raise E.DomainError("Result is not a finite number.", code="2011")
        if value.is_zero():
            # no negative zero
            value = value.copy_abs()

        self._value = value
        self._math_context = math_context or DEFAULT_MATH_CONTEXT
        self._locale = locale

    # --- Construction ---

    @classmethod
    def parse(cls, text, locale=None, math_context=None):
        """Parse a literal written in the given locale (default: configured locale)."""
        resolved = LocaleNumbers.resolve_locale(locale)
        canonical = LocaleNumbers.normalize(text, resolved)
        context = (math_context or DEFAULT_MATH_CONTEXT).to_context()
        try:
            value = Decimal(canonical)
        except decimal.InvalidOperation:
            # well-formed, but the exponent does not fit a Decimal at all
            raise E.DomainError(f"Number out of range: {text!r}", code="3026")
        if not value.is_zero() and not context.Emin <= value.adjusted() <= context.Emax:
            raise E.DomainError(f"Number out of range: {text!r}", code="3026")
        return cls(value, math_context, resolved)

    @classmethod
    def parse_any(cls, text, math_context=None):
        """Parse a literal in whatever supported locale accepts it first."""
        detected = LocaleNumbers.detect_locale(text)
        logger.debug("Detected locale %s for %r", detected, text)
        return cls.parse(text, detected, math_context)

    # --- Properties ---

    @property
    def math_context(self):
        return self._math_context

    @property
    def locale(self):
        return self._locale

    def to_decimal(self):
        return self._value

    def to_int(self):
        """Integral value as int; DomainError when there is a fractional part."""
        if not self.is_integer():
            raise E.DomainError(f"Not an integer: {self._value}", code="2009")
        return int(self._value)

    def is_integer(self):
        return self._value == self._value.to_integral_value()

    def is_negative(self):
        return self._value < 0

    def is_zero(self):
        return self._value.is_zero()

    def with_context(self, math_context):
        return DecimalValue(self._value, math_context, self._locale)

    def with_locale(self, locale):
        return DecimalValue(self._value, self._math_context, LocaleNumbers.resolve_locale(locale))

    # --- Internals ---

    def _wrap(self, value, math_context=None):
        return DecimalValue(value, math_context or self._math_context, self._locale)

    def _coerce(self, other):
        if isinstance(other, DecimalValue):
            return other
        if isinstance(other, str):
            return DecimalValue.parse(other, self._locale, self._math_context)
        return DecimalValue(other, self._math_context, self._locale)

    # --- Arithmetic ---

    def add(self, other, math_context=None):
        other = self._coerce(other)
        context = (math_context or self._math_context).to_context()
        with decimal_guard():
            return self._wrap(context.add(self._value, other._value), math_context)

    def subtract(self, other, math_context=None):
        other = self._coerce(other)
        context = (math_context or self._math_context).to_context()
        with decimal_guard():
            return self._wrap(context.subtract(self._value, other._value), math_context)

    def multiply(self, other, math_context=None):
        other = self._coerce(other)
        context = (math_context or self._math_context).to_context()
        with decimal_guard():
            return self._wrap(context.multiply(self._value, other._value), math_context)

    def divide(self, other, math_context=None):
        other = self._coerce(other)
        if other.is_zero():
            raise E.DomainError("Division by zero", code="3003")
        context = (math_context or self._math_context).to_context()
        with decimal_guard():
            return self._wrap(context.divide(self._value, other._value), math_context)

    def modulo(self, other, math_context=None):
        """Remainder with the sign of the dividend (truncated division)."""
        other = self._coerce(other)
        if other.is_zero():
            raise E.DomainError("Division by zero", code="3003")
        policy = math_context or self._math_context
        # The integer quotient must fit into the working precision
        quotient_digits = max(self._value.adjusted() - other._value.adjusted() + 2, 0)
        context = policy.to_context(extra_digits=quotient_digits)
        with decimal_guard():
            remainder = context.remainder(self._value, other._value)
        return self._wrap(policy.to_context().plus(remainder), math_context)

    def power(self, exponent, math_context=None):
        """self ^ exponent.

        A negative base is only allowed with an integral exponent or with an
        exponent that is the reciprocal of an odd integer (odd roots such as
        (-8)^(1/3) = -2).
        """
        exponent = self._coerce(exponent)
        policy = math_context or self._math_context
        context = policy.to_context()
        base_value = self._value
        exponent_value = exponent._value

        if base_value.is_zero():
            if exponent_value < 0:
                raise E.DomainError("Zero to a negative power.", code="2014")
            if exponent_value.is_zero():
                return self._wrap(Decimal(1), math_context)
            return self._wrap(Decimal(0), math_context)

        with decimal_guard():
            if exponent.is_integer():
                return self._wrap(context.power(base_value, exponent_value.to_integral_value()), math_context)

            if base_value < 0:
                if _odd_root_degree(exponent_value, policy) is None:
                    raise E.DomainError("Even root of a negative number.", code="2003")
                return self._wrap(context.minus(context.power(base_value.copy_abs(), exponent_value)), math_context)

            return self._wrap(context.power(base_value, exponent_value), math_context)

    def negate(self):
        return self._wrap(self._value.copy_negate())

    def abs(self):
        return self._wrap(self._value.copy_abs())

    def round(self, math_context=None):
        """Round to the given policy (default: own policy)."""
        context = (math_context or self._math_context).to_context()
        with decimal_guard():
            return self._wrap(context.plus(self._value), math_context)

    def trim(self):
        """Drop insignificant trailing fractional zeros; the quantity is unchanged."""
        return self._wrap(strip_trailing_zeros(self._value))

    # --- Formatting ---

    def to_string(self, locale=None, grouping=False):
        """Plain-notation text with the separators of locale (default: own locale)."""
        return LocaleNumbers.format_number(self._value, locale or self._locale, grouping)

    def to_pretty_string(self, locale=None):
        """Trimmed text with grouping separators, e.g. 1,234,567.5 for en_US."""
        return self.trim().to_string(locale, grouping=True)

    def __str__(self):
        return self.trim().to_string()

    def __repr__(self):
        return f"DecimalValue('{self._value}')"

    # --- Comparison (value based) ---

    def __eq__(self, other):
        try:
            other = self._coerce(other)
        except (TypeError, E.MathError):
            return NotImplemented
        return self._value == other._value

    def __lt__(self, other):
        try:
            other = self._coerce(other)
        except (TypeError, E.MathError):
            return NotImplemented
        return self._value < other._value

    def __hash__(self):
        return hash(self._value)

    # --- Operator sugar ---

    def __add__(self, other):
        return self.add(other)

    def __radd__(self, other):
        return self._coerce(other).add(self)

    def __sub__(self, other):
        return self.subtract(other)

    def __rsub__(self, other):
        return self._coerce(other).subtract(self)

    def __mul__(self, other):
        return self.multiply(other)

    def __rmul__(self, other):
        return self._coerce(other).multiply(self)

    def __truediv__(self, other):
        return self.divide(other)

    def __rtruediv__(self, other):
        return self._coerce(other).divide(self)

    def __mod__(self, other):
        return self.modulo(other)

    def __pow__(self, other):
        return self.power(other)

    def __neg__(self):
        return self.negate()

    def __abs__(self):
        return self.abs()


def _odd_root_degree(exponent, policy):
    """Return n if exponent == 1/n for an odd integer n (within the precision), else None."""
    context = policy.to_context(extra_digits=5)
    reciprocal = context.divide(Decimal(1), exponent)
    degree = reciprocal.to_integral_value()
    tolerance = Decimal(1).scaleb(-(policy.precision // 2))
    if context.subtract(reciprocal, degree).copy_abs() > tolerance or degree % 2 == 0:
        return None
    return int(degree)


# -----------------------------
# Coordinate pair
# -----------------------------

class CoordinatePair:
    """Result of Pol()/Rec(): two values and the coordinate system they belong to."""

    CARTESIAN = "cartesian"
    POLAR = "polar"

    __slots__ = ("x", "y", "kind")

    def __init__(self, x, y, kind=CARTESIAN):
        if kind not in (self.CARTESIAN, self.POLAR):
            raise ValueError(f"Unknown coordinate kind: {kind}")
        self.x = x
        self.y = y
        self.kind = kind

    def trim(self):
        return CoordinatePair(self.x.trim(), self.y.trim(), self.kind)

    def to_string(self, locale=None, grouping=False):
        x_text = self.x.trim().to_string(locale, grouping)
        y_text = self.y.trim().to_string(locale, grouping)
        if self.kind == self.POLAR:
            return f"r={x_text}; θ={y_text}"
        return f"x={x_text}; y={y_text}"

    def to_pretty_string(self, locale=None):
        return self.to_string(locale, grouping=True)

    def __str__(self):
        return self.to_string()

    def __repr__(self):
        return f"CoordinatePair({self.x!r}, {self.y!r}, {self.kind!r})"

    def __eq__(self, other):
        if not isinstance(other, CoordinatePair):
            return NotImplemented
        return self.kind == other.kind and self.x == other.x and self.y == other.y

    def __hash__(self):
        return hash((self.x, self.y, self.kind))
