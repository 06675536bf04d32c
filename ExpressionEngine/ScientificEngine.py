# ScientificEngine.py
"""
Scientific functions for the expression engine.

The numerical core (trigonometry, logarithms, gamma, roots ...) comes from
mpmath. This module only adds what the engine needs around it:

- precision propagation: mpmath works with GUARD_DIGITS more digits than the
  MathContext asks for, the result is rounded back with the MathContext
- domain validation before calling mpmath (mpmath would happily return
  complex numbers or infinities)
- sign handling for odd roots of negative numbers
- degree / radian handling for trigonometric functions

mpmath contexts are created per thread and per precision; the global
mpmath.mp is never touched, so engines with different precisions can run
in parallel.
"""

import math
import random
import logging
import threading
from decimal import Decimal

from mpmath.ctx_mp import MPContext

from . import error as E
from .DecimalValue import CoordinatePair, DecimalValue, decimal_guard

logger = logging.getLogger(__name__)

DEG = "DEG"
RAD = "RAD"
ANGLE_MODES = (DEG, RAD)

GUARD_DIGITS = 10

# Above this n! is taken from mpmath (rounded) instead of being computed exactly
EXACT_FACTORIAL_LIMIT = 1000

_thread_state = threading.local()


# -----------------------------
# mpmath bridge
# -----------------------------

def _mp(policy):
    """Return this thread's mpmath context for the given MathContext."""
    contexts = getattr(_thread_state, "contexts", None)
    if contexts is None:
        contexts = _thread_state.contexts = {}
    dps = policy.precision + GUARD_DIGITS
    ctx = contexts.get(dps)
    if ctx is None:
        ctx = MPContext()
        ctx.dps = dps
        contexts[dps] = ctx
    return ctx


def _to_mpf(ctx, value):
    return ctx.mpf(str(value.to_decimal()))


def _from_mpf(ctx, result, policy, locale=None, snap_below=None):
    """Round an mpmath result back into a DecimalValue."""
    if isinstance(result, ctx.mpc) or not ctx.isfinite(result):
        raise E.DomainError("Result is not a finite number.", code="2011")
    if snap_below is not None and abs(result) < snap_below:
        return DecimalValue(0, policy, locale)
    with decimal_guard():
        rounded = policy.to_context().plus(Decimal(ctx.nstr(result, ctx.dps)))
    return DecimalValue(rounded, policy, locale)


def _trig_noise(ctx, policy):
    # sin(π) with a rounded π is ~1e-100 instead of 0
    return ctx.mpf(10) ** (-(policy.precision - 1))


def _call(function, *args):
    try:
        return function(*args)
    except (ValueError, ZeroDivisionError) as e:
        raise E.DomainError(f"Undefined operation: {e}", code="2000")


def _check_mode(mode):
    if mode not in ANGLE_MODES:
        raise E.ConfigurationError(f"Unknown angle mode: {mode!r}", code="5003")


# -----------------------------
# Constants
# -----------------------------

def pi_value(policy, locale=None):
    ctx = _mp(policy)
    return _from_mpf(ctx, +ctx.pi, policy, locale)


def e_value(policy, locale=None):
    ctx = _mp(policy)
    return _from_mpf(ctx, +ctx.e, policy, locale)


# -----------------------------
# Roots
# -----------------------------

def square_root(value, policy):
    if value.is_negative():
        raise E.DomainError("Square root of a negative number.", code="2003")
    with decimal_guard():
        return DecimalValue(policy.to_context().sqrt(value.to_decimal()), policy, value.locale)


def cubic_root(value, policy):
    return nth_root(value, DecimalValue(3), policy)


def nth_root(value, degree, policy):
    """degree-th root of value; odd integer degrees accept negative values."""
    if degree.is_zero():
        raise E.DomainError("Zeroth root is undefined.", code="2003")
    ctx = _mp(policy)

    if degree.is_integer():
        n = degree.to_int()
        if value.is_negative():
            if n % 2 == 0:
                raise E.DomainError("Even root of a negative number.", code="2003")
            root = _call(ctx.root, _to_mpf(ctx, value.abs()), abs(n))
            root = -root
        else:
            root = _call(ctx.root, _to_mpf(ctx, value), abs(n))
        if n < 0:
            if root == 0:
                raise E.DomainError("Division by zero", code="3003")
            root = 1 / root
        return _from_mpf(ctx, root, policy, value.locale)

    if value.is_negative():
        raise E.DomainError("Root of a negative number.", code="2003")
    return _from_mpf(ctx, _call(ctx.power, _to_mpf(ctx, value), 1 / _to_mpf(ctx, degree)), policy, value.locale)


# -----------------------------
# Logarithms
# -----------------------------

def _check_log_argument(value):
    if value.is_negative() or value.is_zero():
        raise E.DomainError("Logarithm of a non-positive number.", code="2001")


def ln(value, policy):
    _check_log_argument(value)
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.ln(_to_mpf(ctx, value)), policy, value.locale)


def log10(value, policy):
    _check_log_argument(value)
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.log10(_to_mpf(ctx, value)), policy, value.locale)


def log2(value, policy):
    _check_log_argument(value)
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.log(_to_mpf(ctx, value), 2), policy, value.locale)


def log_base(value, base, policy):
    _check_log_argument(value)
    if base.is_negative() or base.is_zero() or base == 1:
        raise E.DomainError("Invalid logarithm base.", code="2002")
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.log(_to_mpf(ctx, value), _to_mpf(ctx, base)), policy, value.locale)


# -----------------------------
# Trigonometry
# -----------------------------

def _sin_cos(ctx, value, mode):
    """Return (sin, cos) of value; degrees use sinpi/cospi so 90° gives an exact 0."""
    _check_mode(mode)
    x = _to_mpf(ctx, value)
    if mode == DEG:
        turns = x / 180
        return ctx.sinpi(turns), ctx.cospi(turns)
    return ctx.sin(x), ctx.cos(x)


def sin(value, policy, mode=DEG):
    ctx = _mp(policy)
    s, _ = _sin_cos(ctx, value, mode)
    return _from_mpf(ctx, s, policy, value.locale, _trig_noise(ctx, policy))


def cos(value, policy, mode=DEG):
    ctx = _mp(policy)
    _, c = _sin_cos(ctx, value, mode)
    return _from_mpf(ctx, c, policy, value.locale, _trig_noise(ctx, policy))


def tan(value, policy, mode=DEG):
    ctx = _mp(policy)
    s, c = _sin_cos(ctx, value, mode)
    if abs(c) < _trig_noise(ctx, policy):
        raise E.DomainError("Tangent is undefined at this angle.", code="2005")
    return _from_mpf(ctx, s / c, policy, value.locale, _trig_noise(ctx, policy))


def cot(value, policy, mode=DEG):
    ctx = _mp(policy)
    s, c = _sin_cos(ctx, value, mode)
    if abs(s) < _trig_noise(ctx, policy):
        raise E.DomainError("Cotangent is undefined at this angle.", code="2005")
    return _from_mpf(ctx, c / s, policy, value.locale, _trig_noise(ctx, policy))


def _angle_result(ctx, radians, policy, mode, locale):
    _check_mode(mode)
    if mode == DEG:
        radians = ctx.degrees(radians)
    return _from_mpf(ctx, radians, policy, locale)


def asin(value, policy, mode=DEG):
    if value.abs() > 1:
        raise E.DomainError("asin is only defined on [-1, 1].", code="2006")
    ctx = _mp(policy)
    return _angle_result(ctx, ctx.asin(_to_mpf(ctx, value)), policy, mode, value.locale)


def acos(value, policy, mode=DEG):
    if value.abs() > 1:
        raise E.DomainError("acos is only defined on [-1, 1].", code="2006")
    ctx = _mp(policy)
    return _angle_result(ctx, ctx.acos(_to_mpf(ctx, value)), policy, mode, value.locale)


def atan(value, policy, mode=DEG):
    ctx = _mp(policy)
    return _angle_result(ctx, ctx.atan(_to_mpf(ctx, value)), policy, mode, value.locale)


def acot(value, policy, mode=DEG):
    ctx = _mp(policy)
    if value.is_zero():
        return _angle_result(ctx, ctx.pi / 2, policy, mode, value.locale)
    return _angle_result(ctx, ctx.acot(_to_mpf(ctx, value)), policy, mode, value.locale)


def atan2(y, x, policy, mode=DEG):
    if y.is_zero() and x.is_zero():
        raise E.DomainError("atan2(0, 0) is undefined.", code="2006")
    ctx = _mp(policy)
    return _angle_result(ctx, ctx.atan2(_to_mpf(ctx, y), _to_mpf(ctx, x)), policy, mode, y.locale)


# -----------------------------
# Hyperbolic functions
# -----------------------------

def sinh(value, policy):
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.sinh(_to_mpf(ctx, value)), policy, value.locale)


def cosh(value, policy):
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.cosh(_to_mpf(ctx, value)), policy, value.locale)


def tanh(value, policy):
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.tanh(_to_mpf(ctx, value)), policy, value.locale)


def coth(value, policy):
    if value.is_zero():
        raise E.DomainError("coth(0) is undefined.", code="2005")
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.coth(_to_mpf(ctx, value)), policy, value.locale)


def asinh(value, policy):
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.asinh(_to_mpf(ctx, value)), policy, value.locale)


def acosh(value, policy):
    if value < 1:
        raise E.DomainError("acosh is only defined for x >= 1.", code="2006")
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.acosh(_to_mpf(ctx, value)), policy, value.locale)


def atanh(value, policy):
    if value.abs() >= 1:
        raise E.DomainError("atanh is only defined for |x| < 1.", code="2006")
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.atanh(_to_mpf(ctx, value)), policy, value.locale)


def acoth(value, policy):
    if value.abs() <= 1:
        raise E.DomainError("acoth is only defined for |x| > 1.", code="2006")
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.acoth(_to_mpf(ctx, value)), policy, value.locale)


# -----------------------------
# Special functions
# -----------------------------

def factorial(value, policy):
    if not value.is_integer() or value.is_negative():
        raise E.DomainError("Factorial needs a non-negative integer.", code="2004")
    n = value.to_int()
    if n <= EXACT_FACTORIAL_LIMIT:
        with decimal_guard():
            return DecimalValue(policy.to_context().plus(Decimal(math.factorial(n))), policy, value.locale)
    ctx = _mp(policy)
    return _from_mpf(ctx, ctx.factorial(n), policy, value.locale)


def gamma(value, policy):
    if value.is_integer() and not value > 0:
        raise E.DomainError("Gamma function undefined at non-positive integers.", code="2007")
    ctx = _mp(policy)
    return _from_mpf(ctx, _call(ctx.gamma, _to_mpf(ctx, value)), policy, value.locale)


def beta(x, y, policy):
    for argument in (x, y):
        if argument.is_integer() and not argument > 0:
            raise E.DomainError("Beta function undefined at non-positive integers.", code="2007")
    ctx = _mp(policy)
    return _from_mpf(ctx, _call(ctx.beta, _to_mpf(ctx, x), _to_mpf(ctx, y)), policy, x.locale)


# -----------------------------
# Combinatorics / number theory
# -----------------------------

def _non_negative_integers(n, r, code):
    for argument in (n, r):
        if not argument.is_integer() or argument.is_negative():
            raise E.DomainError("Expected non-negative integers.", code=code)
    return n.to_int(), r.to_int()


def combination(n, r, policy):
    n_int, r_int = _non_negative_integers(n, r, "2008")
    if r_int > n_int:
        raise E.DomainError("r must not exceed n.", code="2008")
    with decimal_guard():
        return DecimalValue(policy.to_context().plus(Decimal(math.comb(n_int, r_int))), policy, n.locale)


def permutation(n, r, policy):
    n_int, r_int = _non_negative_integers(n, r, "2008")
    if r_int > n_int:
        raise E.DomainError("r must not exceed n.", code="2008")
    with decimal_guard():
        return DecimalValue(policy.to_context().plus(Decimal(math.perm(n_int, r_int))), policy, n.locale)


def _integers(a, b):
    if not a.is_integer() or not b.is_integer() or a.is_negative() or b.is_negative():
        raise E.DomainError("GCD/LCM need non-negative integers.", code="2009")
    return a.to_int(), b.to_int()


def gcd(a, b, policy):
    a_int, b_int = _integers(a, b)
    return DecimalValue(math.gcd(a_int, b_int), policy, a.locale)


def lcm(a, b, policy):
    a_int, b_int = _integers(a, b)
    with decimal_guard():
        return DecimalValue(policy.to_context().plus(Decimal(math.lcm(a_int, b_int))), policy, a.locale)


def random_integer(low, high, policy):
    """Uniform random integer in [low, high]."""
    if not low.is_integer() or not high.is_integer() or low > high:
        raise E.DomainError("Invalid random range.", code="2010")
    return DecimalValue(random.randint(low.to_int(), high.to_int()), policy, low.locale)


# -----------------------------
# Coordinates
# -----------------------------

def polar_to_cartesian(r, theta, policy, mode=DEG):
    """Rec(r; θ) -> x=r·cos θ, y=r·sin θ"""
    ctx = _mp(policy)
    s, c = _sin_cos(ctx, theta, mode)
    radius = _to_mpf(ctx, r)
    noise = _trig_noise(ctx, policy)
    x = _from_mpf(ctx, radius * c, policy, r.locale, noise)
    y = _from_mpf(ctx, radius * s, policy, r.locale, noise)
    return CoordinatePair(x, y, CoordinatePair.CARTESIAN)


def cartesian_to_polar(x, y, policy, mode=DEG):
    """Pol(x; y) -> r=√(x²+y²), θ=atan2(y, x)"""
    ctx = _mp(policy)
    x_mp = _to_mpf(ctx, x)
    y_mp = _to_mpf(ctx, y)
    radius = _from_mpf(ctx, ctx.hypot(x_mp, y_mp), policy, x.locale)
    if x.is_zero() and y.is_zero():
        angle = DecimalValue(0, policy, x.locale)
    else:
        angle = _angle_result(ctx, ctx.atan2(y_mp, x_mp), policy, mode, x.locale)
    return CoordinatePair(radius, angle, CoordinatePair.POLAR)


# -----------------------------
# Statistics (variadic)
# -----------------------------

def total(values, policy):
    result = DecimalValue(0, policy, values[0].locale)
    for value in values:
        result = result.add(value, policy)
    return result


def average(values, policy):
    return total(values, policy).divide(DecimalValue(len(values)), policy)


def median(values, policy):
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[middle].round(policy)
    return ordered[middle - 1].add(ordered[middle], policy).divide(DecimalValue(2), policy)
