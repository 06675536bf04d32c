# MathEngine.py
"""
Public entry point of the expression engine.

    engine = CalculatorEngine(precision=50, locale="de_DE")
    engine.evaluate("2*a + b^2", {"a": "5+3", "b": "3"})   # DecimalValue('25')
    engine.evaluate_to_string("1/3")                       # '0,333...'

Pipeline: VariableResolver (cycle check + substitution) -> Tokenizer ->
Parser -> Evaluator. Compiled postfix sequences are cached per expression,
locale and MathContext.
"""

import logging
import threading
from functools import lru_cache

from . import LocaleNumbers
from . import Parser
from . import ScientificEngine
from . import SymbolTable as ST
from . import config_manager as config_manager
from . import error as E
from .DecimalValue import DecimalValue, MathContext
from .Evaluator import EvaluationContext, Evaluator
from .Tokenizer import Tokenizer
from .VariableResolver import VariableResolver

logger = logging.getLogger(__name__)

_compile_cache = None
_cache_lock = threading.Lock()
_engine_lock = threading.Lock()


def _compile(expression, locale_identifier, precision, rounding):
    tokenizer = Tokenizer(ST.get_symbol_table(), MathContext(precision, rounding), locale_identifier)
    return Parser.to_postfix(tokenizer.tokenize(expression))


def _compiler():
    """Lazily build the compiled-expression LRU with the configured size."""
    global _compile_cache
    if _compile_cache is None:
        with _cache_lock:
            if _compile_cache is None:
                size = config_manager.load_setting_value("compiled_cache_size")
                if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                    raise E.ConfigurationError(f"Invalid compiled_cache_size: {size!r}", code="5000")
                _compile_cache = lru_cache(maxsize=size)(_compile)
    return _compile_cache


def clear_cache():
    global _compile_cache
    with _cache_lock:
        _compile_cache = None


def cache_info():
    return _compiler().cache_info()


def _trigonometric_mode(value):
    mode = str(value).upper()
    if mode not in ScientificEngine.ANGLE_MODES:
        raise E.ConfigurationError(f"Unknown angle mode: {value!r}", code="5003")
    return mode


def _series_limit(value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise E.ConfigurationError(f"Invalid max_series_iterations: {value!r}", code="5000")
    return value


class CalculatorEngine:
    """Expression engine with a fixed precision, rounding, locale and angle mode.

    Arguments left as None are read from config.json.
    """

    def __init__(self, precision=None, rounding=None, locale=None, trigonometric_mode=None):
        settings = config_manager.load_setting_value("all")

        # --- 1. Policy ---
        self.math_context = MathContext(
            settings["precision"] if precision is None else precision,
            settings["rounding"] if rounding is None else rounding,
        )

        # --- 2. Locale and angle mode ---
        self.locale = LocaleNumbers.resolve_locale(settings["locale"] if locale is None else locale)
        self.trigonometric_mode = _trigonometric_mode(
            settings["trigonometric_mode"] if trigonometric_mode is None else trigonometric_mode)
        self.max_series_iterations = _series_limit(settings["max_series_iterations"])

        if settings.get("debug"):
            logging.getLogger(__package__).setLevel(logging.DEBUG)

        self.symbols = ST.get_symbol_table()
        self.resolver = VariableResolver(self.symbols)
        logger.debug("Engine created: %s, locale %s, %s", self.math_context, self.locale, self.trigonometric_mode)

    def __repr__(self):
        return (f"CalculatorEngine(precision={self.math_context.precision}, "
                f"rounding={self.math_context.rounding!r}, locale='{self.locale}', "
                f"trigonometric_mode={self.trigonometric_mode!r})")

    # -----------------------------
    # Pipeline stages
    # -----------------------------

    def tokenize(self, expression):
        return Tokenizer(self.symbols, self.math_context, self.locale).tokenize(expression)

    def to_postfix(self, expression):
        return _compiler()(str(expression), str(self.locale), self.math_context.precision,
                           self.math_context.rounding)

    def _context(self, variables):
        return EvaluationContext(
            math_context=self.math_context,
            trigonometric_mode=self.trigonometric_mode,
            locale=self.locale,
            variables=variables,
            evaluate_expression=self._evaluate,
            max_series_iterations=self.max_series_iterations,
        )

    def _evaluate(self, expression, variables):
        """Substitute, compile and run; also the re-entry point of ∑ / ∏ bodies."""
        substituted = self.resolver.substitute(expression, variables)
        postfix = self.to_postfix(substituted)
        return Evaluator(self._context(variables), self.symbols).evaluate(postfix)

    # -----------------------------
    # Public API
    # -----------------------------

    def evaluate(self, expression, variables=None):
        """Evaluate to a trimmed DecimalValue (or CoordinatePair for Pol/Rec)."""
        variables = dict(variables or {})
        try:
            if expression is None or not str(expression).strip():
                return DecimalValue(0, self.math_context, self.locale)

            self.resolver.validate(variables)
            self.resolver.check_cycles(variables, expression)
            return self._evaluate(str(expression), variables).trim()

        # Re-raise our errors after attaching the source expression
        except E.MathError as e:
            if e.equation is None:
                e.equation = expression
            raise e
        except RecursionError:
            raise E.MalformedExpressionError("Expression is nested too deeply.", code="3200", equation=expression)

    def _safe(self, render, expression, variables):
        try:
            return render(self.evaluate(expression, variables))
        except E.MathError as e:
            logger.warning("Evaluation of %r failed with %s: %s", expression, e.code, e.message)
            return E.safe_message(e)
        # The string API must never let a failure escape
        except Exception as e:
            logger.warning("Unexpected failure while evaluating %r: %s", expression, type(e).__name__)
            return E.safe_message(E.MathError("Unexpected Error.", code="9999", equation=expression))

    def evaluate_to_string(self, expression, variables=None):
        """Result as a locale string, or "Error <code>: <text>" on failure."""
        return self._safe(lambda result: result.to_string(self.locale), expression, variables)

    def evaluate_to_pretty_string(self, expression, variables=None):
        """Like evaluate_to_string, with grouping separators."""
        return self._safe(lambda result: result.to_pretty_string(self.locale), expression, variables)


# -----------------------------
# Module-level helpers
# -----------------------------

_default_engine = None


def get_default_engine():
    global _default_engine
    if _default_engine is None:
        with _engine_lock:
            if _default_engine is None:
                _default_engine = CalculatorEngine()
    return _default_engine


def reset_default_engine():
    """Forget the default engine (after the settings changed)."""
    global _default_engine
    with _engine_lock:
        _default_engine = None


def evaluate(expression, variables=None):
    return get_default_engine().evaluate(expression, variables)


def evaluate_to_string(expression, variables=None):
    return get_default_engine().evaluate_to_string(expression, variables)


def evaluate_to_pretty_string(expression, variables=None):
    return get_default_engine().evaluate_to_pretty_string(expression, variables)


def test_main():
    """Simple REPL-like runner for manual testing of the engine."""
    print("Enter the problem: ")
    problem = input()
    result = evaluate_to_string(problem)
    print(result)


if __name__ == "__main__":
    # python -m ExpressionEngine.MathEngine
    test_main()
