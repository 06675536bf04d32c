"""End-to-end tests for CalculatorEngine and the module-level API."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from ExpressionEngine import MathEngine
from ExpressionEngine import config_manager
from ExpressionEngine import error as E
from ExpressionEngine.DecimalValue import CoordinatePair, DecimalValue


@pytest.fixture
def engine():
    return MathEngine.CalculatorEngine()


# ============================================================================
# CORE PROPERTIES
# ============================================================================

class TestCoreProperties:
    """The headline behaviour of the pipeline."""

    def test_precedence(self, engine):
        """2+3*4 = 14, (2+3)*4 = 20."""
        assert engine.evaluate("2+3*4") == 14
        assert engine.evaluate("(2+3)*4") == 20

    def test_right_associativity(self, engine):
        """2^3^2 = 512, not 64."""
        assert engine.evaluate("2^3^2") == 512

    def test_implicit_multiplication(self, engine):
        """2(3) = 6, (2)(3) = 6."""
        assert engine.evaluate("2(3)") == 6
        assert engine.evaluate("(2)(3)") == 6

    def test_sign_run(self, engine):
        """5---2 = 3."""
        assert engine.evaluate("5---2") == 3
        assert engine.evaluate("5--2") == 7

    def test_variables(self, engine):
        """2*a + b^2 with a = 5+3, b = 3 is 25."""
        assert engine.evaluate("2*a + b^2", {"a": "5+3", "b": "3"}) == 25

    def test_series(self, engine):
        """∑(0;5;k^2+1) = 61."""
        assert engine.evaluate("∑(0;5;k^2+1)") == 61

    def test_cycle_detected_before_arithmetic(self, engine, monkeypatch):
        """No evaluation runs for cyclic variables."""
        def fail(*args, **kwargs):
            raise AssertionError("evaluated")

        monkeypatch.setattr(MathEngine.Evaluator, "evaluate", fail)
        with pytest.raises(E.CyclicVariableReferenceError):
            engine.evaluate("a", {"a": "b+1", "b": "a+2"})

    def test_cycle_through_series_body(self, engine, monkeypatch):
        """A reference inside a series body still closes a cycle."""
        def fail(*args, **kwargs):
            raise AssertionError("evaluated")

        monkeypatch.setattr(MathEngine.Evaluator, "evaluate", fail)
        with pytest.raises(E.CyclicVariableReferenceError) as info:
            engine.evaluate("a", {"a": "∑(1;2;b)", "b": "a"})
        assert info.value.cycle == ["a", "b", "a"]

    def test_mismatched_parenthesis(self, engine):
        """(2+4 is a SyntaxError."""
        with pytest.raises(E.SyntaxError):
            engine.evaluate("(2+4")

    def test_division_by_zero(self, engine):
        """5/0 is a DomainError."""
        with pytest.raises(E.DomainError) as info:
            engine.evaluate("5/0")
        assert info.value.code == "3003"

    @pytest.mark.parametrize("expression", ["1e99999999999999999999", "1e300000000", "2*1e-300000000"])
    def test_literal_out_of_range(self, engine, expression):
        """Literals beyond the exponent limits are a DomainError."""
        with pytest.raises(E.DomainError) as info:
            engine.evaluate(expression)
        assert info.value.code == "3026"

    def test_log_followed_by_digits(self, engine):
        """log100 is log(100), log10(100) is still log10."""
        assert engine.evaluate("log100") == 2
        assert engine.evaluate("log10(100)") == 2
        assert engine.evaluate("log2(8)") == 3


# ============================================================================
# EXPRESSIONS
# ============================================================================

class TestExpressions:
    """Broader grammar coverage."""

    @pytest.mark.parametrize("expression, expected", [
        ("10%3", "1"),
        ("7/2", "3.5"),
        ("2^-2", "0.25"),
        ("-2^2", "4"),
        ("-(2^2)", "-4"),
        ("2*-3", "-6"),
        ("3!+1", "7"),
        ("(1+2)!", "6"),
        ("5nCr2", "10"),
        ("5nPr2", "20"),
        ("comb(6;3)", "20"),
        ("perm(4;2)", "12"),
        ("GCD(12;18)", "6"),
        ("lcm(4;6)", "12"),
        ("sqrt(16)", "4"),
        ("√16", "4"),
        ("cbrt(-27)", "-3"),
        ("³√(8)", "2"),
        ("rootn(81;4)", "3"),
        ("log10(1000)", "3"),
        ("log(100)", "2"),
        ("log2(8)", "3"),
        ("logbase(81;3)", "4"),
        ("abs(-2.5)", "2.5"),
        ("|-3|+|2-5|", "6"),
        ("avg(1;2;3;4)", "2.5"),
        ("average(2;4)", "3"),
        ("median(5;1;3)", "3"),
        ("sum(1;2;3)", "6"),
        ("sum(1;4;k)", "10"),
        ("∏(1;5;k)", "120"),
        ("prod(1;3;2)", "8"),
        ("∑(1;3;∏(1;k;2))", "14"),
        ("Γ(5)", "24"),
        ("gamma(1)", "1"),
        ("2×3÷4", "1.5"),
        ("1.5e3+1", "1501"),
    ])
    def test_evaluate_to_string(self, engine, expression, expected):
        """Results are trimmed locale strings."""
        assert engine.evaluate_to_string(expression) == expected

    def test_trigonometry_degrees(self, engine):
        """Default angle mode is degrees."""
        assert engine.evaluate("sin(30)") == DecimalValue("0.5")
        assert engine.evaluate("cos(60)+sin(90)") == DecimalValue("1.5")
        assert engine.evaluate("asin(1)") == 90
        assert engine.evaluate("sin⁻¹(0.5)") == 30

    def test_trigonometry_radians(self):
        """RAD engines use radians."""
        engine = MathEngine.CalculatorEngine(trigonometric_mode="rad")
        assert engine.trigonometric_mode == "RAD"
        assert engine.evaluate("cos(pi)") == -1
        assert engine.evaluate("sin(0)") == 0

    def test_signs_around_function_names(self, engine):
        """Sign-run collapse next to functions."""
        assert engine.evaluate("sin-(-30)") == DecimalValue("0.5")
        assert engine.evaluate("2--sin(30)") == DecimalValue("2.5")
        assert engine.evaluate("2-sin(30)") == DecimalValue("1.5")
        assert engine.evaluate("2*-sin(30)") == -1
        assert engine.evaluate("-sin(30)") == DecimalValue("-0.5")
        assert engine.evaluate("cos-60") == DecimalValue("0.5")
        assert engine.evaluate("2+-+-sin(30)") == DecimalValue("2.5")

    def test_constants(self, engine):
        """pi and e at the engine precision."""
        assert engine.evaluate_to_string("pi").startswith("3.14159265358979323846")
        assert engine.evaluate("2pi") == engine.evaluate("pi*2")
        assert engine.evaluate("ln(e^2)") > DecimalValue("1.99999")

    def test_coordinate_results(self, engine):
        """Pol/Rec render as pairs and feed later operators with x."""
        result = engine.evaluate("Pol(3;4)")
        assert isinstance(result, CoordinatePair)
        assert engine.evaluate_to_string("Pol(3;4)").startswith("r=5; θ=53.1301023541559787")
        assert engine.evaluate_to_string("Rec(2;0)") == "x=2; y=0"
        assert engine.evaluate("Pol(3;4)*2") == 10

    def test_series_with_variables(self, engine):
        """Variables are visible inside series bodies."""
        assert engine.evaluate("∑(1;n;k*a)", {"n": "3", "a": "2"}) == 12

    def test_series_errors(self, engine):
        """Bounds must be ordered integers."""
        with pytest.raises(E.DomainError):
            engine.evaluate("∑(5;1;k)")
        with pytest.raises(E.DomainError):
            engine.evaluate("∑(1.5;3;k)")

    def test_blank_is_zero(self, engine):
        """Empty input evaluates to 0."""
        assert engine.evaluate("") == 0
        assert engine.evaluate("   ") == 0
        assert engine.evaluate(None) == 0
        assert engine.evaluate_to_string("") == "0"

    def test_result_is_trimmed(self, engine):
        """No trailing zeros in results."""
        assert engine.evaluate_to_string("2.50*2") == "5"
        assert engine.evaluate_to_string("0.10+0.20") == "0.3"


# ============================================================================
# VARIABLES
# ============================================================================

class TestVariables:
    """Variable handling through the engine."""

    def test_nested_variables(self, engine):
        """Definitions may reference other variables."""
        assert engine.evaluate("c", {"a": "2", "b": "a*3", "c": "b+a"}) == 8

    def test_substitution_keeps_grouping(self, engine):
        """a^2 with a = -3 is 9, a definition is one operand."""
        assert engine.evaluate("a^2", {"a": "-3"}) == 9
        assert engine.evaluate("2a", {"a": "1+2"}) == 6

    def test_undefined_variable(self, engine):
        """Missing variables name themselves."""
        with pytest.raises(E.UndefinedVariableError) as info:
            engine.evaluate("x+1")
        assert info.value.name == "x"

    def test_reserved_variable(self, engine):
        """Symbols can not be redefined."""
        with pytest.raises(E.ConfigurationError) as info:
            engine.evaluate("pi+1", {"pi": "3"})
        assert info.value.code == "3102"

    def test_unused_undefined_reference(self, engine):
        """Undefined names in unused definitions do not matter."""
        assert engine.evaluate("a+1", {"a": "1", "b": "zz"}) == 2

    def test_internal_negation_is_not_a_symbol(self, engine):
        """neg is an ordinary name in input."""
        assert engine.evaluate("neg+1", {"neg": "2"}) == 3
        with pytest.raises(E.UndefinedVariableError):
            engine.evaluate("neg(3)")

    def test_variables_are_not_mutated(self, engine):
        """The caller's map is left as it was."""
        variables = {"a": "2"}
        engine.evaluate("∑(1;2;k*a)", variables)
        assert variables == {"a": "2"}


# ============================================================================
# POLICY / LOCALE
# ============================================================================

class TestPolicy:
    """Precision, rounding and locale."""

    def test_precision(self):
        """Results are rounded to the engine precision."""
        assert MathEngine.CalculatorEngine(precision=5).evaluate_to_string("1/3") == "0.33333"
        assert MathEngine.CalculatorEngine(precision=5).evaluate_to_string("2/3") == "0.66667"
        assert MathEngine.CalculatorEngine(precision=5, rounding="DOWN").evaluate_to_string("2/3") == "0.66666"

    def test_default_precision(self, engine):
        """100 significant digits by default."""
        result = engine.evaluate_to_string("1/3")
        assert result == "0." + "3" * 100

    def test_german_locale(self):
        """Input and output use the engine locale."""
        engine = MathEngine.CalculatorEngine(locale="de_DE")
        assert engine.evaluate_to_string("1,5+1") == "2,5"
        assert engine.evaluate_to_pretty_string("1.000.000*2") == "2.000.000"
        assert engine.evaluate_to_string("avg(1,5;2,5)") == "2"

    def test_pretty_string(self, engine):
        """Grouping separators in pretty strings."""
        assert engine.evaluate_to_pretty_string("1000000/4") == "250,000"
        assert engine.evaluate_to_pretty_string("1234567.5*1") == "1,234,567.5"

    def test_settings_file(self, settings_file):
        """Unset arguments come from the settings file."""
        settings_file.write_text(json.dumps({"precision": 7, "locale": "de_DE", "trigonometric_mode": "RAD"}),
                                 encoding="utf-8")
        engine = MathEngine.CalculatorEngine()
        assert engine.math_context.precision == 7
        assert str(engine.locale) == "de_DE"
        assert engine.trigonometric_mode == "RAD"
        assert engine.evaluate_to_string("1/3") == "0,3333333"

    def test_save_setting_round_trip(self, settings_file):
        """update_setting writes the file config_manager reads."""
        config_manager.update_setting("precision", 12)
        assert json.loads(settings_file.read_text(encoding="utf-8"))["precision"] == 12
        assert config_manager.load_setting_value("precision") == 12
        assert config_manager.load_setting_value("rounding") == "HALF_UP"

    @pytest.mark.parametrize("kwargs, code", [
        ({"trigonometric_mode": "GRAD"}, "5003"),
        ({"locale": "zz_ZZ"}, "5001"),
        ({"rounding": "SIDEWAYS"}, "5002"),
        ({"precision": 0}, "5000"),
    ])
    def test_invalid_configuration(self, kwargs, code):
        """Bad engine settings are rejected at construction."""
        with pytest.raises(E.ConfigurationError) as info:
            MathEngine.CalculatorEngine(**kwargs)
        assert info.value.code == code

    def test_invalid_series_limit(self, settings_file):
        """max_series_iterations must be positive."""
        settings_file.write_text('{"max_series_iterations": 0}', encoding="utf-8")
        with pytest.raises(E.ConfigurationError):
            MathEngine.CalculatorEngine()

    def test_series_limit_from_settings(self, settings_file):
        """Longer series than configured fail."""
        settings_file.write_text('{"max_series_iterations": 5}', encoding="utf-8")
        engine = MathEngine.CalculatorEngine()
        assert engine.evaluate("∑(1;5;k)") == 15
        with pytest.raises(E.DomainError) as info:
            engine.evaluate("∑(1;6;k)")
        assert info.value.code == "2013"


# ============================================================================
# SAFE STRING API
# ============================================================================

BAD_EXPRESSIONS = [
    "(2+4",
    "1e99999999999999999999",
    "1e300000000",
    "2+4)",
    "5/0",
    "5%0",
    "2+",
    "*3",
    "!3",
    "sqrt(-1)",
    "ln(0)",
    "log(-5)",
    "logbase(8;1)",
    "tan(90)",
    "asin(2)",
    "(-1)!",
    "2.5!",
    "0^-1",
    "(-8)^0.5",
    "1.2.3",
    "2 # 3",
    "x+1",
    "|2",
    ")(",
    ";",
    "avg()",
    "rootn(8)",
    "∑(5;1;k)",
    "∑(1;2)",
    "10^10^10",
    "sin(",
    "Exception",
    "exception+1",
    "RandInt(5;1)",
    "5nCr7",
    "Γ(0)",
    "atan2(0;0)",
]


class TestSafeStrings:
    """evaluate_to_string never lets a failure escape."""

    @pytest.mark.parametrize("expression", BAD_EXPRESSIONS)
    def test_bad_expressions(self, engine, expression):
        """Known-bad input gives a catalogue message without the word exception."""
        result = engine.evaluate_to_string(expression)
        assert result.startswith("Error ")
        assert "exception" not in result.lower()

    @pytest.mark.parametrize("expression", BAD_EXPRESSIONS)
    def test_bad_expressions_pretty(self, engine, expression):
        """Same for the pretty variant."""
        result = engine.evaluate_to_pretty_string(expression)
        assert result.startswith("Error ")
        assert "exception" not in result.lower()

    def test_bad_variables(self, engine):
        """Variable failures are rendered too."""
        assert engine.evaluate_to_string("a", {"a": "b+1", "b": "a+2"}) == "Error 3101: Cyclic variable reference."
        assert engine.evaluate_to_string("a") == "Error 3100: Undefined variable."
        assert engine.evaluate_to_string("1", {"sin": "2"}) == "Error 3102: Reserved name used as variable."

    def test_division_message(self, engine):
        """The catalogue text, not the raw error."""
        assert engine.evaluate_to_string("5/0") == "Error 3003: Division by zero"

    def test_input_is_not_echoed(self, engine):
        """User input never appears in the message."""
        assert "zzz_secret" not in engine.evaluate_to_string("zzz_secret+1")

    def test_unexpected_failure(self, engine, monkeypatch):
        """Unexpected errors map to 9999."""
        def boom(self, postfix):
            raise RuntimeError("internal Exception details")

        monkeypatch.setattr(MathEngine.Evaluator, "evaluate", boom)
        assert engine.evaluate_to_string("1+1") == "Error 9999: Unexpected Error."

    def test_failures_are_logged(self, engine, caplog):
        """Recovered failures are logged at WARNING."""
        with caplog.at_level(logging.WARNING, logger="ExpressionEngine.MathEngine"):
            engine.evaluate_to_string("5/0")
        assert any("3003" in record.getMessage() for record in caplog.records)


# ============================================================================
# API SURFACE
# ============================================================================

class TestApi:
    """Module-level helpers and debugging passthroughs."""

    def test_module_level_helpers(self):
        """The default engine is created lazily."""
        assert MathEngine.evaluate("1+1") == 2
        assert MathEngine.evaluate_to_string("1/4") == "0.25"
        assert MathEngine.evaluate_to_pretty_string("1000*1000") == "1,000,000"
        assert MathEngine.get_default_engine() is MathEngine.get_default_engine()

    def test_package_exports(self):
        """The package re-exports the public API."""
        import ExpressionEngine

        assert ExpressionEngine.evaluate("2*3") == 6
        assert ExpressionEngine.CalculatorEngine is MathEngine.CalculatorEngine

    def test_equation_attached(self, engine):
        """Errors carry the source expression."""
        with pytest.raises(E.DomainError) as info:
            engine.evaluate("5/0")
        assert info.value.equation == "5/0"

    def test_tokenize_and_postfix(self, engine):
        """Debugging passthroughs."""
        assert [token.value for token in engine.tokenize("1+2")] == ["1", "+", "2"]
        assert [token.value for token in engine.to_postfix("1+2*3")] == ["1", "2", "3", "*", "+"]

    def test_compiled_expressions_are_cached(self, engine):
        """The same expression is compiled once per locale and policy."""
        first = engine.to_postfix("1+2")
        assert engine.to_postfix("1+2") is first
        assert MathEngine.cache_info().hits >= 1
        other = MathEngine.CalculatorEngine(precision=10)
        assert other.to_postfix("1+2") is not first

    def test_debug_setting(self, settings_file):
        """debug raises the package logger to DEBUG."""
        package_logger = logging.getLogger("ExpressionEngine")
        previous = package_logger.level
        settings_file.write_text('{"debug": true}', encoding="utf-8")
        try:
            MathEngine.CalculatorEngine()
            assert package_logger.level == logging.DEBUG
        finally:
            package_logger.setLevel(previous)

    def test_concurrent_engines(self):
        """Engines with different precisions run side by side."""
        engines = {precision: MathEngine.CalculatorEngine(precision=precision) for precision in (10, 30, 60)}

        def work(precision):
            return precision, engines[precision].evaluate_to_string("1/3+sin(30)-0.5")

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(work, [10, 30, 60] * 10))

        for precision, text in results:
            assert text == "0." + "3" * precision
