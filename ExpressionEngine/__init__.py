from . import error as E
from .DecimalValue import CoordinatePair, DecimalValue, MathContext
from .MathEngine import (
    CalculatorEngine,
    evaluate,
    evaluate_to_pretty_string,
    evaluate_to_string,
)

__all__ = [
    "E",
    "CalculatorEngine",
    "CoordinatePair",
    "DecimalValue",
    "MathContext",
    "evaluate",
    "evaluate_to_string",
    "evaluate_to_pretty_string",
]
