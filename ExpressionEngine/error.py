# error.py

class MathError(Exception):
    def __init__(self, message, code="9999", equation=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.equation = equation

class SyntaxError(MathError):
    def __init__(self, message, code="3000", equation=None, position=None):
        super().__init__(message, code=code, equation=equation)
        self.position = position

class UndefinedVariableError(MathError):
    def __init__(self, name, code="3100", equation=None):
        super().__init__(f"Variable '{name}' is not defined.", code=code, equation=equation)
        self.name = name

class CyclicVariableReferenceError(MathError):
    def __init__(self, cycle, code="3101", equation=None):
        super().__init__("Cyclic variable reference: " + " -> ".join(cycle), code=code, equation=equation)
        self.cycle = list(cycle)

class DomainError(MathError):
    pass

class MalformedExpressionError(MathError):
    pass

class ConfigurationError(MathError):
    pass










Error_Dictionary= {

    "2" : "Scientific Calculation Error",
    "3" : "Calculator Error",
    "5" : "Configuration Error",
    "9" : "Runtime Error"

}

#Error Messages are structured in:
# 1. Digit: Main Error
# 2. Digit: Specification
# 3. and 4. Digit: Error Number



ERROR_MESSAGES = {
    "2000" : "Undefined operation.",
    "2001" : "Logarithm of a non-positive number.",
    "2002" : "Invalid logarithm base.",
    "2003" : "Root of a negative number.",
    "2004" : "Factorial needs a non-negative integer.",
    "2005" : "Trigonometric function undefined at this angle.",
    "2006" : "Inverse function argument out of range.",
    "2007" : "Gamma function undefined at non-positive integers.",
    "2008" : "Combinatorics needs non-negative integers.",
    "2009" : "Number theory functions need integers.",
    "2010" : "Invalid random range.",
    "2011" : "Result is not a finite number.",
    "2012" : "Invalid series bounds.",
    "2013" : "Series has too many terms.",
    "2014" : "Zero to a negative power.",


    "3000" : "Invalid character in expression.",
    "3001" : "Invalid number.",
    "3002" : "Mismatched parentheses.",
    "3003" : "Division by zero",
    "3004" : "Misplaced separator.",
    "3005" : "Empty expression.",
    "3006" : "Missing arguments in function call.",
    "3007" : "Mismatched absolute value bars.",
    "3008" : "Factorial must follow a value.",
    "3009" : "Unknown variable or symbol.",
    "3010" : "Wrong number of arguments.",
    "3100" : "Undefined variable.",
    "3101" : "Cyclic variable reference.",
    "3102" : "Reserved name used as variable.",
    "3200" : "Malformed expression.",
    "3201" : "Unknown operator.",
    "3026" : "Number out of range.",


    "5000" : "Invalid configuration value.",
    "5001" : "Unknown locale.",
    "5002" : "Unknown rounding mode.",
    "5003" : "Unknown angle mode.",


    "9999" : "Unexpected Error."
}


def safe_message(error):
    """Render an error as a short catalogue message.

    Only catalogue text leaves this function, never the raw error text, so a
    failing expression can not leak internals (or user input) into the result.
    """
    code = getattr(error, "code", "9999")
    if code not in ERROR_MESSAGES:
        code = "9999"
    return f"Error {code}: {ERROR_MESSAGES[code]}"
