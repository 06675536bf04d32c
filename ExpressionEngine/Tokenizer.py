# Tokenizer.py
"""
Turns an expression string into a list of Tokens.

Main scan (left to right over the whitespace-free text):
  1. numbers (locale separators, optional exponent, signed in prefix position)
  2. ( ) ; and |x| bars (rewritten to abs(x))
  3. longest match against the symbol table
     - constants become NUMBER tokens
     - variadic functions get their argument count
     - ranged functions (∑, ∏) keep their third argument as raw text

Afterwards four passes run over the whole token list:
  a) split a signed number directly after ")"      (2)-5 -> ) - 5
  b) implicit multiplication                       2(3) -> 2 * ( 3 )
  c) sign-run collapse                             5---2 -> 5 + -2
  d) prefix + / - resolution                       -(2) -> neg ( 2 )
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import LocaleNumbers
from . import SymbolTable as ST
from . import error as E
from .DecimalValue import DEFAULT_MATH_CONTEXT

logger = logging.getLogger(__name__)

# k as a standalone name ("2k" counts, "kx" does not)
INDEX_REFERENCE = re.compile(r"(?<![A-Za-z_])" + ST.INDEX_VARIABLE + r"(?![A-Za-z0-9_])")


class TokenType(Enum):
    NUMBER = "NUMBER"
    OPERATOR = "OPERATOR"
    FUNCTION = "FUNCTION"
    LEFT_PAREN = "LEFT_PAREN"
    RIGHT_PAREN = "RIGHT_PAREN"
    SEMICOLON = "SEMICOLON"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    position: int = -1
    arg_count: Optional[int] = None
    body: Optional[str] = None

    def __repr__(self):
        return f"{self.type.value}({self.value})"


def _is_digit(char):
    return "0" <= char <= "9"


def split_arguments(text, open_index):
    """Split the call starting at text[open_index] == "(" on its top-level ";".

    Returns (close_index, [(start, end), ...]) with one span per argument.
    """
    depth = 0
    spans = []
    start = open_index + 1
    for index in range(open_index, len(text)):
        char = text[index]
        if char == ST.LEFT_PAREN:
            depth += 1
        elif char == ST.RIGHT_PAREN:
            depth -= 1
            if depth == 0:
                spans.append((start, index))
                return index, spans
        elif char == ST.SEPARATOR and depth == 1:
            spans.append((start, index))
            start = index + 1
    raise E.SyntaxError("Missing closing parenthesis.", code="3002", position=open_index)


def references_index(text):
    return INDEX_REFERENCE.search(text) is not None


def ranged_call(symbols, descriptor, text, end_of_symbol):
    """Return (ranged descriptor, close_index, spans) if the call at end_of_symbol is a series, else None.

    ∑/∏/prod are always series; "sum" only with three arguments and a k in the last one.
    """
    is_alias = descriptor.symbol in symbols.ranged_aliases
    if descriptor.kind != ST.RANGED and not is_alias:
        return None
    if end_of_symbol >= len(text) or text[end_of_symbol] != ST.LEFT_PAREN:
        if is_alias:
            return None
        raise E.SyntaxError(f"'{descriptor.symbol}' needs (start; end; expression).",
                            code="3006", position=end_of_symbol)

    close_index, spans = split_arguments(text, end_of_symbol)
    if is_alias:
        if len(spans) != 3 or not references_index(text[spans[2][0]:spans[2][1]]):
            return None
        descriptor = symbols[symbols.ranged_aliases[descriptor.symbol]]
    elif len(spans) != 3:
        raise E.SyntaxError(f"'{descriptor.symbol}' needs exactly three arguments.",
                            code="3010", position=end_of_symbol)
    return descriptor, close_index, spans


class Tokenizer:
    """Tokenizer bound to a symbol table, a MathContext (for constants) and a locale."""

    def __init__(self, symbol_table=None, math_context=None, locale=None):
        self.symbols = symbol_table or ST.get_symbol_table()
        self.math_context = math_context or DEFAULT_MATH_CONTEXT
        self.locale = LocaleNumbers.resolve_locale(locale)
        self.separators = LocaleNumbers.get_separators(self.locale)

    # -----------------------------
    # Helpers
    # -----------------------------

    @staticmethod
    def _in_prefix_position(tokens):
        """True where an operand has to start (start, after "(", ";", a function or an infix operator)."""
        if not tokens:
            return True
        previous = tokens[-1]
        if previous.type in (TokenType.LEFT_PAREN, TokenType.SEMICOLON, TokenType.FUNCTION):
            return True
        return previous.type == TokenType.OPERATOR and previous.value != "!"

    def _starts_number(self, text, index):
        if _is_digit(text[index]):
            return True
        decimal_sep = self.separators.decimal
        after = index + len(decimal_sep)
        return text.startswith(decimal_sep, index) and after < len(text) and _is_digit(text[after])

    def _scan_number(self, text, start):
        """Return the end index of the number literal starting at start."""
        decimal_sep = self.separators.decimal
        grouping_sep = self.separators.grouping
        index = start
        if text[index] in "+-":
            index += 1
        while index < len(text):
            if _is_digit(text[index]):
                index += 1
            elif text.startswith(decimal_sep, index):
                index += len(decimal_sep)
            elif grouping_sep and text.startswith(grouping_sep, index):
                index += len(grouping_sep)
            else:
                break

        # exponent only when a digit follows, a bare e is the constant
        if index < len(text) and text[index] in "eE":
            exponent = index + 1
            if exponent < len(text) and text[exponent] in "+-":
                exponent += 1
            if exponent < len(text) and _is_digit(text[exponent]):
                while exponent < len(text) and _is_digit(text[exponent]):
                    exponent += 1
                index = exponent

        if not LocaleNumbers.is_number(text, self.locale, start, index):
            raise E.SyntaxError(f"Invalid number '{text[start:index]}' at position {start}.",
                                code="3001", position=start)
        return index

    def _constant_token(self, descriptor, position):
        value = descriptor.apply((), self)
        return Token(TokenType.NUMBER, value.to_string(self.locale), position)

    # -----------------------------
    # Main scan
    # -----------------------------

    def tokenize(self, expression):
        text = "".join(str(expression).split())
        if not text:
            raise E.SyntaxError("Empty expression.", code="3005", position=0)

        tokens = []
        open_bars = 0
        # second top-level ";" of a series -> its closing ")"
        skip_to = {}
        index = 0

        while index < len(text):
            char = text[index]

            if index in skip_to:
                index = skip_to.pop(index)
                continue

            # --- 1. Numbers ---
            if self._starts_number(text, index) or (
                    char in "+-" and index + 1 < len(text)
                    and self._starts_number(text, index + 1)
                    and self._in_prefix_position(tokens)):
                end = self._scan_number(text, index)
                tokens.append(Token(TokenType.NUMBER, text[index:end], index))
                index = end
                continue

            # --- 2. Structure ---
            if char == ST.LEFT_PAREN:
                tokens.append(Token(TokenType.LEFT_PAREN, char, index))
                index += 1
                continue
            if char == ST.RIGHT_PAREN:
                tokens.append(Token(TokenType.RIGHT_PAREN, char, index))
                index += 1
                continue
            if char == ST.SEPARATOR:
                tokens.append(Token(TokenType.SEMICOLON, char, index))
                index += 1
                continue
            if char == ST.ABSOLUTE_BAR:
                if open_bars > 0 and not self._in_prefix_position(tokens):
                    tokens.append(Token(TokenType.RIGHT_PAREN, ST.RIGHT_PAREN, index))
                    open_bars -= 1
                else:
                    tokens.append(Token(TokenType.FUNCTION, "abs", index))
                    tokens.append(Token(TokenType.LEFT_PAREN, ST.LEFT_PAREN, index))
                    open_bars += 1
                index += 1
                continue

            # --- 3. Symbols ---
            descriptor = self.symbols.match(text, index)
            if descriptor is None:
                if char.isalpha():
                    name = re.match(r"[A-Za-z0-9_]+", text[index:])
                    shown = name.group() if name else char
                    raise E.SyntaxError(f"Unknown variable or symbol '{shown}' at position {index}.",
                                        code="3009", position=index)
                raise E.SyntaxError(f"Invalid character '{char}' at position {index}.",
                                    code="3000", position=index)

            end = index + len(descriptor.symbol)

            if descriptor.kind == ST.CONSTANT:
                tokens.append(self._constant_token(descriptor, index))
                index = end
                continue

            if descriptor.kind in (ST.OPERATOR, ST.POSTFIX):
                tokens.append(Token(TokenType.OPERATOR, descriptor.symbol, index))
                index = end
                continue

            series = ranged_call(self.symbols, descriptor, text, end)
            if series is not None:
                ranged, close_index, spans = series
                body_start, body_end = spans[2]
                tokens.append(Token(TokenType.FUNCTION, ranged.symbol, index, body=text[body_start:body_end]))
                # start;end are tokenized as usual, the body is not
                skip_to[spans[1][1]] = close_index
                index = end
                continue

            arg_count = None
            if end < len(text) and text[end] == ST.LEFT_PAREN:
                _, spans = split_arguments(text, end)
                if any(start == stop for start, stop in spans):
                    raise E.SyntaxError(f"Missing argument for '{descriptor.symbol}' at position {index}.",
                                        code="3006", position=index)
                if descriptor.kind == ST.VARIADIC:
                    arg_count = len(spans)
                elif len(spans) != descriptor.arity:
                    raise E.SyntaxError(
                        f"'{descriptor.symbol}' takes {descriptor.arity} argument(s), got {len(spans)}.",
                        code="3010", position=index)
            elif descriptor.kind == ST.VARIADIC:
                raise E.SyntaxError(f"'{descriptor.symbol}' needs an argument list.", code="3006", position=index)

            tokens.append(Token(TokenType.FUNCTION, descriptor.symbol, index, arg_count=arg_count))
            index = end

        if open_bars:
            raise E.SyntaxError("Mismatched absolute value bars.", code="3007", position=len(text))

        tokens = self._split_signed_numbers(tokens)
        tokens = self._insert_implicit_multiplication(tokens)
        tokens = self._collapse_sign_runs(tokens)
        tokens = self._resolve_unary_signs(tokens)
        logger.debug("Tokens for %r: %s", text, tokens)
        return tokens

    # -----------------------------
    # Normalization passes
    # -----------------------------

    @staticmethod
    def _split_signed_numbers(tokens):
        result = []
        for token in tokens:
            if (token.type == TokenType.NUMBER and token.value[0] in "+-"
                    and result and result[-1].type == TokenType.RIGHT_PAREN):
                result.append(Token(TokenType.OPERATOR, token.value[0], token.position))
                result.append(Token(TokenType.NUMBER, token.value[1:], token.position + 1))
            else:
                result.append(token)
        return result

    @staticmethod
    def _insert_implicit_multiplication(tokens):
        result = []
        for token in tokens:
            if result:
                previous = result[-1]
                operand_before = (previous.type in (TokenType.NUMBER, TokenType.RIGHT_PAREN)
                                  or (previous.type == TokenType.OPERATOR and previous.value == "!"))
                operand_after = token.type in (TokenType.NUMBER, TokenType.FUNCTION, TokenType.LEFT_PAREN)
                if operand_before and operand_after:
                    result.append(Token(TokenType.OPERATOR, "*", token.position))
            result.append(token)
        return result

    @staticmethod
    def _collapse_sign_runs(tokens):
        result = []
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token.type == TokenType.OPERATOR and token.value in "+-":
                minus_count = 0
                run_end = index
                while (run_end < len(tokens) and tokens[run_end].type == TokenType.OPERATOR
                       and tokens[run_end].value in "+-"):
                    if tokens[run_end].value == "-":
                        minus_count += 1
                    run_end += 1
                sign = "-" if minus_count % 2 else "+"
                result.append(Token(TokenType.OPERATOR, sign, token.position))
                index = run_end
            else:
                result.append(token)
                index += 1
        return result

    def _resolve_unary_signs(self, tokens):
        result = []
        for token in tokens:
            if token.type == TokenType.OPERATOR and token.value in "+-" and self._in_prefix_position(result):
                if token.value == "-":
                    result.append(Token(TokenType.FUNCTION, ST.NEGATE, token.position))
                continue
            result.append(token)
        return result


def tokenize(expression, math_context=None, locale=None):
    return Tokenizer(math_context=math_context, locale=locale).tokenize(expression)
