# Parser.py
"""
Shunting-Yard conversion from infix tokens to postfix (RPN).

- numbers go to the output
- functions and "(" are pushed
- the postfix "!" is emitted immediately (it has no pending right operand)
- other operators pop while the top is a function, or an operator with higher
  precedence, or with equal precedence when the incoming operator is
  left-associative ("^" is the only right-associative one)
- ")" pops to the matching "(" and then pops a function sitting below it
- ";" pops to the enclosing "(" but keeps it, so the call stays open
"""

import logging

from . import SymbolTable as ST
from . import error as E
from .Tokenizer import TokenType

logger = logging.getLogger(__name__)

# Token types after which a value is complete (a "!" may follow)
_VALUE_ENDS = (TokenType.NUMBER, TokenType.RIGHT_PAREN)


def _descriptor(symbols, token):
    descriptor = symbols.get(token.value)
    if descriptor is None:
        raise E.SyntaxError(f"Unknown operator '{token.value}' at position {token.position}.",
                            code="3201", position=token.position)
    return descriptor


def to_postfix(tokens, symbol_table=None):
    symbols = symbol_table or ST.get_symbol_table()
    if not tokens:
        raise E.SyntaxError("Empty expression.", code="3005", position=0)

    output = []
    stack = []
    previous = None

    for token in tokens:
        if token.type == TokenType.NUMBER:
            output.append(token)

        elif token.type in (TokenType.FUNCTION, TokenType.LEFT_PAREN):
            stack.append(token)

        elif token.type == TokenType.OPERATOR:
            descriptor = _descriptor(symbols, token)
            if descriptor.is_postfix:
                completes_value = previous is not None and (
                        previous.type in _VALUE_ENDS
                        or (previous.type == TokenType.OPERATOR and previous.value == token.value))
                if not completes_value:
                    raise E.SyntaxError(f"'{token.value}' must follow a value (position {token.position}).",
                                        code="3008", position=token.position)
                output.append(token)
            else:
                while stack and stack[-1].type != TokenType.LEFT_PAREN:
                    top = stack[-1]
                    if top.type == TokenType.FUNCTION:
                        output.append(stack.pop())
                        continue
                    top_descriptor = _descriptor(symbols, top)
                    if (top_descriptor.precedence > descriptor.precedence
                            or (top_descriptor.precedence == descriptor.precedence
                                and not descriptor.is_right_associative)):
                        output.append(stack.pop())
                    else:
                        break
                stack.append(token)

        elif token.type == TokenType.RIGHT_PAREN:
            while stack and stack[-1].type != TokenType.LEFT_PAREN:
                output.append(stack.pop())
            if not stack:
                raise E.SyntaxError(f"Mismatched parentheses at position {token.position}.",
                                    code="3002", position=token.position)
            stack.pop()
            if stack and stack[-1].type == TokenType.FUNCTION:
                output.append(stack.pop())

        elif token.type == TokenType.SEMICOLON:
            while stack and stack[-1].type != TokenType.LEFT_PAREN:
                output.append(stack.pop())
            if not stack:
                raise E.SyntaxError(f"Misplaced separator at position {token.position}.",
                                    code="3004", position=token.position)

        previous = token

    while stack:
        token = stack.pop()
        if token.type in (TokenType.LEFT_PAREN, TokenType.RIGHT_PAREN):
            raise E.SyntaxError(f"Mismatched parentheses at position {token.position}.",
                                code="3002", position=token.position)
        output.append(token)

    logger.debug("Postfix: %s", output)
    return tuple(output)
