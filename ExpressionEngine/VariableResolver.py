# VariableResolver.py
"""
Textual variable substitution guarded by cycle detection.

Variables are expression strings ({"a": "5+3", "b": "a*2"}), so they may
reference each other. Before anything is substituted, the dependency graph
is checked with a depth-first search; a cycle fails with
CyclicVariableReferenceError naming the path.

Identifier scanning
-------------------
At every letter the scanner tries, in this order:
  1. the whole identifier ([A-Za-z][A-Za-z0-9_]*) when the map defines it
  2. the longest symbol table match (function names and constants are never variables)
  3. the whole identifier as a variable reference

Bodies of ranged functions (∑(1;5;k^2)) are skipped: they are resolved on
each re-entry, when the index variable k is known. The cycle check still
looks inside them, so a cycle through a body fails before evaluation.
"""

import re
import logging

from . import SymbolTable as ST
from . import error as E
from .Tokenizer import ranged_call

logger = logging.getLogger(__name__)

IDENTIFIER = re.compile(r"[A-Za-z][A-Za-z0-9_]*")


def _is_identifier_start(char):
    return ("a" <= char <= "z") or ("A" <= char <= "Z")


class VariableResolver:

    def __init__(self, symbol_table=None):
        self.symbols = symbol_table or ST.get_symbol_table()

    # -----------------------------
    # Scanning
    # -----------------------------

    def references(self, expression, variables, bodies=False):
        """Yield (name, start, end) for every variable reference.

        Ranged bodies are skipped unless bodies is True; inside a body the
        index variable is not a reference.
        """
        text = str(expression)
        skip_to = {}
        index = 0
        while index < len(text):
            if index in skip_to:
                index = skip_to.pop(index)
                continue

            char = text[index]
            word = IDENTIFIER.match(text, index) if _is_identifier_start(char) else None

            if word is not None and word.group() in variables:
                yield word.group(), index, word.end()
                index = word.end()
                continue

            descriptor = self.symbols.match(text, index)
            if descriptor is not None:
                end = index + len(descriptor.symbol)
                series = ranged_call(self.symbols, descriptor, text, end)
                if series is not None:
                    _, close_index, spans = series
                    if bodies:
                        body_start = spans[2][0]
                        for name, start, stop in self.references(text[body_start:close_index], variables, True):
                            if name != ST.INDEX_VARIABLE:
                                yield name, body_start + start, body_start + stop
                    skip_to[spans[1][1]] = close_index
                index = end
                continue

            if word is not None:
                yield word.group(), index, word.end()
                index = word.end()
                continue

            index += 1

    # -----------------------------
    # Validation
    # -----------------------------

    def validate(self, variables):
        """Reject names that are not identifiers or that shadow a symbol."""
        for name in variables:
            if not isinstance(name, str) or IDENTIFIER.fullmatch(name) is None:
                raise E.ConfigurationError(f"Invalid variable name: {name!r}", code="5000")
            descriptor = self.symbols.match(name, 0)
            if descriptor is not None and len(descriptor.symbol) == len(name):
                raise E.ConfigurationError(f"'{name}' is a reserved name.", code="3102")

    @staticmethod
    def _definition(variables, name):
        value = variables.get(name)
        if value is None:
            return None
        value = str(value)
        if not value.strip():
            return None
        return value

    def check_cycles(self, variables, expression=None):
        """Depth-first search over every definition reachable from the expression and the map."""
        dependencies = {}

        def depends_on(name):
            if name not in dependencies:
                definition = self._definition(variables, name)
                found = []
                if definition is not None:
                    for reference, _, _ in self.references(definition, variables, bodies=True):
                        # undefined names only matter when they are substituted
                        if self._definition(variables, reference) is not None and reference not in found:
                            found.append(reference)
                dependencies[name] = found
            return dependencies[name]

        visited = set()
        path = []

        def visit(name):
            if name in path:
                cycle = path[path.index(name):] + [name]
                raise E.CyclicVariableReferenceError(cycle)
            if name in visited:
                return
            path.append(name)
            for dependency in depends_on(name):
                visit(dependency)
            path.pop()
            visited.add(name)

        roots = []
        if expression is not None:
            roots.extend(name for name, _, _ in self.references(expression, variables, bodies=True))
        roots.extend(variables)
        for name in roots:
            if self._definition(variables, name) is not None:
                visit(name)

    # -----------------------------
    # Substitution
    # -----------------------------

    def substitute(self, expression, variables):
        """Replace every reference with "(" + its expanded definition + ")"."""
        expanded = {}

        def expand(text):
            pieces = []
            last = 0
            for name, start, end in self.references(text, variables):
                definition = self._definition(variables, name)
                if definition is None:
                    raise E.UndefinedVariableError(name)
                if name not in expanded:
                    expanded[name] = expand(definition)
                pieces.append(text[last:start])
                pieces.append("(" + expanded[name] + ")")
                last = end
            pieces.append(text[last:])
            return "".join(pieces)

        result = expand(str(expression))
        if variables:
            logger.debug("Substituted %r -> %r", expression, result)
        return result

    def resolve(self, expression, variables):
        self.validate(variables)
        self.check_cycles(variables, expression)
        return self.substitute(expression, variables)
