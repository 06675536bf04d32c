# LocaleNumbers.py
"""
Locale-aware numeric literal handling.

Responsibilities
----------------
- Resolve the decimal / grouping separators of a locale (once, cached).
- Check whether a substring is a valid number in a locale *without* parsing it.
  The tokenizer calls this for every numeric lexeme, so the check works on
  indices only and never copies or trims the input.
- Auto-detect the locale of a literal using a fixed candidate order.
- Render a Decimal with locale separators (plain notation, optional grouping).

Grammar accepted by is_number()
-------------------------------
    [sign] digits {digits | grouping} [decimal digits*] [(e|E) [sign] digits]

- grouping separators only after the first digit and before the decimal separator
- at most one decimal separator
- leading / trailing whitespace is ignored
"""

import logging
from functools import lru_cache
from typing import NamedTuple

from babel import Locale, UnknownLocaleError
from babel.localedata import locale_identifiers
from babel.numbers import get_decimal_symbol, get_group_symbol

from . import config_manager as config_manager
from . import error as E

logger = logging.getLogger(__name__)

# Checked first during auto-detection. Many locales share separators, so the
# order decides which one "wins" and must never depend on set/dict iteration.
PREFERRED_LOCALES = (
    "en_US",
    "en_GB",
    "de_DE",
    "de",
    "de_AT",
    "de_CH",
    "en_CA",
    "fr_FR",
    "it_IT",
    "es_ES",
    "pt_BR",
)


class LocaleSeparators(NamedTuple):
    decimal: str
    grouping: str


# -----------------------------
# Locale resolution
# -----------------------------

@lru_cache(maxsize=256)
def _parse_locale(identifier):
    try:
        return Locale.parse(identifier.replace("-", "_"))
    except (UnknownLocaleError, ValueError, TypeError) as e:
        raise E.ConfigurationError(f"Unknown locale: {identifier} ({e})", code="5001")


def resolve_locale(value=None):
    """Return a babel Locale for None (configured default), a string or a Locale."""
    if value is None:
        value = config_manager.load_setting_value("locale")
    if isinstance(value, Locale):
        return value
    if not isinstance(value, str) or not value.strip():
        raise E.ConfigurationError(f"Unknown locale: {value!r}", code="5001")
    return _parse_locale(value.strip())


@lru_cache(maxsize=256)
def _separators_for(identifier):
    locale = _parse_locale(identifier)
    separators = LocaleSeparators(get_decimal_symbol(locale), get_group_symbol(locale))
    logger.debug("Resolved separators for %s: %r", identifier, separators)
    return separators


def get_separators(locale=None):
    """Decimal and grouping separator of a locale, resolved once per locale."""
    return _separators_for(str(resolve_locale(locale)))


# -----------------------------
# Validator
# -----------------------------

def _is_digit(char):
    return "0" <= char <= "9"


def is_number(text, locale=None, start=0, end=None):
    """Return True if text[start:end] is a syntactically valid number in the locale."""
    if text is None:
        return False
    separators = get_separators(locale)
    decimal_sep = separators.decimal
    grouping_sep = separators.grouping

    if end is None:
        end = len(text)

    # Trim by moving the indices; the string itself is never copied
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start >= end:
        return False

    i = start
    if text[i] in "+-":
        i += 1
        if i >= end:
            return False

    saw_digit = False
    saw_decimal = False

    while i < end:
        char = text[i]
        if _is_digit(char):
            saw_digit = True
            i += 1
        elif text.startswith(decimal_sep, i):
            if saw_decimal:
                return False
            saw_decimal = True
            i += len(decimal_sep)
        elif grouping_sep and text.startswith(grouping_sep, i):
            if not saw_digit or saw_decimal:
                return False
            i += len(grouping_sep)
        else:
            break

    if not saw_digit:
        return False

    if i < end and text[i] in "eE":
        i += 1
        if i < end and text[i] in "+-":
            i += 1
        if i >= end:
            return False
        while i < end:
            if not _is_digit(text[i]):
                return False
            i += 1
        return True

    return i == end


def normalize(text, locale=None):
    """Turn a locale literal into the canonical form understood by decimal.Decimal."""
    if not is_number(text, locale):
        raise E.SyntaxError(f"Not a number in locale {resolve_locale(locale)}: {text!r}", code="3001")
    separators = get_separators(locale)
    cleaned = text.strip()
    if separators.grouping:
        cleaned = cleaned.replace(separators.grouping, "")
    cleaned = cleaned.replace(separators.decimal, ".")
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    return cleaned


# -----------------------------
# Auto-detection
# -----------------------------

@lru_cache(maxsize=1)
def candidate_locales():
    """Preferred locales first, then every babel locale in sorted order."""
    ordered = list(PREFERRED_LOCALES)
    seen = set(ordered)
    for identifier in sorted(locale_identifiers()):
        if identifier not in seen:
            seen.add(identifier)
            ordered.append(identifier)
    return tuple(ordered)


def detect_locale(text):
    """Return the first candidate locale whose grammar accepts text."""
    for identifier in candidate_locales():
        try:
            accepted = is_number(text, identifier)
        except E.ConfigurationError:
            # identifiers babel lists but can not load
            continue
        if accepted:
            return _parse_locale(identifier)
    raise E.SyntaxError(f"Not a number in any supported locale: {text!r}", code="3001")


# -----------------------------
# Formatting
# -----------------------------

def group_digits(integer_part, grouping_sep):
    """Insert the grouping separator every three digits from the right."""
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return grouping_sep.join(groups)


def format_number(value, locale=None, grouping=False):
    """Render a finite Decimal in plain notation with the locale's separators."""
    separators = get_separators(locale)
    plain = format(value, "f")

    sign = ""
    if plain.startswith("-"):
        sign = "-"
        plain = plain[1:]

    integer_part, _, fraction_part = plain.partition(".")
    if grouping and separators.grouping:
        integer_part = group_digits(integer_part, separators.grouping)

    if fraction_part:
        return f"{sign}{integer_part}{separators.decimal}{fraction_part}"
    return f"{sign}{integer_part}"
