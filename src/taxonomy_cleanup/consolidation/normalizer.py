"""Category name normalization utilities.

This module provides two independent views of a category name:

- Comparison keys (``normalize_for_comparison``, ``stem_word``) used only to
  detect duplicates. They are never written back to the store.
- Display names (``format_category_name``) produced by the title-case
  formatter, which honours acronyms, stop words and compound tokens.

The stemmer is a heuristic that folds a few regular English plural suffixes.
Irregular plurals ("people", "children") and other languages are not folded.
"""

import re

from taxonomy_cleanup.config import DEFAULT_CATEGORY_NAME

# =============================================================================
# STOP WORDS
# =============================================================================
# Articles and short prepositions/conjunctions kept lowercase in display names
# unless they open the name.

TITLE_CASE_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a",
        "an",
        "and",
        "as",
        "at",
        "but",
        "by",
        "for",
        "from",
        "in",
        "into",
        "nor",
        "of",
        "on",
        "onto",
        "or",
        "over",
        "per",
        "so",
        "the",
        "to",
        "under",
        "via",
        "vs",
        "with",
        "yet",
    }
)

_CURLY_APOSTROPHES = re.compile(r"[‘’]")
_WHITESPACE = re.compile(r"\s+")
_NON_KEY_CHARS = re.compile(r"[^a-z0-9 ]")
# Keep letters, digits, whitespace, "-", "_", "'" and "/"
_SANITIZE = re.compile(r"[^\w\s\-'/]+")
_ACRONYM = re.compile(r"^[A-Z0-9]{2,}$")
_ALNUM = re.compile(r"[^\W_]")
_SEGMENT_SEPARATORS = re.compile(r"([\-_/])")
_HASHTAG_SPLIT = re.compile(r"[\s_\-]+")
_NON_HASHTAG_CHARS = re.compile(r"[^a-zA-Z0-9]")


# =============================================================================
# COMPARISON KEYS
# =============================================================================


def normalize_for_comparison(name: str) -> str:
    """Normalize a category name into a comparison key.

    Args:
        name: Raw category name.

    Returns:
        Lowercase key containing only ``[a-z0-9 ]``.

    Example:
        >>> normalize_for_comparison("  Women’s   Fashion ")
        "womens fashion"
    """
    if not name:
        return ""

    normalized = name.lower().strip()
    normalized = _WHITESPACE.sub(" ", normalized)
    normalized = _CURLY_APOSTROPHES.sub("'", normalized)
    return _NON_KEY_CHARS.sub("", normalized)


def stem_word(name: str) -> str:
    """Fold common English plural suffixes off a comparison key.

    Rules, first match wins:
    - ``-ies`` becomes ``-y`` when the key is longer than 4 characters
    - ``-es`` is dropped when the key is longer than 3 characters and the
      remaining stem ends with ``sh``, ``ch``, ``x`` or ``s``
    - a trailing ``-s`` is dropped when the key is longer than 2 characters
      and does not end with ``ss``

    Args:
        name: Raw category name.

    Returns:
        Stemmed comparison key.

    Example:
        >>> stem_word("Categories")
        'category'
        >>> stem_word("dishes")
        'dish'
    """
    normalized = normalize_for_comparison(name)

    if normalized.endswith("ies") and len(normalized) > 4:
        return normalized[:-3] + "y"
    if normalized.endswith("es") and len(normalized) > 3:
        stem = normalized[:-2]
        if stem.endswith(("sh", "ch", "x", "s")):
            return stem
    if ends_with_plural_s(normalized):
        return normalized[:-1]
    return normalized


def ends_with_plural_s(name: str) -> bool:
    """Check whether a name ends in a plural-looking ``s``.

    Args:
        name: Raw category name.

    Returns:
        True for keys longer than 2 characters ending in ``s`` but not ``ss``.
    """
    normalized = normalize_for_comparison(name)
    return normalized.endswith("s") and len(normalized) > 2 and not normalized.endswith("ss")


# =============================================================================
# DISPLAY NAMES
# =============================================================================


def sanitize_category_name(name: str) -> str:
    """Drop punctuation and symbols before title-casing.

    Letters, digits, whitespace, ``-``, ``_``, ``'`` and ``/`` survive; every
    other run of characters becomes a single space. Whitespace is collapsed
    and trimmed.

    Args:
        name: Raw category name.

    Returns:
        Sanitized name, possibly empty.
    """
    if not name:
        return ""
    cleaned = _SANITIZE.sub(" ", name)
    return _WHITESPACE.sub(" ", cleaned).strip()


def _title_case_segment(segment: str, is_first: bool) -> str:
    if not segment:
        return segment

    if _ACRONYM.match(segment):
        return segment

    alnum_positions = [m.start() for m in _ALNUM.finditer(segment)]
    if not alnum_positions:
        return segment

    first, last = alnum_positions[0], alnum_positions[-1]
    prefix = segment[:first]
    core = segment[first : last + 1]
    suffix = segment[last + 1 :]

    core_lower = core.lower()
    if not is_first and core_lower in TITLE_CASE_STOP_WORDS:
        cased = core_lower
    else:
        cased = core_lower[:1].upper() + core_lower[1:]

    return f"{prefix}{cased}{suffix}"


def _title_case_token(token: str, is_first_word: bool) -> str:
    parts = _SEGMENT_SEPARATORS.split(token)
    first_segment = True
    out = []
    for part in parts:
        if part in ("-", "_", "/"):
            out.append(part)
            continue
        out.append(_title_case_segment(part, is_first_word and first_segment))
        first_segment = False
    return "".join(out)


def to_title_case(name: str) -> str:
    """Title-case an already sanitized category name.

    Applied per whitespace token, then per ``-``/``_``/``/`` segment:
    all-caps alphanumeric segments of 2+ characters are kept verbatim,
    leading/trailing glyphs such as ``#`` or parentheses are preserved,
    the first segment of the first word is always capitalized, stop words
    elsewhere are lowercased and every other segment is capitalized.

    Args:
        name: Sanitized category name.

    Returns:
        Display-ready name.

    Example:
        >>> to_title_case("the lord of the rings")
        'The Lord of the Rings'
        >>> to_title_case("USA travel")
        'USA Travel'
    """
    normalized = _WHITESPACE.sub(" ", name.strip())
    if not normalized:
        return normalized

    return " ".join(
        _title_case_token(token, index == 0) for index, token in enumerate(normalized.split(" "))
    )


def format_category_name(name: str) -> str:
    """Sanitize and title-case a raw category name.

    Args:
        name: Raw category name.

    Returns:
        Display name, or ``"General"`` if nothing survives sanitization.
    """
    cleaned = sanitize_category_name(name)
    if not cleaned:
        return DEFAULT_CATEGORY_NAME
    return to_title_case(cleaned)


def category_to_hashtag(name: str) -> str:
    """Convert a category name into a hashtag token.

    Splits on whitespace, ``-`` and ``_``, capitalizes each word, joins them
    and strips everything that is not ASCII alphanumeric.

    Args:
        name: Category name.

    Returns:
        Hashtag without the leading ``#``, possibly empty.

    Example:
        >>> category_to_hashtag("street-food markets")
        'StreetFoodMarkets'
    """
    if not name:
        return ""
    words = _HASHTAG_SPLIT.split(name)
    joined = "".join(word[:1].upper() + word[1:].lower() for word in words)
    return _NON_HASHTAG_CHARS.sub("", joined)
