"""Display names for views and safe file names for base files."""

from __future__ import annotations

import re

import inflection

# Characters Obsidian refuses in file names
INVALID_CHARACTERS = re.compile(r'[*"\\/<>:|?#]')

MAX_FILE_NAME_LENGTH = 255

# Mass nouns common in task taxonomies that the inflector would pluralize
UNCOUNTABLE = {
    "research",
    "feedback",
    "maintenance",
    "documentation",
    "info",
    "admin",
    "support",
    "software",
    "hardware",
}


def pluralize(word: str) -> str:
    """Plural of the last word of `word`.

    Words that are already plural come back unchanged, so applying this
    twice gives the same result as applying it once.
    """
    text = word.strip()
    if not text:
        return text

    head, sep, last = text.rpartition(" ")
    if last.lower() in UNCOUNTABLE or _is_plural(last):
        return text

    plural = inflection.pluralize(last)
    # BUG -> BUGS, not BUGs
    if last.isupper() and len(last) > 1:
        plural = plural.upper()
    return f"{head}{sep}{plural}"


def _is_plural(word: str) -> bool:
    singular = inflection.singularize(word)
    if singular.lower() == word.lower():
        return False
    return inflection.pluralize(singular).lower() == word.lower()


def category_view_name(category: str) -> str:
    return f"All {pluralize(category)}"


def priority_view_name(category: str, priority: str) -> str:
    return f"{pluralize(category)} • {priority} priority"


def sanitize_file_name(name: str, replacement: str = "-") -> str:
    """Replace characters Obsidian rejects; never returns an empty string."""
    if not isinstance(name, str) or not name:
        raise ValueError("File name must be a non-empty string")

    sanitized = INVALID_CHARACTERS.sub(replacement, name)
    if replacement:
        escaped = re.escape(replacement)
        sanitized = re.sub(f"(?:{escaped}){{2,}}", replacement, sanitized)
        sanitized = sanitized.strip()
        sanitized = re.sub(f"^(?:{escaped})+|(?:{escaped})+$", "", sanitized)
    else:
        sanitized = sanitized.strip()

    if not sanitized:
        sanitized = "untitled"

    if len(sanitized) > MAX_FILE_NAME_LENGTH:
        sanitized = sanitized[:MAX_FILE_NAME_LENGTH].strip()
        if replacement:
            sanitized = re.sub(f"(?:{re.escape(replacement)})+$", "", sanitized)

    return sanitized
