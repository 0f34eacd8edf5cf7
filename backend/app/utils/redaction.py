"""
Redaction utilities for sanitizing audit details and log payloads.

Audit ``details`` are free-form, so anything that looks like a credential is
replaced before it is persisted.  Identifiers such as ``apiKeyId`` or
``userId`` are kept: only fields holding secret *values* are redacted.
"""
import re
from typing import Any


# Sensitive field patterns (case-insensitive, whole field name)
DEFAULT_SENSITIVE_PATTERNS = [
    re.compile(r"^.*password.*$", re.IGNORECASE),
    re.compile(r"^.*token$", re.IGNORECASE),
    re.compile(r"^.*secret.*$", re.IGNORECASE),
    re.compile(r"^(x[_-])?api[_-]?key$", re.IGNORECASE),
    re.compile(r"^(raw[_-]?|new[_-]?|old[_-]?)?key$", re.IGNORECASE),
    re.compile(r"^authorization$", re.IGNORECASE),
    re.compile(r"^.*credential.*$", re.IGNORECASE),
]

REDACTION_PLACEHOLDER = "***REDACTED***"


def build_patterns(extra_fields: list[str] | None = None) -> list[re.Pattern]:
    """
    Combine the default patterns with extra field names.

    Plain names are matched exactly (case-insensitive); entries containing
    regex metacharacters are compiled as-is.  Invalid regexes are skipped.
    """
    patterns = list(DEFAULT_SENSITIVE_PATTERNS)
    for field in extra_fields or []:
        try:
            if any(c in field for c in r".*+?[](){}^$|\\"):
                patterns.append(re.compile(field, re.IGNORECASE))
            else:
                patterns.append(re.compile(rf"^{re.escape(field)}$", re.IGNORECASE))
        except re.error:
            continue
    return patterns


def _is_sensitive_key(key: str, patterns: list[re.Pattern] | None = None) -> bool:
    """Check if a key name matches any sensitive patterns."""
    check_patterns = patterns if patterns is not None else DEFAULT_SENSITIVE_PATTERNS
    return any(pattern.match(key) for pattern in check_patterns)


def redact_sensitive_data(
    data: Any,
    max_depth: int = 10,
    extra_patterns: list[re.Pattern] | None = None,
) -> Any:
    """
    Recursively redact sensitive fields from data structures.

    Returns a copy of *data*; dicts, lists and tuples are walked up to
    *max_depth* levels, primitives pass through unchanged.
    """
    if max_depth <= 0:
        return data

    patterns = extra_patterns if extra_patterns is not None else DEFAULT_SENSITIVE_PATTERNS

    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            if _is_sensitive_key(str(key), patterns):
                redacted[key] = REDACTION_PLACEHOLDER
            else:
                redacted[key] = redact_sensitive_data(value, max_depth - 1, patterns)
        return redacted

    elif isinstance(data, list):
        return [redact_sensitive_data(item, max_depth - 1, patterns) for item in data]

    elif isinstance(data, tuple):
        return tuple(redact_sensitive_data(item, max_depth - 1, patterns) for item in data)

    else:
        return data
