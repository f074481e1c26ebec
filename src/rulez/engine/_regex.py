"""Regex compilation cache and prompt pattern preparation.

Rules are re-evaluated on every invocation, and a host process that runs
several invocations (simulations, tests, dual-fire) would otherwise recompile
the same patterns repeatedly. The cache is an explicit object owned by the
execution context rather than module state, so each context can start clean.
"""

import re
import threading
from dataclasses import dataclass, field

from rulez.enums import Anchor

NEGATION_PREFIX: str = "not:"
CONTAINS_WORD_PREFIX: str = "contains_word:"


@dataclass(slots=True)
class RegexCache:
    """Thread-safe cache of compiled patterns keyed by pattern and flags."""

    _patterns: dict[tuple[str, bool], re.Pattern[str]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get_or_compile(
        self, pattern: str, *, case_insensitive: bool = False
    ) -> re.Pattern[str]:
        """Return the compiled pattern, compiling and caching it on first use.

        Args:
            pattern: The regex source.
            case_insensitive: Compile with ``re.IGNORECASE``.

        Returns:
            The compiled pattern.

        Raises:
            re.error: If the pattern is not a valid regex. Failures are not
                cached.
        """
        key = (pattern, case_insensitive)
        with self._lock:
            compiled = self._patterns.get(key)
            if compiled is None:
                flags = re.IGNORECASE if case_insensitive else 0
                compiled = re.compile(pattern, flags)
                self._patterns[key] = compiled
            return compiled

    def clear(self) -> None:
        """Drop every cached pattern."""
        with self._lock:
            self._patterns.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)


def split_negation(pattern: str) -> tuple[bool, str]:
    """Strip a leading ``not:`` prefix.

    Returns:
        Tuple of (is_negated, remaining pattern). The remainder is trimmed
        only when the prefix was present.
    """
    if pattern.startswith(NEGATION_PREFIX):
        return True, pattern[len(NEGATION_PREFIX) :].strip()
    return False, pattern


def expand_pattern(pattern: str) -> str:
    """Expand named shorthands into regex source.

    ``contains_word:<word>`` becomes a word-bounded, escaped literal. Other
    patterns are returned unchanged.
    """
    if pattern.startswith(CONTAINS_WORD_PREFIX):
        word = pattern[len(CONTAINS_WORD_PREFIX) :].strip()
        return rf"\b{re.escape(word)}\b"
    return pattern


def apply_anchor(pattern: str, anchor: Anchor | None) -> str:
    """Anchor a pattern at the start or end of the prompt."""
    if anchor == Anchor.START:
        return f"^{pattern}"
    if anchor == Anchor.END:
        return rf"{pattern}\Z"
    return pattern


def prepare_prompt_pattern(pattern: str, anchor: Anchor | None) -> tuple[bool, str]:
    """Turn a configured prompt pattern into regex source.

    Processing order is fixed: strip ``not:``, expand shorthands, then apply
    the anchor. The anchor therefore wraps the expanded pattern and never the
    negation prefix.

    Args:
        pattern: The pattern as written in the configuration.
        anchor: The prompt_match anchor, if any.

    Returns:
        Tuple of (is_negated, regex source).
    """
    negated, remainder = split_negation(pattern)
    return negated, apply_anchor(expand_pattern(remainder), anchor)
