"""
Include/exclude pattern compilation.

Patterns come from configuration as plain strings. By default they use a
small wildcard syntax (``*.example.com``); with regex enabled they are
compiled verbatim. A pattern that fails to compile is reported and left out
of its set, it never prevents the rest of the configuration from loading.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from pulse_netlog.errors import PatternCompilationError
from pulse_netlog.util.const import WILDCARD_ANY, WILDCARD_DOT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledPattern:
    """A configuration string and the regex it compiled to."""
    source: str
    regex: re.Pattern

    def matches(self, value: str) -> bool:
        # Substring search, patterns are not anchored
        return self.regex.search(value) is not None


def translate_wildcard(pattern: str) -> str:
    """Escape literal dots and turn ``*`` into a lazy match-anything."""
    return pattern.replace(".", WILDCARD_DOT).replace("*", WILDCARD_ANY)


def compile_pattern(pattern: str, regex_enabled: bool = False) -> CompiledPattern:
    """
    Compile a single include/exclude pattern.

    Args:
        pattern: The configuration string
        regex_enabled: Compile verbatim instead of translating wildcards

    Returns:
        The compiled pattern

    Raises:
        PatternCompilationError: If the resulting expression is invalid
    """
    expression = pattern if regex_enabled else translate_wildcard(pattern)
    try:
        return CompiledPattern(source=pattern, regex=re.compile(expression))
    except re.error as e:
        raise PatternCompilationError(pattern, str(e)) from e


@dataclass(frozen=True)
class PatternSet:
    """Compiled patterns plus the diagnostics for the ones that failed."""
    patterns: Tuple[CompiledPattern, ...] = ()
    diagnostics: Tuple[PatternCompilationError, ...] = field(default=())

    @classmethod
    def compile(cls, patterns: Iterable[str], regex_enabled: bool = False) -> PatternSet:
        compiled: List[CompiledPattern] = []
        failures: List[PatternCompilationError] = []
        # Sorted so that diagnostics come out in a stable order
        for pattern in sorted(patterns):
            try:
                compiled.append(compile_pattern(pattern, regex_enabled))
            except PatternCompilationError as e:
                logger.warning("%s", e)
                failures.append(e)
        return cls(patterns=tuple(compiled), diagnostics=tuple(failures))

    def matches(self, value: str) -> bool:
        """True if any pattern matches. An empty set matches nothing."""
        return any(p.matches(value) for p in self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)
