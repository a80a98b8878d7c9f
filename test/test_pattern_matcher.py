import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from pulse_netlog.errors import PatternCompilationError
from pulse_netlog.util.patterns import PatternSet, compile_pattern, translate_wildcard


class TestWildcardPatterns:
    """Wildcard translation and matching."""

    def test_translation(self):
        assert translate_wildcard("*.example.com") == r".*?\.example\.com"
        assert translate_wildcard("api.example.com") == r"api\.example\.com"

    def test_leading_star_requires_subdomain(self):
        pattern = compile_pattern("*.example.com")
        assert pattern.matches("api.example.com")
        assert pattern.matches("logging.example.com")
        assert not pattern.matches("example.com")
        assert not pattern.matches("pulse.com")

    def test_dot_is_literal(self):
        pattern = compile_pattern("api.example.com")
        assert pattern.matches("api.example.com")
        assert not pattern.matches("apiXexample.com")

    def test_match_is_not_anchored(self):
        """Patterns match anywhere in the candidate string."""
        pattern = compile_pattern("example.com")
        assert pattern.matches("https://api.example.com/v1")


class TestRegexPatterns:
    """Patterns compiled verbatim when regex is enabled."""

    def test_alternation(self):
        pattern = compile_pattern("(logging|api).example.com", regex_enabled=True)
        assert pattern.matches("api.example.com")
        assert pattern.matches("logging.example.com")
        assert not pattern.matches("pulse.com")

    def test_anchors(self):
        pattern = compile_pattern(r"^api\.example\.com$", regex_enabled=True)
        assert pattern.matches("api.example.com")
        assert not pattern.matches("api.example.com.evil.org")

    def test_invalid_regex_raises(self):
        with pytest.raises(PatternCompilationError) as exc_info:
            compile_pattern("(unclosed", regex_enabled=True)
        assert exc_info.value.pattern == "(unclosed"
        assert "(unclosed" in str(exc_info.value)

    def test_invalid_wildcard_raises(self):
        with pytest.raises(PatternCompilationError):
            compile_pattern("[api.example.com")


class TestPatternSet:
    """Compiled sets and their diagnostics."""

    def test_empty_set_matches_nothing(self):
        patterns = PatternSet.compile([])
        assert not patterns
        assert len(patterns) == 0
        assert not patterns.matches("api.example.com")

    def test_failed_pattern_is_skipped(self):
        patterns = PatternSet.compile(["(broken", "api\\.example\\.com"], regex_enabled=True)
        assert len(patterns) == 1
        assert len(patterns.diagnostics) == 1
        assert patterns.diagnostics[0].pattern == "(broken"
        assert patterns.matches("api.example.com")

    def test_failure_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="pulse_netlog.util.patterns"):
            PatternSet.compile(["(broken"], regex_enabled=True)
        assert "(broken" in caplog.text

    def test_any_pattern_matches(self):
        patterns = PatternSet.compile({"api.example.com", "pulse.com"})
        assert patterns.matches("pulse.com")
        assert patterns.matches("api.example.com")
        assert not patterns.matches("logging.example.com")
