"""
Network Logger Configuration.

This module provides the configuration options for the network logger:
deferred completion, host/URL include and exclude patterns, and the hook
that sees every event before it reaches the sink.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Set

from pulse_netlog.events.events import NetworkEvent
from pulse_netlog.events.filter import EventFilter
from pulse_netlog.util.const import DEFAULT_RETIRED_CAPACITY

EventHook = Callable[[NetworkEvent], Optional[NetworkEvent]]

_PATTERN_FIELDS = ("included_hosts", "included_urls", "excluded_hosts", "excluded_urls")


def keep_event(event: NetworkEvent) -> Optional[NetworkEvent]:
    """Default hook, passes every event through unchanged."""
    return event


def _as_pattern_set(name: str, value: Optional[Iterable[str]]) -> Set[str]:
    if value is None:
        return set()
    if isinstance(value, (str, bytes)):
        raise TypeError(f"{name} must be a collection of strings, not a single string")
    patterns = set(value)
    for pattern in patterns:
        if not isinstance(pattern, str):
            raise TypeError(f"{name} must contain strings, got {type(pattern).__name__}")
    return patterns


@dataclass
class NetworkLoggerConfig:
    """
    Configuration for the network logger.

    Attributes:
        is_waiting_for_decoding: Keep tasks open until decoding finishes.
            A task that fails completes immediately regardless.
        included_hosts: Only log these hosts (wildcards, or regex if enabled)
        included_urls: Only log these URLs
        excluded_hosts: Never log these hosts
        excluded_urls: Never log these URLs
        is_regex_enabled: Treat patterns as regular expressions instead of
            the basic ``*.example.com`` wildcard syntax
        will_handle_event: Called with every event that passed the filter.
            Return a (possibly modified) event, or None to drop it.
        strict_patterns: Raise on patterns that fail to compile instead of
            skipping them
        retired_capacity: How many finished tasks are remembered so that
            callbacks arriving after completion are ignored
    """

    is_waiting_for_decoding: bool = False

    # Filtering
    included_hosts: Set[str] = field(default_factory=set)
    included_urls: Set[str] = field(default_factory=set)
    excluded_hosts: Set[str] = field(default_factory=set)
    excluded_urls: Set[str] = field(default_factory=set)
    is_regex_enabled: bool = False

    # Hooks
    will_handle_event: EventHook = keep_event

    strict_patterns: bool = False
    retired_capacity: int = DEFAULT_RETIRED_CAPACITY

    def __post_init__(self):
        for name in _PATTERN_FIELDS:
            setattr(self, name, _as_pattern_set(name, getattr(self, name)))
        if self.will_handle_event is None:
            self.will_handle_event = keep_event
        if not callable(self.will_handle_event):
            raise TypeError("will_handle_event must be callable")
        if isinstance(self.retired_capacity, bool) or not isinstance(self.retired_capacity, int):
            raise TypeError("retired_capacity must be an integer")
        if self.retired_capacity < 0:
            raise ValueError("retired_capacity must not be negative")

    def build_filter(self) -> EventFilter:
        """
        Compile the include/exclude patterns.

        Returns:
            EventFilter for this configuration

        Raises:
            PatternCompilationError: In strict mode, for the first pattern
                that failed to compile
        """
        event_filter = EventFilter(
            included_hosts=self.included_hosts,
            included_urls=self.included_urls,
            excluded_hosts=self.excluded_hosts,
            excluded_urls=self.excluded_urls,
            is_regex_enabled=self.is_regex_enabled,
        )
        if self.strict_patterns and event_filter.diagnostics:
            raise event_filter.diagnostics[0]
        return event_filter

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> NetworkLoggerConfig:
        """
        Create a NetworkLoggerConfig from a dictionary (e.g., from JSON).

        ```json
        {
          "is_waiting_for_decoding": true,
          "included_hosts": ["*.example.com"],
          "excluded_urls": ["/health"]
        }
        ```

        The event hook cannot be expressed in JSON and keeps its default.

        Args:
            data: Dictionary with configuration values

        Returns:
            NetworkLoggerConfig instance

        Raises:
            ValueError: If the dictionary has unknown keys
        """
        if not data:
            return cls()
        known = {f.name for f in dataclasses.fields(cls)} - {"will_handle_event"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown network logger options {sorted(unknown)}. Available: {sorted(known)}"
            )
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the config to a dictionary (for JSON serialization).

        Returns:
            Dictionary representation, without the event hook
        """
        return {
            "is_waiting_for_decoding": self.is_waiting_for_decoding,
            "included_hosts": sorted(self.included_hosts),
            "included_urls": sorted(self.included_urls),
            "excluded_hosts": sorted(self.excluded_hosts),
            "excluded_urls": sorted(self.excluded_urls),
            "is_regex_enabled": self.is_regex_enabled,
            "strict_patterns": self.strict_patterns,
            "retired_capacity": self.retired_capacity,
        }

    def with_hook(self, hook: EventHook) -> NetworkLoggerConfig:
        """
        Create a copy with a different event hook.

        Args:
            hook: New will_handle_event hook

        Returns:
            New NetworkLoggerConfig
        """
        return dataclasses.replace(self, will_handle_event=hook)
