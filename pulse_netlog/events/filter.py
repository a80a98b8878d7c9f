"""
Host and URL based event filtering.

Include patterns narrow the set of logged tasks first, exclude patterns
narrow it further, so an entry matching both is dropped.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from urllib.parse import urlsplit

from pulse_netlog.errors import PatternCompilationError
from pulse_netlog.util.const import SCHEMELESS_URL_PREFIX
from pulse_netlog.util.patterns import PatternSet

logger = logging.getLogger(__name__)


def resolve_host(url: str) -> str:
    """
    Return the host component of a URL, or an empty string.

    ``urlsplit("example.com/path")`` has no network location, the host is
    recovered by parsing it again with a scheme in front.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        parts = urlsplit(SCHEMELESS_URL_PREFIX + url)
    try:
        return parts.hostname or ""
    except ValueError:
        return ""


class EventFilter:
    """
    Decide whether an event is kept, based on its URL.

    Example:
        event_filter = EventFilter(included_hosts={"*.example.com"},
                                   excluded_hosts={"logging.example.com"})
        event_filter.keep_url("https://api.example.com/v1")  # True
        event_filter.keep_url("logging.example.com")  # False
    """

    def __init__(
        self,
        included_hosts: Optional[set] = None,
        included_urls: Optional[set] = None,
        excluded_hosts: Optional[set] = None,
        excluded_urls: Optional[set] = None,
        is_regex_enabled: bool = False,
    ):
        self.included_hosts = PatternSet.compile(included_hosts or (), is_regex_enabled)
        self.included_urls = PatternSet.compile(included_urls or (), is_regex_enabled)
        self.excluded_hosts = PatternSet.compile(excluded_hosts or (), is_regex_enabled)
        self.excluded_urls = PatternSet.compile(excluded_urls or (), is_regex_enabled)

    @property
    def diagnostics(self) -> List[PatternCompilationError]:
        """Patterns that failed to compile and take no part in matching."""
        return [
            *self.included_hosts.diagnostics,
            *self.included_urls.diagnostics,
            *self.excluded_hosts.diagnostics,
            *self.excluded_urls.diagnostics,
        ]

    def keep(self, event) -> bool:
        url = getattr(event, "url", None)
        if url is None:
            logger.debug("Dropping %s without a URL", type(event).__name__)
            return False
        kept, reason = self.explain(url)
        if not kept:
            logger.debug("Dropping %s for %s: %s", type(event).__name__, url, reason)
        return kept

    def keep_url(self, url: str) -> bool:
        return self.explain(url)[0]

    def explain(self, url: str) -> Tuple[bool, str]:
        """Return the decision for a URL and the rule that produced it."""
        host = resolve_host(url)
        if self.included_hosts or self.included_urls:
            if not (self.included_hosts.matches(host) or self.included_urls.matches(url)):
                return False, "not included"
        if self.excluded_hosts.matches(host):
            return False, "excluded host"
        if self.excluded_urls.matches(url):
            return False, "excluded url"
        return True, "kept"
