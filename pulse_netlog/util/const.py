REDACTED_HEADER_VALUE = '<private>'

# Prefix used only to recover the host component of a schemeless URL
SCHEMELESS_URL_PREFIX = 'https://'

# Wildcard translation for non-regex include/exclude patterns
WILDCARD_DOT = '\\.'
WILDCARD_ANY = '.*?'

# How many removed task tokens the registry remembers to reject late callbacks
DEFAULT_RETIRED_CAPACITY = 4096

DEFAULT_LOGGER_NAME = 'pulse_netlog.events'
