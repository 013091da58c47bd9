"""Exception hierarchy.

Fatal errors (catalog, config, schema, mapping) abort a run before or at its
start. The remaining errors are raised for a single unit of work (one query,
one generation call) and are caught by the stage that owns that unit.
"""


class LocalPulseError(Exception):
    """Base class for all LocalPulse errors."""


class ConfigError(LocalPulseError):
    """Invalid or incomplete configuration."""


class CatalogError(LocalPulseError):
    """Missing or malformed source catalog."""


class SchemaError(LocalPulseError):
    """Destination table is absent or unusable."""


class MappingError(LocalPulseError):
    """Field mapping does not match the destination schema."""


class SearchError(LocalPulseError):
    """A single search query failed."""


class GenerationError(LocalPulseError):
    """Generation call failed or returned an invalid payload."""
