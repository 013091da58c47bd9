"""LocalPulse - local news aggregation and roundup synthesis."""

__version__ = "0.1.0"
