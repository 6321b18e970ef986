"""Building blocks for SQL tooling: tag and template parsing, time parsing, naming, hex literals and flags."""

__version__ = "0.1.0"