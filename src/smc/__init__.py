"""smc: surgical search through Claude Code conversation logs."""

__version__ = "0.1.0"
