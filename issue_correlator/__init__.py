"""Issue-solution correlation engine for GitHub issue backlogs."""

__version__ = "0.1.0"
