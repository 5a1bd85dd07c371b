"""Case allocation rule wizard and distribution engine."""

__version__ = "1.0.0"
