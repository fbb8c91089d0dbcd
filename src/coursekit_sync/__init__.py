"""One-way content sync for course authoring repositories."""

__version__ = "0.1.0"
