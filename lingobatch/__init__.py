"""LingoBatch - bulk translation of UI string resource files."""

__version__ = "0.1.0"
