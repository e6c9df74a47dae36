"""Sprint health metrics and health card generation for GitHub repositories."""

__version__ = "0.1.0"
