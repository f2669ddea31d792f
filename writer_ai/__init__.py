"""Writer AI text-improvement service."""

__version__ = "1.0.0"
