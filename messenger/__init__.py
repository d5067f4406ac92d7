"""Two-party direct messaging core."""

__version__ = "1.0.0"
