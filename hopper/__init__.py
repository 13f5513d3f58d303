"""Domain services and repositories for a food delivery platform."""

__version__ = "0.1.0"