"""Dataset capture and archive task manager."""

__version__ = "0.1.0"
