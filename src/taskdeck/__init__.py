"""Terminal session management and coding-agent supervision."""

__version__ = "0.1.0"
