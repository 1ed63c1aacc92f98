"""Version information for the orderdesk package."""

__version__ = "0.3.0"
