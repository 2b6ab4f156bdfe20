"""Chat proxy and tutor client for the code playground."""

__version__ = "0.1.0"
