"""Content-addressed asset storage over object stores."""

__version__ = "0.1.0"
