"""Small-business inventory tracking toolkit."""

__version__ = "0.3.0"
