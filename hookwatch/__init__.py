"""hookwatch - notification relay for coding-session hook events."""

__version__ = "0.4.0"
