"""Mock HTTP server for capturing, echoing and saving requests."""

__version__ = "0.1.0"
