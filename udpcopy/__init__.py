"""File copy over UDP with a selective-reject sliding window and simulated packet errors."""

__version__ = "0.1.0"