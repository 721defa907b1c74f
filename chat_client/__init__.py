"""Client for streamed chat responses with interruption recovery."""

__version__ = "0.1.0"
