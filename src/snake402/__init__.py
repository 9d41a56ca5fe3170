"""Snake402 pay-per-play game server."""

__version__ = "1.0.0"
