"""subloom-api: HTTP and WebSocket control channel for subloom jobs."""

__version__ = "0.1.0"
